"""The immutable ``ctx`` object handed to template setup scripts.

Everything reachable from a ``SetupContext`` is read-only: mappings are
wrapped in ``MappingProxyType`` over private copies and sequences become
tuples, so a script can inspect the project but never alter what the
orchestrator believes about it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from create_scaffold.errors import ContextValidationError
from create_scaffold.security import AUTHORING_MODES, DEFAULT_AUTHOR_ASSETS_DIR


def deep_freeze(value: Any) -> Any:
    """Return a read-only deep copy of *value*."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): deep_freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(deep_freeze(v) for v in value)
    return value


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class SetupOptions:
    """User selections: the raw ``--option`` strings and the per-dimension view."""

    raw: tuple[str, ...] = ()
    by_dimension: Mapping[str, Any] = field(default_factory=_empty_mapping)


@dataclass(frozen=True)
class SetupContext:
    project_name: str
    project_dir: str
    cwd: str
    authoring: str = "wysiwyg"
    author_assets_dir: str = DEFAULT_AUTHOR_ASSETS_DIR
    inputs: Mapping[str, Any] = field(default_factory=_empty_mapping)
    constants: Mapping[str, Any] = field(default_factory=_empty_mapping)
    options: SetupOptions = field(default_factory=SetupOptions)


def create_context(
    project_name: str,
    project_directory: str | Path,
    cwd: str | Path | None = None,
    authoring: str = "wysiwyg",
    author_assets_dir: str = DEFAULT_AUTHOR_ASSETS_DIR,
    inputs: Mapping[str, Any] | None = None,
    constants: Mapping[str, Any] | None = None,
    options: Mapping[str, Any] | None = None,
) -> SetupContext:
    """Build a deep-frozen :class:`SetupContext`.

    Args:
        options: ``{"raw": [...], "by_dimension": {...}}``; ``byDimension`` is
            accepted as an alias.

    Raises:
        ContextValidationError: Missing name/directory or unknown authoring mode.
    """
    if not project_name or not isinstance(project_name, str):
        raise ContextValidationError(
            "project_name is required and must be a non-empty string", "project_name"
        )
    if not project_directory or not str(project_directory).strip():
        raise ContextValidationError(
            "project_directory is required and must be a non-empty string", "project_directory"
        )
    if authoring not in AUTHORING_MODES:
        raise ContextValidationError(
            f"authoring must be one of {', '.join(AUTHORING_MODES)}, got: {authoring}",
            "authoring",
        )

    opts = options or {}
    by_dimension = opts.get("by_dimension", opts.get("byDimension", {})) or {}

    return SetupContext(
        project_name=project_name,
        project_dir=str(Path(project_directory).resolve()),
        cwd=str(Path(cwd or Path.cwd()).resolve()),
        authoring=authoring,
        author_assets_dir=author_assets_dir or DEFAULT_AUTHOR_ASSETS_DIR,
        inputs=deep_freeze(dict(inputs or {})),
        constants=deep_freeze(dict(constants or {})),
        options=SetupOptions(
            raw=tuple(str(o) for o in opts.get("raw", ()) or ()),
            by_dimension=deep_freeze(dict(by_dimension)),
        ),
    )
