"""Template resolution: identifier -> local directory + manifest.

Pipeline per call: validate -> alias substitution -> parse -> resolve to a
path (through the repository cache for remote sources) -> load metadata.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from create_scaffold.cache.manager import RepositoryCache
from create_scaffold.errors import InputValidationError
from create_scaffold.log import get_logger
from create_scaffold.manifest import TemplateManifest
from create_scaffold.resolver.metadata import load_template_metadata
from create_scaffold.resolver.parser import parse_identifier, validate_identifier
from create_scaffold.resolver.sources import (
    GitHubBranchSource,
    GitHubRepoSource,
    GitHubShorthandSource,
    LocalSource,
    RegistrySource,
    ResolvedSource,
    UnsupportedArchiveSource,
    UnsupportedTarballSource,
    UrlSource,
)
from create_scaffold.security import sanitize_branch_name
from create_scaffold.utils import is_within

# Built-in namespace map consulted for ``registry/...`` identifiers that the
# user's alias table does not cover.
STATIC_REGISTRY: dict[str, dict[str, str]] = {
    "official": {
        "nextjs-app": "million-views/packages/nextjs-app",
    },
}


@dataclass
class ResolvedTemplate:
    """Result of :meth:`TemplateResolver.resolve`."""

    path: Path
    metadata: TemplateManifest
    source: ResolvedSource
    parameters: dict[str, str] = field(default_factory=dict)


class TemplateResolver:
    """Turns template identifiers into local directories.

    Args:
        cache: Repository cache used for every git-backed source.
        aliases: User alias table ``{namespace: {template: identifier}}``.
        registry: Static namespace map; defaults to :data:`STATIC_REGISTRY`.
    """

    def __init__(
        self,
        cache: RepositoryCache,
        aliases: dict[str, dict[str, str]] | None = None,
        registry: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self.cache = cache
        self.aliases = aliases or {}
        self.registry = STATIC_REGISTRY if registry is None else registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(
        self,
        identifier: str,
        branch: str | None = None,
        no_cache: bool = False,
        ttl_hours: int | None = None,
        logger: logging.Logger | None = None,
    ) -> ResolvedTemplate:
        """Resolve *identifier* to a local template directory.

        Raises:
            InputValidationError: Unsafe or unsupported identifier.
            AccessError: The remote refused access.
            FetchError: Cloning failed.
        """
        log = logger or get_logger("resolver")
        validated = validate_identifier(identifier)
        if branch:
            branch = sanitize_branch_name(branch)

        substituted = self.resolve_alias(validated)
        if substituted != validated:
            log.info("Alias %s -> %s", validated, substituted)
            substituted = validate_identifier(substituted)

        source = parse_identifier(substituted)
        path = await self.resolve_to_path(
            source, branch=branch, no_cache=no_cache, ttl_hours=ttl_hours
        )
        metadata = load_template_metadata(path)
        log.debug("Resolved %s (%s) to %s", identifier, source.kind, path)
        return ResolvedTemplate(
            path=path,
            metadata=metadata,
            source=source,
            parameters=self.extract_parameters(source),
        )

    def resolve_alias(self, identifier: str) -> str:
        """Replace ``namespace/template`` with the user alias table's URL, if any."""
        namespace, sep, template = identifier.partition("/")
        if not sep or not template:
            return identifier
        mapped = self.aliases.get(namespace, {}).get(template)
        if isinstance(mapped, str) and mapped.strip():
            return mapped.strip()
        return identifier

    @staticmethod
    def extract_parameters(source: ResolvedSource) -> dict[str, str]:
        if isinstance(source, UrlSource):
            return dict(source.query)
        return {}

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    async def resolve_to_path(
        self,
        source: ResolvedSource,
        branch: str | None = None,
        no_cache: bool = False,
        ttl_hours: int | None = None,
    ) -> Path:
        if isinstance(source, LocalSource):
            return Path(os.path.expanduser(source.path)).resolve()

        if isinstance(source, (GitHubShorthandSource, GitHubBranchSource)):
            effective = source.branch or branch
            root = await self.cache.ensure_cached(
                source.repository, effective, ttl_hours=ttl_hours, no_cache=no_cache
            )
            return self._join_subpath(root, source.subpath)

        if isinstance(source, GitHubRepoSource):
            root = await self.cache.ensure_cached(
                source.repository, branch, ttl_hours=ttl_hours, no_cache=no_cache
            )
            return self._join_subpath(root, source.subpath)

        if isinstance(source, RegistrySource):
            target = self._lookup_registry(source)
            return await self.resolve_to_path(
                parse_identifier(target), branch=branch, no_cache=no_cache, ttl_hours=ttl_hours
            )

        if isinstance(source, UrlSource):
            root = await self.cache.ensure_cached(
                source.url, source.branch or branch, ttl_hours=ttl_hours, no_cache=no_cache
            )
            return self._join_subpath(root, source.subpath)

        if isinstance(source, UnsupportedArchiveSource):
            raise InputValidationError(
                "GitHub archive URLs are not supported",
                suggestions=[
                    "Use the repository URL instead: https://github.com/owner/repo",
                    "Use a branch URL for a specific ref: https://github.com/owner/repo/tree/<branch>",
                ],
                technical_details=source.url,
            )

        if isinstance(source, UnsupportedTarballSource):
            raise InputValidationError(
                "Tarball URLs are not supported",
                suggestions=[
                    "Use a git repository URL instead",
                    "Extract the tarball locally and pass its directory path",
                ],
                technical_details=source.url,
            )

        raise InputValidationError(f"Unsupported template source: {source!r}")

    def _lookup_registry(self, source: RegistrySource) -> str:
        user_target = self.aliases.get(source.namespace, {}).get(source.template)
        if isinstance(user_target, str) and user_target.strip():
            return validate_identifier(user_target.strip())

        namespace = self.registry.get(source.namespace)
        if namespace is None:
            known = sorted(set(self.registry) | set(self.aliases))
            raise InputValidationError(
                f"Unknown registry namespace: {source.namespace}",
                suggestions=[f"Available namespaces: {', '.join(known) or '(none)'}"],
            )
        target = namespace.get(source.template)
        if not target:
            raise InputValidationError(
                f"Template '{source.template}' not found in namespace '{source.namespace}'",
                suggestions=[f"Available templates: {', '.join(sorted(namespace)) or '(none)'}"],
            )
        return target

    @staticmethod
    def _join_subpath(root: Path, subpath: str) -> Path:
        if not subpath:
            return root
        candidate = root / subpath
        if not is_within(candidate, root):
            raise InputValidationError(f"Template path escapes the repository: {subpath}")
        return candidate
