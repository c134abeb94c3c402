"""Placeholder token formats and text replacement.

Templates mark substitution points with one of four delimiter styles.  The
manifest's ``placeholderFormat`` picks the style; ``unicode`` is the default
because it never collides with JSX, shell or CSS syntax.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from create_scaffold.errors import InputValidationError


@dataclass(frozen=True)
class PlaceholderFormat:
    name: str
    opening: str
    closing: str

    def render(self, token: str) -> str:
        return f"{self.opening}{token}{self.closing}"

    def token_pattern(self, token: str) -> re.Pattern[str]:
        """Match *token* with optional surrounding whitespace."""
        return re.compile(
            rf"{re.escape(self.opening)}\s*{re.escape(token)}\s*{re.escape(self.closing)}"
        )

    def any_pattern(self) -> re.Pattern[str]:
        return re.compile(
            rf"{re.escape(self.opening)}\s*([A-Z][A-Z0-9_]*)\s*{re.escape(self.closing)}"
        )


FORMATS: dict[str, PlaceholderFormat] = {
    "unicode": PlaceholderFormat("unicode", "⦃", "⦄"),
    "mustache": PlaceholderFormat("mustache", "{{", "}}"),
    "dollar": PlaceholderFormat("dollar", "$", "$"),
    "percent": PlaceholderFormat("percent", "%", "%"),
}

DEFAULT_FORMAT = "unicode"

_LEGACY_TEMPLATES = {
    "⦃NAME⦄": "unicode",
    "{{NAME}}": "mustache",
    "$NAME$": "dollar",
    "%NAME%": "percent",
}


def get_format(name: str | None) -> PlaceholderFormat:
    """Resolve a format by name (or legacy ``{{NAME}}``-style template)."""
    if not name or not name.strip():
        return FORMATS[DEFAULT_FORMAT]
    key = name.strip().lower()
    if key in FORMATS:
        return FORMATS[key]
    if name.strip() in _LEGACY_TEMPLATES:
        return FORMATS[_LEGACY_TEMPLATES[name.strip()]]
    raise InputValidationError(
        f'Invalid placeholder format: "{name}". Must be one of: {", ".join(FORMATS)}'
    )


def extract_placeholders(text: str, fmt: PlaceholderFormat) -> list[str]:
    """Return the unique token names found in *text*, in order of appearance."""
    seen: dict[str, None] = {}
    for match in fmt.any_pattern().finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def replace_tokens(text: str, replacements: Mapping[str, object], fmt: PlaceholderFormat) -> str:
    """Replace every ``token`` occurrence in *text* with its string value."""
    result = text
    for token, value in replacements.items():
        result = fmt.token_pattern(token).sub(lambda _m, v=str(value): v, result)
    return result


def replace_in_file(
    path: Path,
    replacements: Mapping[str, object],
    fmt: PlaceholderFormat,
) -> bool:
    """Rewrite *path* in place.  Binary (non UTF-8) files are left alone.

    Returns:
        ``True`` if the file content changed.
    """
    try:
        original = path.read_text(encoding="utf-8")
    except (UnicodeDecodeError, OSError):
        return False
    updated = replace_tokens(original, replacements, fmt)
    if updated == original:
        return False
    path.write_text(updated, encoding="utf-8")
    return True


def replace_in_tree(
    root: Path,
    replacements: Mapping[str, object],
    fmt: PlaceholderFormat,
    pattern: str = "**/*",
    exclude: Iterable[Path] = (),
) -> list[Path]:
    """Apply *replacements* to every regular file under *root* matching *pattern*.

    Files equal to, or below, any path in *exclude* are skipped.

    Returns:
        The files that changed.
    """
    excluded = [p.resolve() for p in exclude]
    changed: list[Path] = []
    for candidate in sorted(root.glob(pattern)):
        if not candidate.is_file() or candidate.is_symlink():
            continue
        resolved = candidate.resolve()
        if any(resolved == ex or ex in resolved.parents for ex in excluded):
            continue
        if replace_in_file(candidate, replacements, fmt):
            changed.append(candidate)
    return changed
