"""Input validation for untrusted identifiers.

Every value that reaches git, the filesystem or a template comes through one
of these validators first.  They either return the normalised value or raise
``InputValidationError``; none of them touch the filesystem or network.
"""

from __future__ import annotations

import ipaddress
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from create_scaffold.errors import InputValidationError

ALLOWED_URL_SCHEMES = ("http", "https", "git", "ssh")
SUPPORTED_IDES = ("kiro", "vscode", "cursor", "windsurf")
AUTHORING_MODES = ("wysiwyg", "composable")
DEFAULT_AUTHOR_ASSETS_DIR = "__scaffold__"

_SHELL_METACHARACTERS = (";", "|", "&", "`", "$(", "${")
_SHORTHAND_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_BRANCH_INVALID_RE = re.compile(r"[\s\x00-\x1f\x7f~^:?*\[\]\\;&|`$()]")
_RESERVED_DIR_NAMES = frozenset(
    ["con", "prn", "aux", "nul"]
    + [f"com{i}" for i in range(1, 10)]
    + [f"lpt{i}" for i in range(1, 10)]
)


# ---------------------------------------------------------------------------
# Primitive checks
# ---------------------------------------------------------------------------


def reject_null_bytes(value: str, field: str) -> None:
    if "\0" in value:
        raise InputValidationError(f"{field} contains null bytes")


def find_shell_metacharacter(value: str) -> str | None:
    """Return the first shell metacharacter sequence found in *value*."""
    for token in _SHELL_METACHARACTERS:
        if token in value:
            return token
    return None


def looks_like_local_path(value: str) -> bool:
    return value.startswith(("/", "./", "../", "~")) or value in (".", "..")


def has_traversal(value: str) -> bool:
    """``True`` if any path component of *value* is ``..``."""
    return ".." in re.split(r"[\\/]", value)


def is_private_host(hostname: str) -> bool:
    """Loopback and RFC 1918 hosts are refused as template sources."""
    host = hostname.lower().strip("[]")
    if host in ("localhost", "localhost.localdomain"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_loopback or address.is_private


# ---------------------------------------------------------------------------
# Repository identifiers
# ---------------------------------------------------------------------------


def validate_repo_url(value: str) -> str:
    """Validate a repository reference: local path, URL, or ``user/repo``.

    Returns:
        The trimmed reference.

    Raises:
        InputValidationError: On any unsafe or malformed input.
    """
    if not value or not isinstance(value, str):
        raise InputValidationError("Repository URL must be a non-empty string")
    reject_null_bytes(value, "Repository URL")
    trimmed = value.strip()

    if any(ch in trimmed for ch in "\n\r\t"):
        raise InputValidationError("Repository URL contains invalid characters")

    if looks_like_local_path(trimmed):
        if has_traversal(trimmed):
            raise InputValidationError(
                "Local repository path contains path traversal attempts",
                suggestions=["Use an absolute path or a path below the current directory"],
            )
        return trimmed

    if "://" in trimmed:
        parts = urlsplit(trimmed)
        if parts.scheme.lower() not in ALLOWED_URL_SCHEMES:
            raise InputValidationError(
                f"Unsupported protocol: {parts.scheme or '(none)'}",
                suggestions=[f"Use one of: {', '.join(ALLOWED_URL_SCHEMES)}"],
            )
        if not parts.hostname:
            raise InputValidationError("Invalid repository URL format")
        if is_private_host(parts.hostname):
            raise InputValidationError("Private network URLs are not allowed")
        return trimmed

    if trimmed.startswith("git@"):
        host = trimmed[4:].split(":", 1)[0]
        if not host or is_private_host(host):
            raise InputValidationError("Invalid or private SSH repository host")
        return trimmed

    if not _SHORTHAND_RE.match(trimmed):
        raise InputValidationError(
            "Repository format must be user/repo, a valid URL, or a local path",
            suggestions=["Examples: owner/repo, https://github.com/owner/repo.git, ./templates/app"],
        )

    user, repo = trimmed.split("/")
    if len(user) > 39 or len(repo) > 100:
        raise InputValidationError("Repository user or name is too long")
    if user.startswith(".") or user.endswith(".") or repo.startswith(".") or repo.endswith("."):
        raise InputValidationError("Repository user or name cannot start or end with dots")
    return trimmed


def sanitize_branch_name(branch: str) -> str:
    """Validate a git branch name against injection and git naming rules."""
    if not branch or not isinstance(branch, str):
        raise InputValidationError("Branch name must be a non-empty string")
    reject_null_bytes(branch, "Branch name")
    trimmed = branch.strip()

    if len(trimmed) > 255:
        raise InputValidationError("Branch name is too long (maximum 255 characters)")
    if _BRANCH_INVALID_RE.search(trimmed):
        raise InputValidationError(
            "Branch name contains invalid characters (spaces, control characters, "
            "shell or git special characters)"
        )
    if ".." in trimmed or trimmed.startswith("/") or trimmed.endswith("/") or "//" in trimmed:
        raise InputValidationError("Branch name contains path traversal attempts or invalid slashes")
    if trimmed.startswith(".") or trimmed.endswith("."):
        raise InputValidationError("Branch name cannot start or end with a dot")
    if trimmed.endswith(".lock"):
        raise InputValidationError("Branch name cannot end with .lock")
    return trimmed


def sanitize_subpath(subpath: str) -> str:
    """Normalise a relative path inside a template repository.

    Leading and trailing slashes are dropped; backslashes and ``..``
    components are refused.
    """
    reject_null_bytes(subpath, "Template path")
    raw = subpath.strip()
    if "\\" in raw or has_traversal(raw):
        raise InputValidationError(f"Template path is not allowed: {subpath}")
    cleaned = raw.strip("/")
    if not cleaned:
        return ""
    return str(PurePosixPath(cleaned))


# ---------------------------------------------------------------------------
# Project-level inputs
# ---------------------------------------------------------------------------


def validate_project_directory(value: str | Path) -> Path:
    """Validate the requested project directory.

    The final path component becomes the project name, so it must be a plain
    identifier (letters, digits, hyphens, underscores).  Parent components are
    allowed but may not contain ``..``.
    """
    raw = str(value)
    if not raw.strip():
        raise InputValidationError("Project directory must be a non-empty string")
    reject_null_bytes(raw, "Project directory")
    if has_traversal(raw):
        raise InputValidationError("Project directory contains path traversal attempts")

    path = Path(raw.strip()).expanduser()
    name = path.name
    if name.startswith("."):
        raise InputValidationError("Project directory name cannot start with a dot")
    if name.lower() in _RESERVED_DIR_NAMES:
        raise InputValidationError("Project directory name is reserved and cannot be used")
    if not _SAFE_NAME_RE.match(name):
        raise InputValidationError(
            "Project directory name contains invalid characters "
            "(use only letters, numbers, hyphens, and underscores)"
        )
    if len(name) > 100:
        raise InputValidationError("Project directory name is too long (maximum 100 characters)")
    return path


def validate_ide(value: str | None) -> str | None:
    """Normalise an IDE name; ``None`` or blank means no IDE integration."""
    if value is None or not value.strip():
        return None
    reject_null_bytes(value, "IDE parameter")
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_IDES:
        raise InputValidationError(
            f'Invalid IDE: "{value}". Supported IDEs: {", ".join(SUPPORTED_IDES)}'
        )
    return normalized


def validate_authoring_mode(value: str | None) -> str:
    if value is None or not value.strip():
        return "wysiwyg"
    normalized = value.strip().lower()
    if normalized not in AUTHORING_MODES:
        raise InputValidationError(
            f"setup.authoring must be one of: {', '.join(AUTHORING_MODES)}"
        )
    return normalized


def validate_author_assets_dir(value: str | None) -> str:
    if value is None or not value.strip():
        return DEFAULT_AUTHOR_ASSETS_DIR
    trimmed = value.strip()
    if len(trimmed) > 80:
        raise InputValidationError("setup.authorAssetsDir must be 80 characters or fewer")
    if "/" in trimmed or "\\" in trimmed:
        raise InputValidationError("setup.authorAssetsDir cannot contain path separators")
    if not re.match(r"^[A-Za-z0-9._-]+$", trimmed) or trimmed in (".", ".."):
        raise InputValidationError(
            'setup.authorAssetsDir may contain only letters, numbers, ".", "-", and "_"'
        )
    return trimmed


def validate_cache_ttl(value: int | str | None) -> int | None:
    """Parse a TTL in hours (1-720)."""
    if value is None or value == "":
        return None
    try:
        hours = int(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"Cache TTL must be an integer number of hours, got {value!r}")
    if hours < 1 or hours > 720:
        raise InputValidationError("Cache TTL must be between 1 and 720 hours")
    return hours


# ---------------------------------------------------------------------------
# Error messages
# ---------------------------------------------------------------------------


def sanitize_error_message(message: str, limit: int = 500) -> str:
    """Strip control characters and the user's home directory from *message*."""
    text = str(message)
    home = str(Path.home())
    if home and home != "/":
        text = text.replace(home, "~")
    text = re.sub(r"[\x00-\x08\x0b-\x1f\x7f]", "", text)
    text = re.sub(r"(?i)\b(token|password|secret)([:=\s]+)\S+", r"\1\2[redacted]", text)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text
