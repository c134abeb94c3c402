"""Validation and parsing of raw template identifiers.

Both functions here are pure: they never touch the filesystem or network.
Validation always runs first, and a rejected identifier is never retried
through a different resolution strategy.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlsplit

from create_scaffold.errors import InputValidationError
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
from create_scaffold.security import (
    find_shell_metacharacter,
    has_traversal,
    reject_null_bytes,
    sanitize_branch_name,
    sanitize_subpath,
    validate_repo_url,
)

KNOWN_REGISTRIES = ("registry", "official", "community", "private")

_FORMAT_SUGGESTIONS = [
    "Use owner/repo for GitHub repositories",
    "Use owner/repo#branch or owner/repo#branch/sub/path for a branch or subdirectory",
    "Use https://github.com/owner/repo for full URLs",
    "Use ./path/to/template for local templates",
    "Use registry/<template> or registry/<namespace>/<template> for registry aliases",
]


def _is_local_path(identifier: str) -> bool:
    return identifier.startswith(("/", "./", "../", "~"))


def _is_registry_shape(identifier: str) -> bool:
    if "://" in identifier or "/" not in identifier:
        return False
    parts = identifier.split("/")
    return 2 <= len(parts) <= 3 and parts[0] in KNOWN_REGISTRIES and all(parts)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_identifier(identifier: str) -> str:
    """Reject unsafe or malformed identifiers.

    Returns:
        The identifier with surrounding whitespace removed.

    Raises:
        InputValidationError: On null bytes, shell metacharacters, path
            traversal, or an unrecognised shape.
    """
    if not identifier or not isinstance(identifier, str):
        raise InputValidationError(
            "Template identifier must be a non-empty string",
            suggestions=_FORMAT_SUGGESTIONS,
        )
    reject_null_bytes(identifier, "Template identifier")
    token = find_shell_metacharacter(identifier)
    if token is not None:
        raise InputValidationError(
            f"Template identifier contains a shell metacharacter ({token!r})",
            suggestions=["Use only letters, digits, slashes and safe punctuation"],
        )

    trimmed = identifier.strip()

    if _is_local_path(trimmed):
        if has_traversal(trimmed):
            raise InputValidationError(
                f"Invalid template path: {trimmed}",
                suggestions=[
                    "Avoid '..' in template paths",
                    "Use an absolute path or a path within the current directory",
                ],
            )
        return trimmed

    if _is_registry_shape(trimmed):
        return trimmed

    repo_part = trimmed
    if "://" not in trimmed and "#" in trimmed:
        repo_part, _, fragment = trimmed.partition("#")
        branch, _, subpath = fragment.partition("/")
        try:
            sanitize_branch_name(branch)
            sanitize_subpath(subpath)
        except InputValidationError as exc:
            raise InputValidationError(
                f"Invalid template URL format: {trimmed}",
                suggestions=_FORMAT_SUGGESTIONS,
                technical_details=exc.message,
            ) from exc

    try:
        validate_repo_url(repo_part)
    except InputValidationError as exc:
        raise InputValidationError(
            f"Invalid template URL format: {trimmed}",
            suggestions=_FORMAT_SUGGESTIONS,
            technical_details=exc.message,
        ) from exc
    return trimmed


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_identifier(identifier: str) -> ResolvedSource:
    """Parse a (validated) identifier into its ``ResolvedSource`` variant."""
    if _is_local_path(identifier):
        return LocalSource(path=identifier)

    if "://" in identifier:
        return parse_url(identifier)

    if identifier.startswith("git@"):
        return parse_ssh(identifier)

    if _is_registry_shape(identifier):
        parts = identifier.split("/")
        if len(parts) == 2:
            return RegistrySource(namespace="official", template=parts[1])
        return RegistrySource(namespace=parts[1], template=parts[2])

    if "/" in identifier:
        return parse_shorthand(identifier)

    raise InputValidationError(
        f"Unsupported template identifier: {identifier}",
        suggestions=_FORMAT_SUGGESTIONS,
    )


def parse_shorthand(identifier: str) -> GitHubShorthandSource:
    """``owner/repo[/extra][#branch[/sub/path]]``."""
    repo_part, has_fragment, fragment = identifier.partition("#")
    branch: str | None = None
    fragment_subpath = ""
    if has_fragment:
        branch_name, _, fragment_subpath = fragment.partition("/")
        branch = branch_name or None

    parts = [p for p in repo_part.split("/") if p]
    if len(parts) < 2:
        raise InputValidationError(
            f"Invalid GitHub shorthand: {identifier}",
            suggestions=_FORMAT_SUGGESTIONS,
        )
    owner = parts[0]
    repo = parts[1].removesuffix(".git")
    subpath_parts = parts[2:]
    if fragment_subpath:
        subpath_parts.append(fragment_subpath)
    subpath = sanitize_subpath("/".join(subpath_parts))
    return GitHubShorthandSource(owner=owner, repo=repo, branch=branch, subpath=subpath)


def parse_ssh(identifier: str) -> UrlSource:
    """``git@host:owner/repo[.git][#branch[/sub/path]]``, cloned over SSH as given."""
    repo_part, has_fragment, fragment = identifier.partition("#")
    branch: str | None = None
    subpath = ""
    if has_fragment:
        branch_name, _, subpath = fragment.partition("/")
        branch = branch_name or None
    host, sep, path = repo_part[len("git@"):].partition(":")
    if not host or not sep or not path.strip("/"):
        raise InputValidationError(
            f"Invalid SSH repository: {identifier}",
            suggestions=["Use git@host:owner/repo.git"],
        )
    return UrlSource(url=repo_part, branch=branch, subpath=sanitize_subpath(subpath))


def parse_url(url: str) -> ResolvedSource:
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if host in ("github.com", "www.github.com"):
        return parse_github_url(url)
    if parts.path.endswith((".tar.gz", ".tgz")):
        return UnsupportedTarballSource(url=url)
    base = f"{parts.scheme}://{parts.netloc}{parts.path}"
    return UrlSource(url=base, query=dict(parse_qsl(parts.query)))


def parse_github_url(url: str) -> ResolvedSource:
    """Split a github.com URL into repo-root, tree/branch or archive shapes."""
    path = urlsplit(url).path.strip("/")
    segments = path.split("/") if path else []
    if len(segments) < 2:
        raise InputValidationError(
            "Invalid GitHub URL format",
            suggestions=[
                "Use https://github.com/owner/repo for the repository root",
                "Use https://github.com/owner/repo/tree/branch/path for a subdirectory",
            ],
            technical_details=f"Expected https://github.com/owner/repo[/path], got {url}",
        )

    owner = segments[0]
    repo = segments[1].removesuffix(".git")
    remaining = segments[2:]

    if "/archive/refs/tags/" in f"/{path}/" or "/releases/download/" in f"/{path}/":
        return UnsupportedArchiveSource(url=url)

    if len(remaining) >= 2 and remaining[0] == "tree":
        return GitHubBranchSource(
            owner=owner,
            repo=repo,
            branch=remaining[1],
            subpath=sanitize_subpath("/".join(remaining[2:])),
        )

    return GitHubRepoSource(owner=owner, repo=repo, subpath=sanitize_subpath("/".join(remaining)))
