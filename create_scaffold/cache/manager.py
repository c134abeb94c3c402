"""On-disk repository cache.

Each cached repository lives at ``<cache_dir>/<protocol>/<repo-name>[-<branch>]``
as a shallow git clone plus a ``.scaffold-cache.json`` metadata file.
Entries expire after a TTL (24h by default) and are rebuilt from scratch;
there is no incremental ``git pull``.

Clones are made into a staging sibling and renamed into place only after the
metadata has been written, so a reader never observes a half-populated entry.
Two *writers* racing on the same key can still clobber each other: there is
no inter-process lock.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from create_scaffold.cache.git import GitCommandError, run_git
from create_scaffold.cache.models import (
    CACHE_FORMAT_VERSION,
    DEFAULT_TTL_HOURS,
    METADATA_FILE,
    CacheEntry,
)
from create_scaffold.errors import AccessError, CorruptionError, FetchError
from create_scaffold.log import get_logger
from create_scaffold.utils import load_json, remove_path, write_json

logger = get_logger("cache")

STAGING_PREFIX = ".staging-"
_DEFAULT_BRANCHES = ("main", "master")
_UNSAFE_KEY_CHARS = re.compile(r"[^\w.-]")


# ---------------------------------------------------------------------------
# Key derivation (pure)
# ---------------------------------------------------------------------------


def _is_local(source: str) -> bool:
    return source.startswith(("/", ".", "~"))


def normalize_source(source: str) -> str:
    """Turn a repository reference into something ``git clone`` accepts.

    Local paths, URLs with a scheme and ``git@`` SSH forms are kept as given.
    ``owner/repo`` becomes an HTTPS GitHub URL; a bare name falls back to the
    GitHub SSH form.
    """
    if _is_local(source) or "://" in source or source.startswith("git@"):
        return source
    stripped = re.sub(r"\.git$", "", source)
    if "/" in stripped:
        return f"https://github.com/{stripped}.git"
    return f"git@github.com:{stripped}.git"


def source_protocol(normalized: str) -> str:
    if _is_local(normalized):
        return "local"
    if normalized.startswith("git@"):
        return "git"
    if "://" in normalized:
        return urlsplit(normalized).scheme.lower() or "unknown"
    return "unknown"


def repo_name(normalized: str) -> str:
    """Derive the directory name for a normalised source.

    Every ``/`` in the repository path becomes ``-`` so that nested group
    paths (``group/sub/repo``) map to a single, unambiguous directory.
    """
    if _is_local(normalized):
        name = Path(os.path.expanduser(normalized)).name
        name = re.sub(r"\.git$", "", name)
    elif normalized.startswith("git@") and ":" in normalized:
        name = re.sub(r"\.git$", "", normalized.split(":", 1)[1]).replace("/", "-")
    elif "://" in normalized:
        path = urlsplit(normalized).path.lstrip("/")
        name = re.sub(r"\.git$", "", path.rstrip("/")).replace("/", "-")
    else:
        name = normalized
    name = _UNSAFE_KEY_CHARS.sub("-", name).strip(".")
    return name or "repo"


def branch_suffix(branch: str | None) -> str:
    if not branch or branch in _DEFAULT_BRANCHES:
        return ""
    return "-" + _UNSAFE_KEY_CHARS.sub("-", branch)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class RepositoryCache:
    """Owns cached clones, their TTL policy and corruption recovery.

    Attributes:
        cache_dir: Root directory of the cache.
        clone_timeout: Seconds allowed for ``git clone``.
        access_check_timeout: Seconds allowed for the ``ls-remote`` access check.
        default_ttl_hours: TTL used when neither caller nor prior entry
            supplies one.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        clone_timeout: float = 60,
        access_check_timeout: float = 10,
        default_ttl_hours: int = DEFAULT_TTL_HOURS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        self.clone_timeout = clone_timeout
        self.access_check_timeout = access_check_timeout
        self.default_ttl_hours = default_ttl_hours
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Keys & metadata
    # ------------------------------------------------------------------

    def resolve_key(self, source: str, branch: str | None = None) -> tuple[str, Path]:
        """Return ``(key, path)`` for *source*.  Pure: no I/O."""
        normalized = normalize_source(source)
        key = f"{source_protocol(normalized)}/{repo_name(normalized)}{branch_suffix(branch)}"
        return key, self.cache_dir / key

    def _metadata_path(self, entry_dir: Path) -> Path:
        return entry_dir / METADATA_FILE

    def read_entry(self, key: str) -> CacheEntry | None:
        """Load the metadata for *key*, or ``None`` if absent or unreadable."""
        meta_path = self._metadata_path(self.cache_dir / key)
        if not meta_path.is_file():
            return None
        try:
            return CacheEntry.model_validate(load_json(meta_path))
        except (OSError, ValueError, ValidationError) as exc:
            logger.debug("Unreadable cache metadata for %s: %s", key, exc)
            return None

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def is_expired(self, entry: CacheEntry | None, ttl_override: int | None = None) -> bool:
        """``True`` when *entry* or its timestamp is missing, or it outlived its TTL."""
        if entry is None or entry.last_updated is None:
            return True
        if ttl_override is not None:
            ttl = ttl_override
        elif entry.ttl_hours is not None:
            ttl = entry.ttl_hours
        else:
            ttl = self.default_ttl_hours
        age = entry.age(self._clock())
        return age is None or age > timedelta(hours=ttl)

    def check_entry(self, key: str) -> CacheEntry:
        """Return the validated metadata for *key*.

        Raises:
            CorruptionError: The entry directory or its metadata is missing,
                unreadable or incomplete.
        """
        entry_dir = self.cache_dir / key
        if not entry_dir.is_dir():
            raise CorruptionError(f"Cache entry {key} is missing")
        meta_path = self._metadata_path(entry_dir)
        if not meta_path.is_file():
            raise CorruptionError(f"Cache entry {key} has no metadata")
        try:
            raw = load_json(meta_path)
        except (OSError, ValueError) as exc:
            raise CorruptionError(f"Cache entry {key} has unreadable metadata", technical_details=str(exc)) from exc
        if not raw.get("source_url") or not raw.get("last_updated"):
            raise CorruptionError(f"Cache entry {key} metadata lacks source_url or last_updated")
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError as exc:
            raise CorruptionError(f"Cache entry {key} has invalid metadata", technical_details=str(exc)) from exc

    def detect_corruption(self, key: str) -> bool:
        try:
            self.check_entry(key)
        except CorruptionError:
            return True
        return False

    # ------------------------------------------------------------------
    # Remote access
    # ------------------------------------------------------------------

    async def check_access(self, source: str) -> bool:
        """Check the remote with ``git ls-remote --heads``.

        Only an explicit authentication/permission refusal returns ``False``;
        timeouts and other failures return ``True`` so that the clone itself
        decides.
        """
        normalized = normalize_source(source)
        target = os.path.expanduser(normalized) if _is_local(normalized) else normalized
        try:
            await run_git("ls-remote", "--heads", target, timeout=self.access_check_timeout)
        except GitCommandError as exc:
            if exc.is_auth_failure:
                return False
            logger.debug("Access check inconclusive for %s: %s", source, exc)
        return True

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    async def populate(
        self,
        source: str,
        branch: str | None = None,
        ttl_hours: int | None = None,
        clone_timeout: float | None = None,
    ) -> Path:
        """Clone *source* into the cache, replacing any existing entry.

        Returns:
            Path to the populated entry.

        Raises:
            AccessError: The remote refused access.  Not worth retrying.
            FetchError: The clone or metadata write failed.  Nothing is left
                at the entry path in that case.
        """
        key, target = self.resolve_key(source, branch)

        if not await self.check_access(source):
            raise AccessError(
                f"Unable to access repository: {source}",
                suggestions=[
                    "Check your git credentials (SSH key or credential helper)",
                    "Confirm the repository exists and you have read permission",
                    "For private GitHub repositories, try the git@github.com:owner/repo.git form",
                ],
            )

        prior = self.read_entry(key)
        if ttl_hours is None:
            ttl_hours = prior.ttl_hours if prior and prior.ttl_hours is not None else self.default_ttl_hours

        remove_path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.parent / f"{STAGING_PREFIX}{target.name}-{uuid.uuid4().hex[:8]}"

        normalized = normalize_source(source)
        clone_url = os.path.expanduser(normalized) if _is_local(normalized) else normalized
        args = ["clone", "--depth", "1"]
        if branch:
            args += ["--branch", branch]
        args += [clone_url, str(staging)]

        logger.info("Cloning %s%s into cache", source, f" ({branch})" if branch else "")
        try:
            await run_git(*args, timeout=clone_timeout or self.clone_timeout)
            entry = CacheEntry(
                source_url=normalized,
                branch=branch,
                key=key,
                local_path=target,
                last_updated=self._clock(),
                ttl_hours=ttl_hours,
                cache_format_version=CACHE_FORMAT_VERSION,
            )
            write_json(entry.model_dump(mode="json"), self._metadata_path(staging))
            os.replace(staging, target)
        except GitCommandError as exc:
            self._rollback(staging, target)
            raise FetchError(
                f"Failed to clone {source}" + (" (timed out)" if exc.timed_out else ""),
                suggestions=self._clone_suggestions(branch, exc),
                technical_details=exc.stderr or str(exc),
            ) from exc
        except OSError as exc:
            self._rollback(staging, target)
            raise FetchError(
                f"Failed to write cache entry for {source}",
                suggestions=[f"Check that {self.cache_dir} is writable"],
                technical_details=str(exc),
            ) from exc

        return target

    def _rollback(self, staging: Path, target: Path) -> None:
        for path in (staging, target):
            try:
                remove_path(path)
            except OSError as exc:
                logger.warning("Could not remove %s during rollback: %s", path, exc)

    @staticmethod
    def _clone_suggestions(branch: str | None, exc: GitCommandError) -> list[str]:
        suggestions = ["Check your network connection and the repository URL"]
        if branch:
            suggestions.append(f"Confirm that branch '{branch}' exists")
        if exc.timed_out:
            suggestions.append("Large repositories may need a longer clone timeout")
        return suggestions

    async def refresh(
        self,
        source: str,
        branch: str | None = None,
        ttl_hours: int | None = None,
    ) -> Path:
        """Drop the entry and clone again, keeping the prior TTL unless one is given."""
        key, target = self.resolve_key(source, branch)
        if ttl_hours is None:
            prior = self.read_entry(key)
            if prior is not None:
                ttl_hours = prior.ttl_hours
        remove_path(target)
        return await self.populate(source, branch, ttl_hours=ttl_hours)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_cached_repo(
        self,
        source: str,
        branch: str | None = None,
        no_cache: bool = False,
        ttl_override: int | None = None,
    ) -> Path | None:
        """Return the cached path for *source*, or ``None`` on a miss."""
        if no_cache:
            return None
        key, target = self.resolve_key(source, branch)
        entry = self.read_entry(key)
        if entry is None or self.is_expired(entry, ttl_override):
            return None
        if not target.is_dir():
            return None
        return target

    async def ensure_cached(
        self,
        source: str,
        branch: str | None = None,
        ttl_hours: int | None = None,
        no_cache: bool = False,
    ) -> Path:
        """Return a fresh cached clone, populating on a miss."""
        cached = self.get_cached_repo(source, branch, no_cache=no_cache, ttl_override=ttl_hours)
        if cached is not None:
            logger.info("cache_hit %s", source)
            return cached
        logger.info("cache_miss %s", source)
        return await self.populate(source, branch, ttl_hours=ttl_hours)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def list_keys(self) -> list[str]:
        """Every ``<protocol>/<entry>`` directory currently in the cache."""
        if not self.cache_dir.is_dir():
            return []
        keys: list[str] = []
        for protocol_dir in sorted(self.cache_dir.iterdir()):
            if not protocol_dir.is_dir():
                continue
            for entry_dir in sorted(protocol_dir.iterdir()):
                keys.append(f"{protocol_dir.name}/{entry_dir.name}")
        return keys

    def sweep(self) -> int:
        """Purge corrupted, expired and orphaned staging entries.

        Corruption is remediated here and never raised to the caller; any
        other failure while inspecting an entry counts as corruption too.

        Returns:
            The number of entries removed.
        """
        removed = 0
        for key in self.list_keys():
            entry_dir = self.cache_dir / key
            try:
                if entry_dir.name.startswith(STAGING_PREFIX):
                    reason = "orphaned staging directory"
                elif self.is_expired(self.check_entry(key)):
                    reason = "expired"
                else:
                    continue
            except CorruptionError as exc:
                reason = f"corrupted ({exc.message})"
            except Exception as exc:  # one bad entry must not stop the sweep
                reason = f"corrupted ({type(exc).__name__}: {exc})"

            try:
                remove_path(entry_dir)
            except OSError as exc:
                logger.warning("Could not purge cache entry %s: %s", key, exc)
                continue
            logger.info("Purged cache entry %s: %s", key, reason)
            removed += 1
        return removed
