"""Repository cache: shallow git clones keyed by source and branch, with TTL expiry."""

from create_scaffold.cache.git import GitCommandError, run_git
from create_scaffold.cache.manager import RepositoryCache, normalize_source
from create_scaffold.cache.models import CacheEntry, METADATA_FILE

__all__ = [
    "CacheEntry",
    "GitCommandError",
    "METADATA_FILE",
    "RepositoryCache",
    "normalize_source",
    "run_git",
]
