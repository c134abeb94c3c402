"""Copying a resolved template tree into the project directory."""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path

from create_scaffold.cache.models import METADATA_FILE
from create_scaffold.log import get_logger

IGNORED_ENTRIES: frozenset[str] = frozenset({".git", ".template-undo.json", METADATA_FILE})

logger = get_logger("workflow.copy")


def _copy_tree(source: Path, destination: Path, ignored: frozenset[str]) -> int:
    destination.mkdir(parents=True, exist_ok=True)
    copied = 0
    for entry in sorted(source.iterdir()):
        if entry.name in ignored:
            continue
        target = destination / entry.name
        if entry.is_dir() and not entry.is_symlink():
            copied += _copy_tree(entry, target, ignored)
        else:
            shutil.copy2(entry, target, follow_symlinks=False)
            logger.debug("copied %s -> %s", entry, target)
            copied += 1
    return copied


def _walk(source: Path, ignored: frozenset[str], prefix: str = "") -> Iterator[tuple[str, bool]]:
    for entry in sorted(source.iterdir()):
        if entry.name in ignored:
            continue
        relative = f"{prefix}{entry.name}"
        if entry.is_dir() and not entry.is_symlink():
            yield relative, True
            yield from _walk(entry, ignored, f"{relative}/")
        else:
            yield relative, False


def list_template_entries(source: Path, extra_ignored: Iterable[str] = ()) -> list[tuple[str, bool]]:
    """The ``(relative_path, is_dir)`` pairs :func:`copy_template` would create, in copy order."""
    return list(_walk(Path(source), IGNORED_ENTRIES | frozenset(extra_ignored)))


async def copy_template(
    source: Path,
    destination: Path,
    extra_ignored: Iterable[str] = (),
) -> int:
    """Copy *source* into *destination*, skipping VCS and cache bookkeeping.

    Returns the number of files copied.  Any ``.git`` left in the
    destination is removed afterwards.
    """
    ignored = IGNORED_ENTRIES | frozenset(extra_ignored)
    copied = await asyncio.to_thread(_copy_tree, Path(source), Path(destination), ignored)
    git_dir = Path(destination) / ".git"
    if git_dir.exists():
        await asyncio.to_thread(shutil.rmtree, git_dir, True)
    return copied
