"""Shared utility functions for create-scaffold.

Provides JSON I/O, file-system helpers and Rich-based status output.  The
module-level ``console`` is the single Rich console used by every
user-facing message so that tests can capture or silence output in one
place.
"""

from __future__ import annotations

import asyncio
import json
import re
import shutil
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

_UNSAFE_STEM_CHARS = re.compile(r"[^\w.-]")


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON object from *path*.

    Raises:
        FileNotFoundError: The file does not exist.
        ValueError: The file is not valid JSON or holds something other
            than an object (``json.JSONDecodeError`` is a ``ValueError``).
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return data


def write_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """Write *data* as pretty-printed JSON, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n", encoding="utf-8")


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """:func:`write_json` off the event loop."""
    await asyncio.to_thread(write_json, data, path)


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def safe_file_stem(name: str, fallback: str = "template") -> str:
    """Turn an identifier such as ``acme/web starter`` into ``acme-web-starter``."""
    stem = _UNSAFE_STEM_CHARS.sub("-", name).strip(".")
    return stem or fallback


def ensure_dir(path: str | Path) -> Path:
    """Create *path* and its parents if needed; return it resolved."""
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def remove_path(path: str | Path) -> bool:
    """Delete a file or directory tree.

    Returns:
        ``True`` if something was removed, ``False`` if *path* was absent.
    """
    target = Path(path)
    if target.is_symlink() or target.is_file():
        target.unlink()
        return True
    if target.is_dir():
        shutil.rmtree(target)
        return True
    return False


def is_within(path: Path, root: Path) -> bool:
    """Return ``True`` if *path* resolves to *root* or somewhere beneath it."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """``3.7`` -> ``3.7s``, ``65.2`` -> ``1m 5s``, ``3661`` -> ``1h 1m 1s``."""
    if seconds < 60:
        return f"{max(seconds, 0.0):.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_step_header(index: int, total: int, name: str) -> None:
    """Print a rule announcing a workflow step."""
    console.print(Rule(f"[bold cyan][{index}/{total}] {escape(name)}[/bold cyan]", style="cyan"))


def print_summary_table(
    data: dict[str, Any],
    title: str = "Summary",
    headers: tuple[str, str] = ("Item", "Value"),
) -> None:
    """Print a two-column table with one row per *data* item.

    Keys and values are shown literally; Rich markup in them is escaped.
    """
    table = Table(title=escape(title), show_header=True, header_style="bold cyan")
    table.add_column(headers[0], style="dim", no_wrap=True)
    table.add_column(headers[1])
    for key, value in data.items():
        table.add_row(escape(str(key)), escape(str(value)))
    console.print(table)


def _print_styled(style: str, message: str) -> None:
    console.print(f"[{style}]{escape(message)}[/{style}]")


def print_success(message: str) -> None:
    _print_styled("bold green", message)


def print_error(message: str) -> None:
    _print_styled("bold red", message)


def print_warning(message: str) -> None:
    _print_styled("bold yellow", message)
