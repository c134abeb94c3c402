"""Dry-run planning.

Walks a resolved template the way the copy and placeholder steps would and
records what they would do, without creating the project directory or
touching anything inside it.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from rich.markup import escape
from rich.panel import Panel

from create_scaffold.placeholders import PlaceholderFormat, extract_placeholders
from create_scaffold.utils import console, print_summary_table, print_warning
from create_scaffold.workflow.copy import list_template_entries

DIRECTORY_CREATE = "directory_create"
FILE_COPY = "file_copy"
PLACEHOLDER_REPLACE = "placeholder_replace"
SETUP_SCRIPT = "setup_script"

_LABELS = {
    DIRECTORY_CREATE: "[cyan]mkdir [/cyan]",
    FILE_COPY: "[green]copy  [/green]",
    PLACEHOLDER_REPLACE: "[yellow]fill  [/yellow]",
    SETUP_SCRIPT: "[magenta]setup [/magenta]",
}


@dataclass
class PlannedOperation:
    kind: str
    path: str
    detail: str = ""


@dataclass
class ScaffoldPlan:
    """Everything a run would do, relative to the project directory."""

    template_name: str
    template_path: Path
    project_directory: Path
    operations: list[PlannedOperation] = field(default_factory=list)
    placeholders: dict[str, str] = field(default_factory=dict)
    missing_placeholders: list[str] = field(default_factory=list)
    # Tokens present in template files that no value would fill.
    unresolved_tokens: dict[str, list[str]] = field(default_factory=dict)

    def count(self, kind: str) -> int:
        return sum(1 for op in self.operations if op.kind == kind)

    def paths(self, kind: str) -> list[str]:
        return [op.path for op in self.operations if op.kind == kind]


def _is_under(relative: str, directory: str) -> bool:
    return relative == directory or relative.startswith(f"{directory}/")


def build_plan(
    template_path: Path,
    project_directory: Path,
    template_name: str,
    placeholders: dict[str, str],
    missing_placeholders: list[str],
    fmt: PlaceholderFormat,
    script_name: str,
    assets_dir: str,
    extra_ignored: tuple[str, ...] = (),
) -> ScaffoldPlan:
    plan = ScaffoldPlan(
        template_name=template_name,
        template_path=Path(template_path),
        project_directory=Path(project_directory),
        placeholders=dict(placeholders),
        missing_placeholders=list(missing_placeholders),
    )
    for relative, is_dir in list_template_entries(template_path, extra_ignored):
        if is_dir:
            plan.operations.append(PlannedOperation(DIRECTORY_CREATE, relative))
            continue
        if relative == script_name:
            plan.operations.append(
                PlannedOperation(SETUP_SCRIPT, relative, "run in the sandbox, then removed")
            )
            continue
        plan.operations.append(PlannedOperation(FILE_COPY, relative))
        if _is_under(relative, assets_dir):
            continue
        try:
            text = (Path(template_path) / relative).read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            continue
        tokens = extract_placeholders(text, fmt)
        filled = [token for token in tokens if token in placeholders]
        if filled:
            plan.operations.append(PlannedOperation(PLACEHOLDER_REPLACE, relative, ", ".join(filled)))
        unfilled = [token for token in tokens if token not in placeholders]
        if unfilled:
            plan.unresolved_tokens[relative] = unfilled
    return plan


def print_plan(plan: ScaffoldPlan) -> None:
    console.print(
        Panel(
            f"[bold]Template[/bold] : {escape(plan.template_name)}\n"
            f"[bold]Source[/bold]   : {escape(str(plan.template_path))}\n"
            f"[bold]Target[/bold]   : {escape(str(plan.project_directory))}",
            title="[bold yellow]Dry run[/bold yellow]",
            border_style="yellow",
        )
    )

    counts = Counter(op.kind for op in plan.operations)
    print_summary_table(
        {
            "Directories to create": counts[DIRECTORY_CREATE],
            "Files to copy": counts[FILE_COPY],
            "Files with placeholders": counts[PLACEHOLDER_REPLACE],
            "Setup scripts": counts[SETUP_SCRIPT],
            "Placeholder values": len(plan.placeholders),
        },
        title="Planned operations",
        headers=("Operation", "Count"),
    )
    for op in plan.operations:
        detail = f" [dim]({escape(op.detail)})[/dim]" if op.detail else ""
        console.print(f"  {_LABELS[op.kind]} {escape(op.path)}{detail}")

    if plan.missing_placeholders:
        print_warning(f"Missing required placeholders: {', '.join(plan.missing_placeholders)}")
    for relative, tokens in plan.unresolved_tokens.items():
        print_warning(f"{relative}: no value for {', '.join(tokens)}")
    console.print("\n[dim]Dry run only; no changes were made.[/dim]")
