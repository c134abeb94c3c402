"""Editor configuration presets applied by ``tools.ide.apply_preset``.

Each preset is a list of JSON resources that are deep-merged into whatever
already exists at the target path, so a template's own settings survive.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from create_scaffold.sandbox.context import SetupContext

PresetResource = tuple[str, dict[str, Any]]


def _kiro(ctx: SetupContext) -> list[PresetResource]:
    return [
        (
            ".kiro/settings.json",
            {
                "editor.tabSize": 2,
                "editor.insertSpaces": True,
                "files.autoSave": "afterDelay",
                "kiro.projectName": ctx.project_name,
            },
        ),
        (
            ".kiro/tasks.json",
            {
                "version": "2.0.0",
                "tasks": [
                    {"label": "Build", "type": "shell", "command": "make build", "group": "build"},
                ],
            },
        ),
    ]


def _vscode(ctx: SetupContext) -> list[PresetResource]:
    return [
        (
            ".vscode/settings.json",
            {
                "editor.formatOnSave": True,
                "files.trimTrailingWhitespace": True,
                "files.insertFinalNewline": True,
            },
        ),
        (
            ".vscode/extensions.json",
            {"recommendations": ["editorconfig.editorconfig", "eamodio.gitlens"]},
        ),
        (
            ".vscode/launch.json",
            {
                "version": "0.2.0",
                "configurations": [],
            },
        ),
    ]


def _cursor(ctx: SetupContext) -> list[PresetResource]:
    return [
        (
            ".cursor/config.json",
            {"useGitIgnore": True, "assistant": {"style": "pair-programmer"}},
        ),
    ]


def _windsurf(ctx: SetupContext) -> list[PresetResource]:
    return [
        (
            ".windsurf/settings.json",
            {
                "editor.tabSize": 2,
                "files.autoSave": "onFocusChange",
                "windsurf.experimental.aiAssistance": True,
            },
        ),
    ]


IDE_PRESETS: dict[str, Callable[[SetupContext], list[PresetResource]]] = {
    "kiro": _kiro,
    "vscode": _vscode,
    "cursor": _cursor,
    "windsurf": _windsurf,
}
