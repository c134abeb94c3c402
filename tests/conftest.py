"""Shared pytest fixtures for the create-scaffold test suite.

Provides reusable fixtures for:
- Temporary cache and project directories
- A local template tree with a versioned manifest and a setup script
- A real git repository holding that template (integration tests)
- Scripted operator prompts
- Mock subprocess helpers
"""

from __future__ import annotations

import copy
import json
import subprocess
import textwrap
from pathlib import Path
from typing import Any, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from create_scaffold.config import Config, WorkflowConfig
from create_scaffold.sandbox import create_context, create_tools


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    return cache_dir


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Parent directory in which workflows create projects."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


SAMPLE_MANIFEST: dict[str, Any] = {
    "id": "web-starter",
    "name": "Web Starter",
    "version": "2.1.0",
    "schemaVersion": "1.0.0",
    "description": "A small web starter template",
    "placeholders": [
        {"name": "PROJECT_NAME", "description": "Project name", "required": True},
        {"name": "AUTHOR", "default": "Anonymous"},
    ],
    "constants": {"org": "acme"},
    "dimensions": {
        "deployment": {
            "type": "single",
            "values": ["node", "cloudflare-workers"],
            "default": "node",
        },
        "database": {"type": "single", "values": ["none", "postgres", "d1"], "default": "none"},
        "features": {"type": "multi", "values": ["auth", "blog"], "default": []},
    },
    "gates": {
        "cloudflare-workers": {"allowed": {"database": ["none", "d1"]}},
    },
    "featureSpecs": {
        "auth": {"label": "Authentication", "needs": {"database": "required"}},
        "blog": {"label": "Blog", "needs": {}},
    },
    "hints": {
        "features": {"auth": {"label": "Auth", "description": "Adds login pages"}},
        "deployment": {"node": {"description": "Runs on any Node host", "category": "runtime"}},
    },
    "handoffSteps": ["Run make install"],
}


SAMPLE_SETUP_SCRIPT = textwrap.dedent(
    """
    def setup(env):
        env.tools.json.merge("package.json", {"name": env.ctx.project_name})
        env.tools.files.write("SETUP_DONE.txt", "org=" + env.ctx.constants["org"])
    """
)


def write_template(root: Path, manifest: dict[str, Any] | None = None, setup_script: str | None = None) -> Path:
    """Populate *root* with a small template tree."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "template.json").write_text(
        json.dumps(SAMPLE_MANIFEST if manifest is None else manifest, indent=2), encoding="utf-8"
    )
    (root / "README.md").write_text("# ⦃PROJECT_NAME⦄\n\nBy ⦃AUTHOR⦄\n", encoding="utf-8")
    (root / "package.json").write_text(
        json.dumps({"name": "⦃PROJECT_NAME⦄", "version": "0.0.0"}), encoding="utf-8"
    )
    (root / "src").mkdir(exist_ok=True)
    (root / "src" / "main.py").write_text('print("⦃PROJECT_NAME⦄")\n', encoding="utf-8")
    assets = root / "__scaffold__"
    assets.mkdir(exist_ok=True)
    (assets / "extra.txt").write_text("author asset\n", encoding="utf-8")
    if setup_script is not None:
        (root / "_setup.py").write_text(setup_script, encoding="utf-8")
    return root


@pytest.fixture
def sample_manifest() -> dict[str, Any]:
    """A fresh copy of the versioned ``template.json`` used across tests."""
    return copy.deepcopy(SAMPLE_MANIFEST)


@pytest.fixture
def template_factory(tmp_path: Path):
    """Factory writing a template tree under ``tmp_path/templates/<name>``."""

    def factory(
        name: str = "custom",
        manifest: dict[str, Any] | None = None,
        setup_script: str | None = None,
    ) -> Path:
        return write_template(tmp_path / "templates" / name, manifest, setup_script)

    return factory


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Local template with a versioned manifest and a well-behaved setup script."""
    return write_template(tmp_path / "templates" / "web-starter", setup_script=SAMPLE_SETUP_SCRIPT)


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Real git repository whose root is a template, with one commit."""
    repo_dir = write_template(tmp_path / "remote-repo", setup_script=SAMPLE_SETUP_SCRIPT)

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=repo_dir, check=True, capture_output=True)

    git("init")
    git("config", "user.email", "test@create-scaffold.local")
    git("config", "user.name", "create-scaffold test")
    git("config", "commit.gpgsign", "false")
    git("add", ".")
    git("commit", "-m", "Initial template")
    return repo_dir


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def unattended_config(tmp_path: Path, tmp_cache_dir: Path) -> Config:
    """Config that never prompts and writes selection records under tmp_path."""
    selection_dir = tmp_path / "selections"
    selection_dir.mkdir()
    return Config(
        cache_dir=tmp_cache_dir,
        workflow=WorkflowConfig(interactive=False, max_retry_attempts=2, selection_dir=selection_dir),
    )


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------


@pytest.fixture
def setup_env(tmp_path: Path):
    """Factory returning ``(ctx, tools)`` scoped to a fresh project directory."""

    def factory(
        inputs: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
        placeholder_format: str | None = None,
    ):
        project = tmp_path / "sandbox-project"
        project.mkdir(exist_ok=True)
        ctx = create_context(
            project_name="sandbox-project",
            project_directory=project,
            cwd=tmp_path,
            inputs=inputs,
            constants={"org": "acme"},
            options=options,
        )
        return ctx, create_tools(ctx, placeholder_format)

    return factory


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


class ScriptedPrompt:
    """PromptAdapter that replays canned answers and records output."""

    def __init__(self, answers: Sequence[int] = ()) -> None:
        self.answers = list(answers)
        self.questions: list[str] = []
        self.output: list[str] = []

    def write(self, message: str) -> None:
        self.output.append(message)

    def choose(self, question: str, options: Sequence[str]) -> int:
        self.questions.append(question)
        if not self.answers:
            raise EOFError("no scripted answer left")
        return self.answers.pop(0)

    @property
    def text(self) -> str:
        return "\n".join(self.output)


@pytest.fixture
def scripted_prompt():
    return ScriptedPrompt


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing git invocations.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
                ...
    """

    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
