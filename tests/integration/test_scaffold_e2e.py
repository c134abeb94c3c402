"""Integration tests for the cache-then-scaffold path.

These tests run real ``git`` against a throwaway local repository (see the
``tmp_git_repo`` fixture), populate the on-disk cache, and create a project
from the cached clone with the unattended workflow.

No network access is required.
"""

from __future__ import annotations

import json
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from create_scaffold.cache import manager as cache_manager
from create_scaffold.cache.manager import RepositoryCache
from create_scaffold.cache.models import METADATA_FILE
from create_scaffold.errors import FetchError
from create_scaffold.resolver.metadata import load_template_metadata
from create_scaffold.utils import load_json
from create_scaffold.workflow.orchestrator import WorkflowOrchestrator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def spy_run_git() -> AsyncMock:
    """AsyncMock that records calls but still runs the real git wrapper."""
    return AsyncMock(side_effect=cache_manager.run_git)


def clone_calls(spy: AsyncMock) -> list[tuple]:
    return [c.args for c in spy.await_args_list if c.args and c.args[0] == "clone"]


def later_clock(hours: float):
    return lambda: datetime.now(timezone.utc) + timedelta(hours=hours)


# ---------------------------------------------------------------------------
# Cache lifecycle
# ---------------------------------------------------------------------------


class TestCacheLifecycle:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_populate_then_hit(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        cache = RepositoryCache(tmp_cache_dir)
        source = str(tmp_git_repo)

        path = await cache.ensure_cached(source, ttl_hours=24)

        assert path == tmp_cache_dir / "local" / "remote-repo"
        assert (path / "template.json").is_file()
        assert (path / ".git").is_dir()
        entry = cache.read_entry("local/remote-repo")
        assert entry is not None
        assert entry.ttl_hours == 24
        assert entry.source_url == source
        assert not cache.detect_corruption("local/remote-repo")
        assert not [p for p in tmp_cache_dir.joinpath("local").iterdir() if p.name.startswith(".staging-")]

        spy = spy_run_git()
        with patch.object(cache_manager, "run_git", spy):
            again = await cache.ensure_cached(source, ttl_hours=24)
        assert again == path
        spy.assert_not_awaited()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_expired_entry_is_recloned(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        source = str(tmp_git_repo)
        first = await RepositoryCache(tmp_cache_dir).ensure_cached(source, ttl_hours=24)
        stamp = load_json(first / METADATA_FILE)["last_updated"]

        later = RepositoryCache(tmp_cache_dir, clock=later_clock(25))
        spy = spy_run_git()
        with patch.object(cache_manager, "run_git", spy):
            path = await later.ensure_cached(source)

        assert len(clone_calls(spy)) == 1
        assert load_json(path / METADATA_FILE)["last_updated"] != stamp
        assert later.read_entry("local/remote-repo").ttl_hours == 24

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_no_cache_forces_clone(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        cache = RepositoryCache(tmp_cache_dir)
        await cache.ensure_cached(str(tmp_git_repo))
        spy = spy_run_git()
        with patch.object(cache_manager, "run_git", spy):
            await cache.ensure_cached(str(tmp_git_repo), no_cache=True)
        assert len(clone_calls(spy)) == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_branch_entry(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        subprocess.run(["git", "branch", "feature/x"], cwd=tmp_git_repo, check=True, capture_output=True)
        cache = RepositoryCache(tmp_cache_dir)

        path = await cache.ensure_cached(str(tmp_git_repo), "feature/x")

        assert path == tmp_cache_dir / "local" / "remote-repo-feature-x"
        assert cache.read_entry("local/remote-repo-feature-x").branch == "feature/x"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_branch_leaves_nothing(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        cache = RepositoryCache(tmp_cache_dir)
        with pytest.raises(FetchError, match="Failed to clone") as exc_info:
            await cache.populate(str(tmp_git_repo), "does-not-exist")
        assert "Confirm that branch 'does-not-exist' exists" in exc_info.value.suggestions
        assert cache.list_keys() == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_sweep_drops_expired(self, tmp_cache_dir: Path, tmp_git_repo: Path):
        await RepositoryCache(tmp_cache_dir).ensure_cached(str(tmp_git_repo), ttl_hours=1)
        assert RepositoryCache(tmp_cache_dir).sweep() == 0
        assert RepositoryCache(tmp_cache_dir, clock=later_clock(2)).sweep() == 1
        assert not (tmp_cache_dir / "local" / "remote-repo").exists()


# ---------------------------------------------------------------------------
# Scaffold from the cache
# ---------------------------------------------------------------------------


class TestScaffoldFromCache:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_project_created_from_cached_clone(
        self, tmp_cache_dir, tmp_git_repo, unattended_config, project_root, scripted_prompt
    ):
        template = await RepositoryCache(tmp_cache_dir).ensure_cached(str(tmp_git_repo))
        metadata = load_template_metadata(template)
        project = project_root / "shop"

        result = await WorkflowOrchestrator(
            unattended_config,
            project,
            template,
            "web-starter",
            metadata=metadata,
            placeholders={"PROJECT_NAME": "shop", "AUTHOR": "Ada"},
            options=["database=postgres", "features=auth"],
            prompt=scripted_prompt(),
        ).run()

        assert result.success
        assert (project / "README.md").read_text(encoding="utf-8") == "# shop\n\nBy Ada\n"
        assert json.loads((project / "package.json").read_text(encoding="utf-8"))["name"] == "shop"
        assert (project / "SETUP_DONE.txt").is_file()
        for leftover in (".git", METADATA_FILE, "_setup.py", "__scaffold__", ".create-scaffold-workflow.json"):
            assert not (project / leftover).exists()

        record = load_json(result.selection_path)
        assert record["selections"]["database"] == "postgres"
        assert record["derived"]["needDb"] is True
        # The cached clone itself is untouched.
        assert (template / "_setup.py").is_file()
