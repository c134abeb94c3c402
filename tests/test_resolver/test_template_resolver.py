"""Unit tests for TemplateResolver (create_scaffold.resolver.resolver).

Tests cover:
- Local templates resolved without touching the cache
- Shorthand with branch and subpath ending in the cache entry's subdirectory
- Explicit branch argument vs. branch fragment precedence
- Invalid identifiers rejected before any I/O
- User aliases and the static registry
- Archive and tarball URLs rejected with suggestions
- URL query parameters exposed as template parameters
- SSH (git@host:path) URLs keeping their fragment branch and subpath
- template.json loading and fallback
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from create_scaffold.cache.manager import RepositoryCache
from create_scaffold.errors import InputValidationError
from create_scaffold.resolver.metadata import load_template_metadata
from create_scaffold.resolver.resolver import TemplateResolver


def cache_mock(root: Path) -> MagicMock:
    cache = MagicMock(spec=RepositoryCache)
    cache.ensure_cached = AsyncMock(return_value=root)
    return cache


class TestLocalResolution:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_local_template(self, template_dir: Path):
        cache = cache_mock(Path("/unused"))
        resolver = TemplateResolver(cache)

        resolved = await resolver.resolve(str(template_dir))

        assert resolved.path == template_dir.resolve()
        assert resolved.metadata.id == "web-starter"
        assert resolved.source.kind == "local"
        cache.ensure_cached.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_manifest_falls_back(self, tmp_path: Path):
        bare = tmp_path / "bare-template"
        bare.mkdir()
        resolved = await TemplateResolver(cache_mock(bare)).resolve(str(bare))
        assert resolved.metadata.id == "bare-template"
        assert resolved.metadata.name == "bare-template"


class TestRemoteResolution:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shorthand_branch_and_subpath_round_trip(self, tmp_cache_dir: Path):
        cache = RepositoryCache(tmp_cache_dir)

        async def fake_git(*args, cwd=None, timeout=60.0):
            if args[0] == "clone":
                staging = Path(args[-1])
                (staging / "templates" / "web").mkdir(parents=True)
            return "", ""

        with patch("create_scaffold.cache.manager.run_git", fake_git):
            resolved = await TemplateResolver(cache).resolve("owner/repo#feature-x/templates/web")

        assert resolved.path == tmp_cache_dir / "https" / "owner-repo-feature-x" / "templates" / "web"
        assert resolved.path.is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fragment_branch_wins_over_argument(self, tmp_path: Path):
        cache = cache_mock(tmp_path)
        await TemplateResolver(cache).resolve("owner/repo#dev", branch="main")
        cache.ensure_cached.assert_awaited_once_with("owner/repo", "dev", ttl_hours=None, no_cache=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_branch_argument_used_for_plain_shorthand(self, tmp_path: Path):
        cache = cache_mock(tmp_path)
        await TemplateResolver(cache).resolve("owner/repo", branch="release", no_cache=True, ttl_hours=2)
        cache.ensure_cached.assert_awaited_once_with("owner/repo", "release", ttl_hours=2, no_cache=True)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_github_tree_url(self, tmp_path: Path):
        (tmp_path / "pkg").mkdir()
        cache = cache_mock(tmp_path)
        resolved = await TemplateResolver(cache).resolve("https://github.com/o/r/tree/next/pkg")
        assert resolved.path == tmp_path / "pkg"
        cache.ensure_cached.assert_awaited_once_with("o/r", "next", ttl_hours=None, no_cache=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generic_url_parameters(self, tmp_path: Path):
        cache = cache_mock(tmp_path)
        resolved = await TemplateResolver(cache).resolve("https://git.example.com/t/tpl.git?author=Ada")
        assert resolved.parameters == {"author": "Ada"}
        cache.ensure_cached.assert_awaited_once_with(
            "https://git.example.com/t/tpl.git", None, ttl_hours=None, no_cache=False
        )


    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ssh_url_with_branch_and_subpath(self, tmp_path: Path):
        (tmp_path / "templates" / "web").mkdir(parents=True)
        cache = cache_mock(tmp_path)
        resolved = await TemplateResolver(cache).resolve("git@github.com:owner/repo.git#dev/templates/web")
        assert resolved.path == tmp_path / "templates" / "web"
        cache.ensure_cached.assert_awaited_once_with(
            "git@github.com:owner/repo.git", "dev", ttl_hours=None, no_cache=False
        )


class TestRejections:
    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["owner/repo;ls", "owner/re|po", "owner/`id`", "owner/repo\x00"])
    async def test_invalid_identifier_no_io(self, tmp_path: Path, identifier):
        cache = cache_mock(tmp_path)
        with patch("create_scaffold.cache.manager.run_git", AsyncMock()) as git:
            with pytest.raises(InputValidationError):
                await TemplateResolver(cache).resolve(identifier)
        cache.ensure_cached.assert_not_awaited()
        git.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_branch_argument(self, tmp_path: Path):
        cache = cache_mock(tmp_path)
        with pytest.raises(InputValidationError):
            await TemplateResolver(cache).resolve("owner/repo", branch="x;y")
        cache.ensure_cached.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_archive_url(self, tmp_path: Path):
        with pytest.raises(InputValidationError, match="archive URLs are not supported") as exc_info:
            await TemplateResolver(cache_mock(tmp_path)).resolve(
                "https://github.com/o/r/archive/refs/tags/v1.zip"
            )
        assert exc_info.value.suggestions

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tarball_url(self, tmp_path: Path):
        with pytest.raises(InputValidationError, match="Tarball URLs are not supported"):
            await TemplateResolver(cache_mock(tmp_path)).resolve("https://example.com/t.tgz")


class TestAliasesAndRegistry:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_user_alias(self, tmp_path: Path):
        cache = cache_mock(tmp_path)
        resolver = TemplateResolver(cache, aliases={"acme": {"web": "acme-org/web-template#v2"}})
        await resolver.resolve("acme/web")
        cache.ensure_cached.assert_awaited_once_with(
            "acme-org/web-template", "v2", ttl_hours=None, no_cache=False
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_alias_target_is_validated(self, tmp_path: Path):
        resolver = TemplateResolver(cache_mock(tmp_path), aliases={"acme": {"web": "evil/repo;ls"}})
        with pytest.raises(InputValidationError):
            await resolver.resolve("acme/web")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_static_registry(self, tmp_path: Path):
        (tmp_path / "apps" / "web").mkdir(parents=True)
        cache = cache_mock(tmp_path)
        resolver = TemplateResolver(cache, registry={"official": {"web": "acme/mono/apps/web"}})
        resolved = await resolver.resolve("registry/web")
        assert resolved.path == tmp_path / "apps" / "web"
        cache.ensure_cached.assert_awaited_once_with("acme/mono", None, ttl_hours=None, no_cache=False)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_namespace(self, tmp_path: Path):
        resolver = TemplateResolver(cache_mock(tmp_path), registry={"official": {}})
        with pytest.raises(InputValidationError, match="Unknown registry namespace"):
            await resolver.resolve("community/nope/web")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_template(self, tmp_path: Path):
        resolver = TemplateResolver(cache_mock(tmp_path), registry={"official": {"a": "o/r"}})
        with pytest.raises(InputValidationError, match="not found in namespace") as exc_info:
            await resolver.resolve("registry/b")
        assert "a" in exc_info.value.suggestions[0]


class TestMetadata:
    @pytest.mark.unit
    def test_malformed_manifest_falls_back(self, tmp_path: Path, caplog):
        (tmp_path / "template.json").write_text("{broken", encoding="utf-8")
        manifest = load_template_metadata(tmp_path)
        assert manifest.id == tmp_path.name

    @pytest.mark.unit
    def test_versioned_manifest(self, template_dir: Path):
        manifest = load_template_metadata(template_dir)
        assert manifest.is_versioned
        assert set(manifest.all_dimensions()) == {"deployment", "database", "features"}
        assert manifest.feature_specs["auth"].needs == {"database": "required"}
