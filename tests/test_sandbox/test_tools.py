"""Unit tests for the setup-script capability surface (create_scaffold.sandbox.tools).

Tests cover:
- Project-root confinement of every path argument
- placeholders.replace_all / replace_in_file / apply_inputs
- files, json and text helpers
- templates rendering through the Jinja2 sandbox
- options queries and IDE presets
- logger.table output
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from create_scaffold.errors import SandboxRuntimeError
from create_scaffold.sandbox.tools import (
    deep_merge,
    find_matching_files,
    glob_to_regex,
    resolve_project_path,
)


def project_of(ctx) -> Path:
    return Path(ctx.project_dir)


class TestPathHelpers:
    @pytest.mark.unit
    def test_resolve_inside(self, tmp_path: Path):
        assert resolve_project_path(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()

    @pytest.mark.unit
    @pytest.mark.parametrize("relative", ["../x", "/etc/passwd", "a/../../x", ""])
    def test_resolve_outside(self, tmp_path: Path, relative):
        with pytest.raises(SandboxRuntimeError):
            resolve_project_path(tmp_path, relative)

    @pytest.mark.unit
    def test_glob_semantics(self):
        assert glob_to_regex("**/*.py").match("a/b/c.py")
        assert glob_to_regex("**/*.py").match("c.py")
        assert not glob_to_regex("*.py").match("a/c.py")
        assert glob_to_regex("src/?.md").match("src/a.md")

    @pytest.mark.unit
    def test_find_matching_files(self, tmp_path: Path):
        (tmp_path / "src").mkdir()
        (tmp_path / "a.md").write_text("", encoding="utf-8")
        (tmp_path / "src" / "b.md").write_text("", encoding="utf-8")
        (tmp_path / "src" / "c.txt").write_text("", encoding="utf-8")
        found = find_matching_files(tmp_path, ["*.md", "src/*.txt"])
        assert [p.name for p in found] == ["a.md", "c.txt"]

    @pytest.mark.unit
    def test_deep_merge_replaces_lists(self):
        merged = deep_merge({"a": {"x": 1, "l": [1, 2]}, "b": 1}, {"a": {"y": 2, "l": [3]}})
        assert merged == {"a": {"x": 1, "y": 2, "l": [3]}, "b": 1}


class TestPlaceholdersApi:
    @pytest.mark.unit
    def test_replace_all_counts_changed_files(self, setup_env):
        ctx, tools = setup_env()
        root = project_of(ctx)
        (root / "a.txt").write_text("⦃NAME⦄", encoding="utf-8")
        (root / "b.txt").write_text("nothing", encoding="utf-8")
        assert tools.placeholders.replace_all({"NAME": "demo"}) == 1
        assert (root / "a.txt").read_text(encoding="utf-8") == "demo"

    @pytest.mark.unit
    def test_replace_all_with_selector(self, setup_env):
        ctx, tools = setup_env()
        root = project_of(ctx)
        (root / "a.md").write_text("⦃N⦄", encoding="utf-8")
        (root / "a.txt").write_text("⦃N⦄", encoding="utf-8")
        assert tools.placeholders.replace_all({"N": 1}, "*.md") == 1
        assert (root / "a.txt").read_text(encoding="utf-8") == "⦃N⦄"

    @pytest.mark.unit
    def test_none_value_rejected(self, setup_env):
        _, tools = setup_env()
        with pytest.raises(SandboxRuntimeError, match="cannot be None"):
            tools.placeholders.replace_all({"NAME": None})

    @pytest.mark.unit
    def test_replace_in_file(self, setup_env):
        ctx, tools = setup_env(placeholder_format="mustache")
        (project_of(ctx) / "f.txt").write_text("{{ X }}", encoding="utf-8")
        assert tools.placeholders.replace_in_file("f.txt", {"X": "y"}) is True
        with pytest.raises(SandboxRuntimeError, match="File not found"):
            tools.placeholders.replace_in_file("missing.txt", {"X": "y"})

    @pytest.mark.unit
    def test_apply_inputs_adds_package_name(self, setup_env):
        ctx, tools = setup_env(inputs={"AUTHOR": "Ada"})
        target = project_of(ctx) / "pkg.json"
        target.write_text('{"name": "⦃PACKAGE_NAME⦄", "author": "⦃AUTHOR⦄"}', encoding="utf-8")
        assert tools.placeholders.apply_inputs() == 1
        assert json.loads(target.read_text(encoding="utf-8")) == {"name": "sandbox-project", "author": "Ada"}

    @pytest.mark.unit
    def test_inputs_api(self, setup_env):
        _, tools = setup_env(inputs={"AUTHOR": "Ada"})
        assert tools.inputs.get("AUTHOR") == "Ada"
        assert tools.inputs.get("MISSING", "x") == "x"
        assert dict(tools.inputs.all()) == {"AUTHOR": "Ada"}


class TestFilesApi:
    @pytest.mark.unit
    def test_write_copy_move_remove(self, setup_env):
        ctx, tools = setup_env()
        root = project_of(ctx)
        tools.files.ensure_dirs(["docs", "src/lib"])
        tools.files.write("docs/a.txt", "A")
        tools.files.copy("docs/a.txt", "docs/b.txt")
        tools.files.move("docs/b.txt", "src/lib/c.txt")
        assert tools.files.exists("docs/a.txt")
        assert not tools.files.exists("docs/b.txt")
        assert (root / "src" / "lib" / "c.txt").read_text(encoding="utf-8") == "A"
        tools.files.remove("src")
        assert not (root / "src").exists()

    @pytest.mark.unit
    def test_copy_refuses_overwrite(self, setup_env):
        _, tools = setup_env()
        tools.files.write("a.txt", "1")
        tools.files.write("b.txt", "2")
        with pytest.raises(SandboxRuntimeError, match="already exists"):
            tools.files.copy("a.txt", "b.txt")
        tools.files.copy("a.txt", "b.txt", overwrite=True)

    @pytest.mark.unit
    def test_remove_project_root_refused(self, setup_env):
        _, tools = setup_env()
        with pytest.raises(SandboxRuntimeError, match="project directory itself"):
            tools.files.remove(".")

    @pytest.mark.unit
    def test_escape_refused(self, setup_env):
        _, tools = setup_env()
        with pytest.raises(SandboxRuntimeError):
            tools.files.write("../outside.txt", "x")


class TestJsonApi:
    @pytest.mark.unit
    def test_merge_creates_and_merges(self, setup_env):
        ctx, tools = setup_env()
        tools.json.merge("package.json", {"scripts": {"dev": "vite"}, "keywords": ["a"]})
        merged = tools.json.merge("package.json", {"scripts": {"build": "vite build"}, "keywords": ["b"]})
        assert merged == {"scripts": {"dev": "vite", "build": "vite build"}, "keywords": ["b"]}
        assert tools.json.read("package.json") == merged

    @pytest.mark.unit
    def test_update_mutating_draft(self, setup_env):
        _, tools = setup_env()
        tools.json.write("a.json", {"n": 1})

        def bump(draft):
            draft["n"] += 1

        assert tools.json.update("a.json", bump) == {"n": 2}
        assert tools.json.update("a.json", lambda d: {"replaced": True}) == {"replaced": True}

    @pytest.mark.unit
    def test_read_errors(self, setup_env):
        ctx, tools = setup_env()
        (project_of(ctx) / "bad.json").write_text("{", encoding="utf-8")
        with pytest.raises(SandboxRuntimeError, match="Failed to read JSON"):
            tools.json.read("bad.json")
        with pytest.raises(SandboxRuntimeError, match="not found"):
            tools.json.read("none.json")

    @pytest.mark.unit
    def test_write_frozen_values(self, setup_env):
        ctx, tools = setup_env(options={"by_dimension": {"features": ["auth"]}})
        tools.json.write("opts.json", {"dims": ctx.options.by_dimension})
        assert tools.json.read("opts.json") == {"dims": {"features": ["auth"]}}


class TestTextApi:
    @pytest.mark.unit
    def test_append_and_replace(self, setup_env):
        _, tools = setup_env()
        tools.text.write("notes.md", "a a\n")
        tools.text.append("notes.md", "b\n")
        assert tools.text.replace("notes.md", "a", "z") == 2
        assert tools.text.read("notes.md") == "z z\nb\n"

    @pytest.mark.unit
    def test_insert_after_is_idempotent(self, setup_env):
        _, tools = setup_env()
        tools.text.write(".env", "# app\nPORT=3000\n")
        assert tools.text.insert_after(".env", "# app", "DEBUG=1") is True
        assert tools.text.insert_after(".env", "# app", "DEBUG=1") is False
        assert tools.text.read(".env") == "# app\nDEBUG=1\nPORT=3000\n"

    @pytest.mark.unit
    def test_insert_after_missing_marker(self, setup_env):
        _, tools = setup_env()
        tools.text.write("x.txt", "hello")
        with pytest.raises(SandboxRuntimeError, match="not found"):
            tools.text.insert_after("x.txt", "# nope", "line")

    @pytest.mark.unit
    def test_replace_between(self, setup_env):
        _, tools = setup_env()
        tools.text.write("r.md", "top\n<!-- s -->\nold\n<!-- e -->\nend\n")
        tools.text.replace_between("r.md", "<!-- s -->", "<!-- e -->", "new")
        assert tools.text.read("r.md") == "top\n<!-- s -->\nnew\n<!-- e -->\nend\n"


class TestTemplatesApi:
    @pytest.mark.unit
    def test_render_string(self, setup_env):
        _, tools = setup_env()
        assert tools.templates.render_string("Hi {{ name }}!", {"name": "Ada"}) == "Hi Ada!"

    @pytest.mark.unit
    def test_undefined_variable_fails(self, setup_env):
        _, tools = setup_env()
        with pytest.raises(SandboxRuntimeError, match="Template rendering failed"):
            tools.templates.render_string("{{ missing }}", {})

    @pytest.mark.unit
    def test_render_file(self, setup_env):
        ctx, tools = setup_env()
        tools.files.write("tpl/readme.j2", "# {{ title }}\n")
        tools.templates.render_file("tpl/readme.j2", "README.md", {"title": "Demo"})
        assert (project_of(ctx) / "README.md").read_text(encoding="utf-8") == "# Demo\n"

    @pytest.mark.unit
    def test_copy_from_author_assets(self, setup_env):
        ctx, tools = setup_env()
        tools.files.write("__scaffold__/configs/app.json", '{"env": "dev"}')
        tools.files.write("__scaffold__/configs/db.json", '{"host": "localhost"}')

        tools.templates.copy("configs", "src/configs")

        assert tools.json.read("src/configs/app.json") == {"env": "dev"}
        assert tools.json.read("src/configs/db.json") == {"host": "localhost"}
        with pytest.raises(SandboxRuntimeError, match="Target already exists"):
            tools.templates.copy("configs", "src/configs")
        tools.templates.copy("configs/app.json", "src/configs/app.json", overwrite=True)

    @pytest.mark.unit
    def test_copy_stays_inside_assets(self, setup_env):
        _, tools = setup_env()
        tools.files.write("README.md", "root file")
        with pytest.raises(SandboxRuntimeError, match="Asset not found"):
            tools.templates.copy("missing", "out")
        with pytest.raises(SandboxRuntimeError, match="within the project directory"):
            tools.templates.copy("../README.md", "copy.md")


class TestOptionsApi:
    @pytest.mark.unit
    def test_queries(self, setup_env):
        _, tools = setup_env(
            options={"raw": ["docs"], "byDimension": {"database": "postgres", "features": ["auth", "blog"]}}
        )
        options = tools.options
        assert options.has("docs")
        assert options.has("postgres")
        assert options.has("auth")
        assert not options.has("payments")
        assert options.list() == ["docs"]
        assert options.dimension("database") == "postgres"
        assert options.in_dimension("features", "blog")
        assert not options.in_dimension("database", "d1")
        assert options.when("auth", lambda: "ran") == "ran"
        assert options.when("payments", lambda: "ran") is None


class TestIdeApi:
    @pytest.mark.unit
    def test_apply_vscode_preset_merges(self, setup_env):
        ctx, tools = setup_env()
        tools.json.write(".vscode/settings.json", {"editor.tabSize": 4})
        written = tools.ide.apply_preset("VSCode")
        assert ".vscode/settings.json" in written
        settings = tools.json.read(".vscode/settings.json")
        assert settings["editor.tabSize"] == 4
        assert settings["editor.formatOnSave"] is True
        assert (project_of(ctx) / ".vscode" / "extensions.json").exists()

    @pytest.mark.unit
    def test_kiro_uses_project_name(self, setup_env):
        _, tools = setup_env()
        tools.ide.apply_preset("kiro")
        assert tools.json.read(".kiro/settings.json")["kiro.projectName"] == "sandbox-project"

    @pytest.mark.unit
    def test_unknown_preset(self, setup_env):
        _, tools = setup_env()
        assert set(tools.ide.presets) == {"kiro", "vscode", "cursor", "windsurf"}
        with pytest.raises(SandboxRuntimeError, match="Unsupported IDE preset"):
            tools.ide.apply_preset("emacs")


class TestLoggerApi:
    @pytest.mark.unit
    def test_info_and_warn(self, setup_env):
        _, tools = setup_env()
        logger = MagicMock()
        api = type(tools.logger)(logger)
        api.info("hello", {"a": 1})
        api.warn("careful")
        logger.info.assert_called_once_with("%s%s", "hello", " {'a': 1}")
        logger.warning.assert_called_once_with("%s%s", "careful", "")

    @pytest.mark.unit
    def test_table_prints(self, setup_env):
        _, tools = setup_env()
        with patch("create_scaffold.sandbox.tools.console") as console:
            tools.logger.table([{"file": "a"}, {"file": "b", "status": "ok"}])
            tools.logger.table([])
        console.print.assert_called_once()
