"""Capability surface exposed to setup scripts as ``env.tools``.

Every API is scoped to the project directory: path arguments are relative to
the project root and any attempt to resolve outside it raises
``SandboxRuntimeError``.  The APIs are synchronous so they can be called from
both plain and ``async`` setup functions.

Internal state lives in underscore-prefixed fields, which the sandbox's
source gate makes unreachable from script code.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import shutil
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment
from rich.table import Table

from create_scaffold.errors import SandboxRuntimeError
from create_scaffold.placeholders import PlaceholderFormat, get_format, replace_tokens
from create_scaffold.sandbox.context import SetupContext, deep_freeze
from create_scaffold.sandbox.presets import IDE_PRESETS
from create_scaffold.utils import console

DEFAULT_SELECTOR = "**/*"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def resolve_project_path(root: Path, relative: str, label: str = "path") -> Path:
    """Resolve *relative* against *root*, refusing anything outside it."""
    if not isinstance(relative, str) or not relative.strip():
        raise SandboxRuntimeError(f"{label} must be a non-empty string")
    base = root.resolve()
    target = (base / relative).resolve()
    if target != base and base not in target.parents:
        raise SandboxRuntimeError(f"{label} must stay within the project directory: {relative}")
    return target


def _copy_entry(src: Path, dest: Path, source: str, destination: str, overwrite: bool) -> None:
    if dest.exists() and not overwrite:
        raise SandboxRuntimeError(f"Target already exists: {destination}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        if src.is_dir():
            shutil.copytree(src, dest, dirs_exist_ok=overwrite)
        else:
            shutil.copy2(src, dest)
    except OSError as exc:
        raise SandboxRuntimeError(f"Copy failed ({source} -> {destination}): {exc}") from exc


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """``**`` spans directories, ``*`` stays within one, ``?`` is one character."""
    normalized = (pattern.strip() or DEFAULT_SELECTOR).replace("\\", "/")
    out: list[str] = []
    i = 0
    while i < len(normalized):
        if normalized.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif normalized.startswith("**", i):
            out.append(".*")
            i += 2
        elif normalized[i] == "*":
            out.append("[^/]*")
            i += 1
        elif normalized[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(normalized[i]))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def find_matching_files(root: Path, selector: str | Iterable[str] = DEFAULT_SELECTOR) -> list[Path]:
    patterns = [selector] if isinstance(selector, str) else list(selector)
    matchers = [glob_to_regex(p) for p in patterns or [DEFAULT_SELECTOR]]
    matches: list[Path] = []
    for candidate in sorted(root.rglob("*")):
        if not candidate.is_file() or candidate.is_symlink():
            continue
        relative = candidate.relative_to(root).as_posix()
        if any(m.match(relative) for m in matchers):
            matches.append(candidate)
    return matches


def deep_merge(target: Any, source: Any) -> Any:
    """Merge *source* into a copy of *target*.  Lists are replaced, not concatenated."""
    if isinstance(source, list):
        return list(source)
    if not isinstance(source, Mapping):
        return source
    result = dict(target) if isinstance(target, Mapping) else {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = deep_merge(result.get(key), value)
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _thaw(value: Any) -> Any:
    """Turn frozen mappings/tuples back into JSON-serialisable dicts/lists."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


def _stringify_replacements(replacements: Any, label: str) -> dict[str, str]:
    if not isinstance(replacements, Mapping):
        raise SandboxRuntimeError(f"{label} must be provided as a mapping")
    result: dict[str, str] = {}
    for token, value in replacements.items():
        if not isinstance(token, str) or not token.strip():
            raise SandboxRuntimeError(f"{label} keys must be non-empty strings")
        if value is None:
            raise SandboxRuntimeError(f"Replacement value for '{token}' cannot be None")
        result[token] = value if isinstance(value, str) else str(value)
    return result


# ---------------------------------------------------------------------------
# APIs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlaceholdersApi:
    _root: Path
    _format: PlaceholderFormat
    _inputs: Mapping[str, Any]
    _project_name: str

    def replace_all(self, replacements: Mapping[str, Any], selector: str | list[str] = DEFAULT_SELECTOR) -> int:
        """Replace tokens in every matching file; returns the number of files changed."""
        values = _stringify_replacements(replacements, "placeholders.replace_all replacements")
        changed = 0
        for path in find_matching_files(self._root, selector):
            try:
                original = path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError):
                continue
            updated = replace_tokens(original, values, self._format)
            if updated != original:
                path.write_text(updated, encoding="utf-8")
                changed += 1
        return changed

    def replace_in_file(self, file: str, replacements: Mapping[str, Any]) -> bool:
        values = _stringify_replacements(replacements, "placeholders.replace_in_file replacements")
        target = resolve_project_path(self._root, file, "file path")
        try:
            original = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SandboxRuntimeError(f"File not found: {file}")
        updated = replace_tokens(original, values, self._format)
        if updated == original:
            return False
        target.write_text(updated, encoding="utf-8")
        return True

    def apply_inputs(self, selector: str | list[str] = DEFAULT_SELECTOR, extra: Mapping[str, Any] | None = None) -> int:
        """Replace every placeholder input (plus ``PACKAGE_NAME``) across the project."""
        if extra is not None and not isinstance(extra, Mapping):
            raise SandboxRuntimeError("placeholders.apply_inputs extras must be a mapping")
        values = {k: v for k, v in self._inputs.items() if v is not None}
        values.setdefault("PACKAGE_NAME", self._project_name)
        values.update({k: v for k, v in (extra or {}).items() if v is not None})
        if not values:
            return 0
        return self.replace_all(values, selector)


@dataclass(frozen=True)
class InputsApi:
    _inputs: Mapping[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        if not isinstance(name, str) or not name.strip():
            raise SandboxRuntimeError("inputs.get requires a placeholder token")
        return self._inputs.get(name, default)

    def all(self) -> Mapping[str, Any]:
        return self._inputs


@dataclass(frozen=True)
class FilesApi:
    _root: Path

    def ensure_dirs(self, paths: str | list[str]) -> None:
        for rel in [paths] if isinstance(paths, str) else paths:
            resolve_project_path(self._root, rel, "directory").mkdir(parents=True, exist_ok=True)

    def exists(self, path: str) -> bool:
        return resolve_project_path(self._root, path).exists()

    def write(self, path: str, content: str) -> None:
        target = resolve_project_path(self._root, path, "file path")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(str(content), encoding="utf-8")

    def copy(self, source: str, destination: str, overwrite: bool = False) -> None:
        src = resolve_project_path(self._root, source, "source path")
        dest = resolve_project_path(self._root, destination, "destination path")
        if not src.exists():
            raise SandboxRuntimeError(f"Source not found: {source}")
        _copy_entry(src, dest, source, destination, overwrite)

    def move(self, source: str, destination: str, overwrite: bool = False) -> None:
        src = resolve_project_path(self._root, source, "source path")
        dest = resolve_project_path(self._root, destination, "destination path")
        if not src.exists():
            raise SandboxRuntimeError(f"Source not found: {source}")
        if dest.exists():
            if not overwrite:
                raise SandboxRuntimeError(f"Target already exists: {destination}")
            if dest.is_dir():
                shutil.rmtree(dest)
            else:
                dest.unlink()
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.move(str(src), str(dest))
        except OSError as exc:
            raise SandboxRuntimeError(f"Move failed ({source} -> {destination}): {exc}") from exc

    def remove(self, path: str) -> None:
        target = resolve_project_path(self._root, path, "remove path")
        if target == self._root.resolve():
            raise SandboxRuntimeError("Refusing to remove the project directory itself")
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()


@dataclass(frozen=True)
class JsonApi:
    _root: Path

    def read(self, path: str) -> Any:
        target = resolve_project_path(self._root, path, "JSON path")
        try:
            return json.loads(target.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise SandboxRuntimeError(f"JSON file not found: {path}")
        except ValueError as exc:
            raise SandboxRuntimeError(f"Failed to read JSON ({path}): {exc}") from exc

    def write(self, path: str, data: Any) -> None:
        target = resolve_project_path(self._root, path, "JSON path")
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            content = json.dumps(_thaw(data), indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise SandboxRuntimeError(f"Failed to write JSON ({path}): {exc}") from exc
        target.write_text(content + "\n", encoding="utf-8")

    def merge(self, path: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Deep-merge *patch* into the file (created if missing)."""
        if not isinstance(patch, Mapping):
            raise SandboxRuntimeError("json.merge requires a mapping patch")
        target = resolve_project_path(self._root, path, "JSON path")
        base: Any = {}
        if target.exists():
            base = self.read(path)
        merged = deep_merge(base, _thaw(patch))
        self.write(path, merged)
        return merged

    def update(self, path: str, updater: Callable[[Any], Any]) -> Any:
        """Apply *updater* to a copy of the document; a ``None`` return keeps the mutated draft."""
        if not callable(updater):
            raise SandboxRuntimeError("json.update requires an updater function")
        draft = copy.deepcopy(self.read(path))
        result = updater(draft)
        output = draft if result is None else result
        self.write(path, output)
        return output


@dataclass(frozen=True)
class TextApi:
    _root: Path

    def _read(self, path: str) -> tuple[Path, str]:
        target = resolve_project_path(self._root, path, "text file")
        try:
            return target, target.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SandboxRuntimeError(f"Text file not found: {path}")

    def read(self, path: str) -> str:
        return self._read(path)[1]

    def write(self, path: str, content: str) -> None:
        target = resolve_project_path(self._root, path, "text file")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(str(content), encoding="utf-8")

    def append(self, path: str, content: str) -> None:
        target = resolve_project_path(self._root, path, "text file")
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(str(content))

    def replace(self, path: str, search: str, replacement: str) -> int:
        """Literal replace; returns the number of occurrences replaced."""
        target, content = self._read(path)
        count = content.count(search) if search else 0
        if count:
            target.write_text(content.replace(search, replacement), encoding="utf-8")
        return count

    def insert_after(self, path: str, marker: str, block: str) -> bool:
        """Insert *block* on the line after *marker* unless it is already present."""
        if not isinstance(marker, str) or not marker:
            raise SandboxRuntimeError("text.insert_after requires a non-empty marker")
        target, content = self._read(path)
        if block.strip() and block.strip() in content:
            return False
        index = content.find(marker)
        if index == -1:
            raise SandboxRuntimeError(f'Marker "{marker}" not found in {path}')
        line_end = content.find("\n", index + len(marker))
        insert_at = len(content) if line_end == -1 else line_end + 1
        prefix = "" if line_end != -1 else "\n"
        addition = block if block.endswith("\n") else block + "\n"
        target.write_text(content[:insert_at] + prefix + addition + content[insert_at:], encoding="utf-8")
        return True

    def replace_between(self, path: str, start: str, end: str, block: str) -> None:
        """Replace everything between the *start* and *end* markers."""
        target, content = self._read(path)
        i = content.find(start)
        j = content.find(end, i + len(start)) if i != -1 else -1
        if i == -1 or j == -1:
            raise SandboxRuntimeError(f"Markers not found in {path}")
        body = block if block.endswith("\n") else block + "\n"
        updated = content[: i + len(start)] + "\n" + body + content[j:]
        target.write_text(updated, encoding="utf-8")


@dataclass(frozen=True)
class TemplatesApi:
    _root: Path
    _assets_dir: str = "__scaffold__"
    _env: SandboxedEnvironment = field(
        default_factory=lambda: SandboxedEnvironment(
            keep_trailing_newline=True, undefined=StrictUndefined
        )
    )

    def render_string(self, template: str, data: Mapping[str, Any]) -> str:
        if not isinstance(template, str):
            raise SandboxRuntimeError("templates.render_string requires a template string")
        if not isinstance(data, Mapping):
            raise SandboxRuntimeError("templates.render_string requires a data mapping")
        try:
            return self._env.from_string(template).render(**_thaw(data))
        except TemplateError as exc:
            raise SandboxRuntimeError(f"Template rendering failed: {exc}") from exc

    def render_file(self, source: str, destination: str, data: Mapping[str, Any]) -> None:
        src = resolve_project_path(self._root, source, "template source")
        dest = resolve_project_path(self._root, destination, "template destination")
        try:
            template = src.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SandboxRuntimeError(f"Template not found: {source}")
        rendered = self.render_string(template, data)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(rendered, encoding="utf-8")

    def copy(self, source: str, destination: str, overwrite: bool = False) -> None:
        """Copy a file or directory from the author assets directory into the project."""
        assets = resolve_project_path(self._root, self._assets_dir, "author assets directory")
        src = resolve_project_path(assets, source, "asset path")
        dest = resolve_project_path(self._root, destination, "destination path")
        if not src.exists():
            raise SandboxRuntimeError(f"Asset not found: {self._assets_dir}/{source}")
        _copy_entry(src, dest, source, destination, overwrite)


@dataclass(frozen=True)
class LoggerApi:
    _logger: logging.Logger

    def info(self, message: Any, data: Any = None) -> None:
        self._logger.info("%s%s", message, "" if data is None else f" {data}")

    def warn(self, message: Any, data: Any = None) -> None:
        self._logger.warning("%s%s", message, "" if data is None else f" {data}")

    def table(self, rows: list[Mapping[str, Any]]) -> None:
        rows = list(rows or [])
        if not rows:
            return
        columns: list[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(str(key))
        table = Table(show_header=True, header_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(row.get(c, "")) for c in columns))
        console.print(table)


@dataclass(frozen=True)
class OptionsApi:
    _raw: tuple[str, ...]
    _by_dimension: Mapping[str, Any]

    def has(self, name: str) -> bool:
        if name in self._raw:
            return True
        for value in self._by_dimension.values():
            if value == name or (isinstance(value, tuple) and name in value):
                return True
        return False

    def when(self, name: str, fn: Callable[[], Any]) -> Any:
        """Call *fn* if option *name* is selected.  Async callables return an awaitable."""
        if self.has(name) and callable(fn):
            return fn()
        return None

    def list(self) -> list[str]:
        return list(self._raw)

    def dimension(self, name: str) -> Any:
        return self._by_dimension.get(name)

    def in_dimension(self, name: str, value: str) -> bool:
        selected = self._by_dimension.get(name)
        if isinstance(selected, tuple):
            return value in selected
        return selected == value


@dataclass(frozen=True)
class IdeApi:
    _ctx: SetupContext
    _json: JsonApi

    @property
    def presets(self) -> tuple[str, ...]:
        return tuple(IDE_PRESETS)

    def apply_preset(self, name: str) -> list[str]:
        """Merge the named editor preset into the project; returns the files touched."""
        if not isinstance(name, str) or not name.strip():
            raise SandboxRuntimeError("apply_preset requires an IDE name")
        builder = IDE_PRESETS.get(name.strip().lower())
        if builder is None:
            raise SandboxRuntimeError(
                f"Unsupported IDE preset: {name}. Available: {', '.join(IDE_PRESETS)}"
            )
        written: list[str] = []
        for path, data in builder(self._ctx):
            self._json.merge(path, data)
            written.append(path)
        return written


@dataclass(frozen=True)
class SetupTools:
    placeholders: PlaceholdersApi
    inputs: InputsApi
    files: FilesApi
    json: JsonApi
    text: TextApi
    templates: TemplatesApi
    logger: LoggerApi
    options: OptionsApi
    ide: IdeApi


def create_tools(
    ctx: SetupContext,
    placeholder_format: str | None = None,
    logger: logging.Logger | None = None,
) -> SetupTools:
    """Build the capability object for a setup script running against *ctx*."""
    root = Path(ctx.project_dir)
    inputs = ctx.inputs if ctx.inputs is not None else deep_freeze({})
    json_api = JsonApi(root)
    return SetupTools(
        placeholders=PlaceholdersApi(root, get_format(placeholder_format), inputs, ctx.project_name),
        inputs=InputsApi(inputs),
        files=FilesApi(root),
        json=json_api,
        text=TextApi(root),
        templates=TemplatesApi(root, ctx.author_assets_dir),
        logger=LoggerApi(logger or logging.getLogger("create_scaffold.setup")),
        options=OptionsApi(ctx.options.raw, ctx.options.by_dimension),
        ide=IdeApi(ctx, json_api),
    )
