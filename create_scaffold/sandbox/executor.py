"""Runs an untrusted template setup script against a capability object.

A setup script is a Python source file that defines exactly one top-level
function::

    def setup(env):
        env.tools.placeholders.apply_inputs()

    # or

    async def setup(env):
        ...

The source is checked with :mod:`ast` before it is compiled.  Imports and
underscore-prefixed attribute access are rejected up front, which keeps the
script away from ``__class__``/``__globals__`` style escapes.  The module
body then runs with a curated ``__builtins__`` in which filesystem, process
and dynamic-evaluation primitives are replaced by stubs that raise a
``SandboxRuntimeError`` naming the primitive.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import inspect
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from create_scaffold.errors import SandboxContractError, SandboxError, SandboxRuntimeError
from create_scaffold.log import get_logger
from create_scaffold.sandbox.context import SetupContext
from create_scaffold.sandbox.tools import SetupTools

DEFAULT_TIMEOUT = 30.0
ENTRYPOINT = "setup"

DISABLED_PRIMITIVES = (
    "open",
    "exec",
    "eval",
    "compile",
    "__import__",
    "input",
    "breakpoint",
    "globals",
    "locals",
    "vars",
    "getattr",
    "setattr",
    "delattr",
    "memoryview",
    "help",
    "exit",
    "quit",
)

DISABLED_MODULES = (
    "os",
    "sys",
    "subprocess",
    "socket",
    "shutil",
    "pathlib",
    "importlib",
    "io",
)

SAFE_BUILTINS = (
    "abs",
    "all",
    "any",
    "bool",
    "callable",
    "chr",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "hash",
    "int",
    "isinstance",
    "iter",
    "len",
    "list",
    "map",
    "max",
    "min",
    "next",
    "ord",
    "pow",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "slice",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "True",
    "False",
    "None",
    "Exception",
    "ArithmeticError",
    "AssertionError",
    "AttributeError",
    "IndexError",
    "KeyError",
    "LookupError",
    "NotImplementedError",
    "RuntimeError",
    "StopIteration",
    "TypeError",
    "ValueError",
    "ZeroDivisionError",
)

# Public attribute names that still lead to frames, code objects or
# format-string field lookups.
BLOCKED_ATTRIBUTES = frozenset(
    {
        "format",
        "format_map",
        "gi_frame",
        "gi_code",
        "cr_frame",
        "cr_code",
        "ag_frame",
        "ag_code",
        "f_globals",
        "f_locals",
        "f_back",
        "f_builtins",
        "tb_frame",
        "tb_next",
        "mro",
    }
)


@dataclass(frozen=True)
class SandboxEnvironment:
    """The single argument passed to ``setup``."""

    ctx: SetupContext
    tools: SetupTools


class _DisabledPrimitive:
    """Stand-in for a primitive the sandbox withholds."""

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        object.__setattr__(self, "_name", name)

    def _deny(self) -> None:
        raise SandboxRuntimeError(f"{self._name} is not available inside the setup sandbox")

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self._deny()

    def __getattr__(self, item: str) -> Any:
        self._deny()

    def __setattr__(self, key: str, value: Any) -> None:
        self._deny()

    def __repr__(self) -> str:
        return f"<disabled {self._name}>"


# ---------------------------------------------------------------------------
# Source gate
# ---------------------------------------------------------------------------


def _check_attribute(name: str, lineno: int) -> None:
    if name.startswith("_") or name in BLOCKED_ATTRIBUTES:
        raise SandboxContractError(f"Access to attribute '{name}' is not allowed (line {lineno})")


def check_source(source: str, filename: str = "_setup.py") -> ast.Module:
    """Parse *source* and enforce the setup-script contract.

    Raises:
        SandboxRuntimeError: The source does not compile.
        SandboxContractError: Imports, private attribute access, or a
            missing/duplicated/mis-shaped ``setup`` function.
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise SandboxRuntimeError(
            f"Setup script failed to compile: {exc.msg} (line {exc.lineno})",
            technical_details=str(exc),
        ) from exc

    for node in ast.walk(tree):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            raise SandboxContractError(
                f"Setup scripts cannot import modules (line {node.lineno})",
                suggestions=["Use the capabilities on env.tools instead of imports"],
            )
        if isinstance(node, ast.Attribute):
            _check_attribute(node.attr, node.lineno)
        # Class patterns read attributes by name: case C(attr=x)
        if isinstance(node, ast.MatchClass):
            for attr in node.kwd_attrs:
                _check_attribute(attr, node.lineno)
        if isinstance(node, ast.Name) and node.id.startswith("__") and node.id.endswith("__"):
            raise SandboxContractError(
                f"Access to name '{node.id}' is not allowed (line {node.lineno})"
            )

    entrypoints = [
        node
        for node in tree.body
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name == ENTRYPOINT
    ]
    if not entrypoints:
        raise SandboxContractError(
            "Setup script must define a top-level function named 'setup'",
            suggestions=["def setup(env):\n      ..."],
        )
    if len(entrypoints) > 1:
        raise SandboxContractError("Setup script defines 'setup' more than once")

    args = entrypoints[0].args
    if args.vararg or args.kwarg:
        raise SandboxContractError("setup() must accept a single 'env' argument, not *args/**kwargs")
    positional = len(args.posonlyargs) + len(args.args) + len(args.kwonlyargs)
    if positional > 1:
        raise SandboxContractError(
            f"setup() must accept a single 'env' argument, got {positional} parameters",
            suggestions=["Use env.ctx and env.tools instead of separate parameters"],
        )
    return tree


# ---------------------------------------------------------------------------
# Restricted globals
# ---------------------------------------------------------------------------


def build_builtins(logger: logging.Logger) -> dict[str, Any]:
    allowed: dict[str, Any] = {name: getattr(builtins, name) for name in SAFE_BUILTINS}
    allowed["__build_class__"] = builtins.__build_class__
    for name in DISABLED_PRIMITIVES + DISABLED_MODULES:
        allowed[name] = _DisabledPrimitive(name)

    def _print(*values: Any, sep: str = " ", end: str = "\n", **_: Any) -> None:
        logger.info("%s", sep.join(str(v) for v in values))

    allowed["print"] = _print
    allowed["environ"] = MappingProxyType(dict(os.environ))
    allowed["sleep"] = asyncio.sleep
    allowed["monotonic"] = time.monotonic
    return allowed


# ---------------------------------------------------------------------------
# Worker thread
# ---------------------------------------------------------------------------


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _call_entry(entry: Any, args: tuple[Any, ...]) -> Any:
    result = entry(*args)
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return result


def _settle(future: asyncio.Future, result: Any, error: BaseException | None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def _run_in_worker(func: Any, *args: Any) -> Any:
    """Run *func* on a daemon thread and await its outcome.

    Unlike :func:`asyncio.to_thread` the thread is not owned by the loop's
    executor, so an abandoned runaway script does not block interpreter or
    loop shutdown.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def target() -> None:
        try:
            result = func(*args)
        except StopIteration as exc:
            outcome: tuple[Any, BaseException | None] = (None, RuntimeError(f"StopIteration: {exc}"))
        except Exception as exc:
            outcome = (None, exc)
        else:
            outcome = (result, None)
        try:
            loop.call_soon_threadsafe(_settle, future, *outcome)
        except RuntimeError:
            pass  # loop already closed; the caller gave up on this run

    threading.Thread(target=target, name="scaffold-setup", daemon=True).start()
    return await future


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class SandboxExecutor:
    """Compiles and runs one setup script per call.

    The module body and ``setup`` run on a daemon worker thread; an async
    ``setup`` gets its own event loop there, so a script that never yields
    cannot stall the caller's loop.  Both are bounded by *timeout* seconds.
    A timed-out worker cannot be interrupted and is abandoned.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, logger: logging.Logger | None = None) -> None:
        self.timeout = timeout
        self.logger = logger or get_logger("setup")

    async def run_file(self, path: str | Path, ctx: SetupContext, tools: SetupTools) -> Any:
        script = Path(path)
        try:
            source = script.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SandboxRuntimeError(f"Cannot read setup script {script.name}: {exc}") from exc
        return await self.run(source, ctx, tools, filename=script.name)

    async def run(
        self,
        source: str,
        ctx: SetupContext,
        tools: SetupTools,
        filename: str = "_setup.py",
    ) -> Any:
        """Execute *source* and return whatever ``setup`` returns.

        Raises:
            SandboxContractError: The script does not have the required shape.
            SandboxRuntimeError: The script raised, timed out, or touched a
                disabled primitive.
        """
        tree = check_source(source, filename)
        code = compile(tree, filename, "exec")
        namespace: dict[str, Any] = {
            "__builtins__": build_builtins(self.logger),
            "__name__": "_setup",
        }

        started = time.monotonic()
        try:
            await asyncio.wait_for(_run_in_worker(exec, code, namespace), self.timeout)
            entry = namespace.get(ENTRYPOINT)
            if not callable(entry):
                raise SandboxContractError("'setup' was rebound to a non-callable value")

            env = SandboxEnvironment(ctx=ctx, tools=tools)
            call_args = (env,) if inspect.signature(entry).parameters else ()
            result = await asyncio.wait_for(_run_in_worker(_call_entry, entry, call_args), self.timeout)
        except asyncio.TimeoutError as exc:
            raise SandboxRuntimeError(
                f"Setup script timed out after {self.timeout:g}s",
                suggestions=["Increase sandbox.timeout in the configuration if the script is slow"],
            ) from exc
        except SandboxError:
            raise
        except Exception as exc:
            raise SandboxRuntimeError(
                f"Setup script failed: {exc}",
                technical_details=f"{type(exc).__name__}: {exc}",
            ) from exc

        self.logger.debug("%s finished in %.2fs", filename, time.monotonic() - started)
        return result
