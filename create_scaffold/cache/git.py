"""Thin async wrapper around the ``git`` executable.

Git is the only network client the cache uses.  Every invocation disables
interactive credential prompts so an inaccessible remote fails fast instead
of blocking on a terminal.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

# Substrings in git's stderr that mean the remote refused us, as opposed to
# a transient network failure.
AUTH_FAILURE_MARKERS = (
    "Authentication failed",
    "Permission denied",
    "Repository not found",
    "could not read Username",
    "terminal prompts disabled",
)


class GitCommandError(Exception):
    """Raised when a git command exits non-zero or times out."""

    def __init__(
        self,
        message: str,
        command: str = "",
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.command = command
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)

    @property
    def is_auth_failure(self) -> bool:
        return any(marker in self.stderr for marker in AUTH_FAILURE_MARKERS)


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


async def run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises GitCommandError if git is not installed, the command exits with
    a non-zero code, or it exceeds *timeout* seconds (the process is killed
    in that case).
    """
    cmd = ["git"] + list(args)
    cmd_str = " ".join(cmd)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=_git_env(),
        )
    except FileNotFoundError as exc:
        raise GitCommandError(
            f"Could not start git (is it installed and on PATH?): {exc}",
            command=cmd_str,
            stderr=str(exc),
        ) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise GitCommandError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
            timed_out=True,
        )

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise GitCommandError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )

    return stdout, stderr
