"""create-scaffold configuration.

Centralised, typed configuration for the scaffolding pipeline. All settings
use Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

RC_FILE_NAME = ".create-scaffoldrc.json"


def _default_cache_dir() -> Path:
    return Path.home() / ".create-scaffold" / "cache"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


class CacheConfig(BaseModel):
    """Repository cache policy."""

    ttl_hours: int = Field(default=24, ge=0, description="Hours before a cached clone is stale")
    clone_timeout: int = Field(default=60, ge=1, description="Clone timeout in seconds")
    access_check_timeout: int = Field(
        default=10, ge=1, description="Timeout for the ls-remote access check in seconds"
    )


class WorkflowConfig(BaseModel):
    """Tuning knobs for the workflow orchestrator."""

    interactive: bool = Field(
        default=True, description="Ask the operator how to recover from step failures"
    )
    max_retry_attempts: int = Field(default=3, ge=0)
    state_file: str = Field(default=".create-scaffold-workflow.json")
    selection_dir: Path | None = Field(
        default=None,
        description="Where to write <template>.selection.json (defaults to the project's parent)",
    )


class SandboxConfig(BaseModel):
    """Limits applied to template setup scripts."""

    timeout: float = Field(default=30.0, gt=0, description="Wall-clock limit in seconds")
    script_name: str = Field(default="_setup.py")


class Config(BaseModel):
    """Global create-scaffold configuration.

    Instances are typically created once by the CLI entry point (via
    :meth:`discover`) and then passed to the cache, resolver and workflow.
    """

    cache_dir: Path = Field(default_factory=_default_cache_dir)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)

    # User registry aliases: {namespace: {template: repository-url}}
    templates: dict[str, dict[str, str]] = Field(default_factory=dict)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, base: "Config | None" = None) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            CREATE_SCAFFOLD_CACHE_DIR, CREATE_SCAFFOLD_CACHE_TTL,
            CREATE_SCAFFOLD_CLONE_TIMEOUT, CREATE_SCAFFOLD_NON_INTERACTIVE,
            CREATE_SCAFFOLD_MAX_RETRIES, CREATE_SCAFFOLD_SANDBOX_TIMEOUT.

        Args:
            base: Optional configuration to override; defaults are used
                otherwise.
        """
        data: dict[str, Any] = (base or cls()).model_dump()

        if os.environ.get("CREATE_SCAFFOLD_CACHE_DIR"):
            data["cache_dir"] = Path(os.environ["CREATE_SCAFFOLD_CACHE_DIR"]).expanduser()
        if os.environ.get("CREATE_SCAFFOLD_CACHE_TTL"):
            data["cache"]["ttl_hours"] = int(os.environ["CREATE_SCAFFOLD_CACHE_TTL"])
        if os.environ.get("CREATE_SCAFFOLD_CLONE_TIMEOUT"):
            data["cache"]["clone_timeout"] = int(os.environ["CREATE_SCAFFOLD_CLONE_TIMEOUT"])
        if _env_flag("CREATE_SCAFFOLD_NON_INTERACTIVE"):
            data["workflow"]["interactive"] = False
        if os.environ.get("CREATE_SCAFFOLD_MAX_RETRIES"):
            data["workflow"]["max_retry_attempts"] = int(os.environ["CREATE_SCAFFOLD_MAX_RETRIES"])
        if os.environ.get("CREATE_SCAFFOLD_SANDBOX_TIMEOUT"):
            data["sandbox"]["timeout"] = float(os.environ["CREATE_SCAFFOLD_SANDBOX_TIMEOUT"])

        return cls.model_validate(data)

    @classmethod
    def discover(cls, cwd: Path | None = None) -> "Config":
        """Load the first ``.create-scaffoldrc.json`` found in *cwd* or the
        home directory, then apply environment overrides."""
        search = [Path(cwd or Path.cwd()), Path.home()]
        base: Config | None = None
        for directory in search:
            candidate = directory / RC_FILE_NAME
            if candidate.is_file():
                base = cls.load(candidate)
                break
        return cls.from_env(base)
