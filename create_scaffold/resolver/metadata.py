"""Best-effort loading of a template's ``template.json``."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from create_scaffold.log import get_logger
from create_scaffold.manifest import TemplateManifest

logger = get_logger("resolver")

MANIFEST_FILE = "template.json"


def load_template_metadata(template_path: str | Path) -> TemplateManifest:
    """Parse ``template.json`` under *template_path*.

    A missing or malformed manifest never fails resolution: a minimal
    manifest named after the directory is returned instead.
    """
    root = Path(template_path)
    manifest_path = root / MANIFEST_FILE
    try:
        raw = json.loads(manifest_path.read_text(encoding="utf-8"))
        return TemplateManifest.model_validate(raw)
    except FileNotFoundError:
        pass
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Ignoring unreadable %s: %s", manifest_path, exc)
    return TemplateManifest.fallback(root.name)
