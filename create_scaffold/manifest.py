"""Pydantic v2 models for the ``template.json`` manifest.

Only the fields the scaffolding pipeline consumes are modelled explicitly;
anything else a template declares is kept as extra data so that round-trips
do not lose information.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

VERSIONED_SCHEMA = "1.0.0"
"""Manifests declaring this ``schemaVersion`` carry dimensions, gates and feature specs."""


class _ManifestModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Dimensions & constraints
# ---------------------------------------------------------------------------


class DimensionOption(_ManifestModel):
    id: str
    name: Optional[str] = None
    description: str = ""


class Dimension(_ManifestModel):
    """One axis of choice offered by a template (deployment target, database ...)."""

    type: str = Field(default="single", description="'single' or 'multi'")
    description: str = ""
    values: list[str] = Field(default_factory=list)
    options: list[DimensionOption] = Field(default_factory=list)
    default: Optional[Union[str, list[str]]] = None

    @property
    def is_multi(self) -> bool:
        return self.type == "multi"

    def choices(self) -> list[str]:
        """Selectable values: plain ``values`` win over structured ``options``."""
        if self.values:
            return list(self.values)
        return [opt.name or opt.id for opt in self.options]


class Gate(_ManifestModel):
    """Allow-lists applied when a selection equals the gate's name."""

    allowed: dict[str, list[str]] = Field(default_factory=dict)


class FeatureSpec(_ManifestModel):
    label: str = ""
    description: str = ""
    needs: dict[str, str] = Field(default_factory=dict)


class Hint(_ManifestModel):
    label: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)


class PlaceholderSpec(_ManifestModel):
    name: str
    description: str = ""
    default: Optional[str] = None
    required: bool = False


class SetupSpec(_ManifestModel):
    authoring: str = "wysiwyg"
    author_assets_dir: str = Field(default="__scaffold__", alias="authorAssetsDir")
    dimensions: dict[str, Dimension] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class TemplateManifest(_ManifestModel):
    """Parsed ``template.json``."""

    id: str
    name: str
    version: str = "1.0.0"
    schema_version: Optional[str] = Field(default=None, alias="schemaVersion")
    description: str = ""
    placeholder_format: Optional[str] = Field(default=None, alias="placeholderFormat")
    placeholders: list[PlaceholderSpec] = Field(default_factory=list)
    constants: dict[str, Any] = Field(default_factory=dict)
    dimensions: dict[str, Dimension] = Field(default_factory=dict)
    gates: dict[str, Gate] = Field(default_factory=dict)
    feature_specs: dict[str, FeatureSpec] = Field(default_factory=dict, alias="featureSpecs")
    hints: dict[str, dict[str, Hint]] = Field(default_factory=dict)
    handoff_steps: list[str] = Field(default_factory=list, alias="handoffSteps")
    setup: SetupSpec = Field(default_factory=SetupSpec)

    @property
    def is_versioned(self) -> bool:
        return self.schema_version == VERSIONED_SCHEMA

    def all_dimensions(self) -> dict[str, Dimension]:
        """Top-level dimensions merged over ``setup.dimensions``."""
        merged = dict(self.setup.dimensions)
        merged.update(self.dimensions)
        return merged

    @classmethod
    def fallback(cls, name: str) -> "TemplateManifest":
        """Minimal manifest used when ``template.json`` is absent or unreadable."""
        return cls(id=name, name=name, version="1.0.0")
