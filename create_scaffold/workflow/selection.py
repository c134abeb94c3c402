"""Dimension selections: gate checks, feature requirements and the selection record.

A selection maps dimension names to a value (single dimensions) or a list of
values (multi dimensions).  Every check here collects all violations instead
of stopping at the first so the operator can fix them in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from create_scaffold import __version__
from create_scaffold.errors import InputValidationError
from create_scaffold.manifest import FeatureSpec, Gate, TemplateManifest
from create_scaffold.utils import load_json, safe_file_stem, write_json

FEATURES_DIMENSION = "features"
REQUIRED = "required"
NONE_VALUE = "none"

# needs-key -> derived flag name
DERIVED_FLAGS: dict[str, str] = {
    "auth": "needAuth",
    "database": "needDb",
    "payments": "needPayments",
    "storage": "needStorage",
}


@dataclass(frozen=True)
class Violation:
    dimension: str
    message: str
    gate: str = ""
    feature: str = ""


def as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def selected_features(selections: dict[str, Any]) -> list[str]:
    return as_list(selections.get(FEATURES_DIMENSION))


# ---------------------------------------------------------------------------
# Gates & features
# ---------------------------------------------------------------------------


def gate_applies(gate_name: str, selections: dict[str, Any]) -> bool:
    """A gate applies when any selected value equals the gate's name."""
    return any(gate_name in as_list(value) for value in selections.values())


def gate_violations(gates: dict[str, Gate], selections: dict[str, Any]) -> list[Violation]:
    violations: list[Violation] = []
    for gate_name, gate in gates.items():
        if not gate_applies(gate_name, selections):
            continue
        for dimension, allowed in gate.allowed.items():
            for value in as_list(selections.get(dimension)):
                if value not in allowed:
                    violations.append(
                        Violation(
                            dimension=dimension,
                            gate=gate_name,
                            message=(
                                f"{gate_name} constraint: {dimension} '{value}' is not allowed. "
                                f"Allowed: {', '.join(allowed)}"
                            ),
                        )
                    )
    return violations


def feature_violations(
    feature_specs: dict[str, FeatureSpec], selections: dict[str, Any]
) -> list[Violation]:
    """Check each selected feature's ``needs`` against the selections.

    ``"required"`` means the dimension must have a non-``none`` selection;
    any other string means the dimension must be exactly that value.
    """
    violations: list[Violation] = []
    for feature in selected_features(selections):
        spec = feature_specs.get(feature)
        if spec is None:
            continue
        for dimension, requirement in spec.needs.items():
            chosen = [v for v in as_list(selections.get(dimension)) if v != NONE_VALUE]
            if requirement == REQUIRED:
                if not chosen:
                    violations.append(
                        Violation(
                            dimension=dimension,
                            feature=feature,
                            message=f"Feature '{feature}' requires a {dimension} to be selected",
                        )
                    )
            elif requirement not in as_list(selections.get(dimension)):
                shown = ", ".join(as_list(selections.get(dimension))) or "none"
                violations.append(
                    Violation(
                        dimension=dimension,
                        feature=feature,
                        message=(
                            f"Feature '{feature}' requires {dimension} to be '{requirement}' "
                            f"but '{shown}' was selected"
                        ),
                    )
                )
    return violations


def derive_flags(feature_specs: dict[str, FeatureSpec], selections: dict[str, Any]) -> dict[str, bool]:
    """Fold the selected features' requirements into ``need*`` booleans."""
    flags = {flag: False for flag in DERIVED_FLAGS.values()}
    for feature in selected_features(selections):
        spec = feature_specs.get(feature)
        if spec is None:
            continue
        for need, flag in DERIVED_FLAGS.items():
            if spec.needs.get(need) == REQUIRED:
                flags[flag] = True
    return flags


def validate_selection(selections: dict[str, Any], manifest: TemplateManifest) -> list[str]:
    """Return every problem with *selections*; an empty list means valid."""
    problems: list[str] = []
    dimensions = manifest.all_dimensions()
    for name, value in selections.items():
        dimension = dimensions.get(name)
        if dimension is None:
            problems.append(f"Unknown dimension: {name}")
            continue
        values = as_list(value)
        if len(values) > 1 and not dimension.is_multi:
            problems.append(f"Dimension '{name}' accepts a single value")
        choices = dimension.choices()
        for item in values:
            if choices and item not in choices:
                problems.append(
                    f"Invalid value '{item}' for dimension '{name}'. Allowed: {', '.join(choices)}"
                )
    problems.extend(v.message for v in gate_violations(manifest.gates, selections))
    problems.extend(v.message for v in feature_violations(manifest.feature_specs, selections))
    return problems


# ---------------------------------------------------------------------------
# Selection files
# ---------------------------------------------------------------------------


def load_selection_file(path: str | Path) -> dict[str, Any]:
    """Read a ``*.selection.json`` file.

    Raises:
        InputValidationError: Missing file or malformed JSON.
    """
    target = Path(path).expanduser()
    if not target.is_file():
        raise InputValidationError(f"Selection file not found: {path}")
    try:
        return load_json(target)
    except ValueError as exc:
        raise InputValidationError(f"Failed to load selection file: {exc}") from exc


def build_selection_record(
    manifest: TemplateManifest,
    selections: dict[str, Any],
    project_name: str,
) -> dict[str, Any]:
    dimensions = manifest.all_dimensions()
    normalized: dict[str, Any] = {}
    for name, value in selections.items():
        dimension = dimensions.get(name)
        multi = name == FEATURES_DIMENSION or (dimension is not None and dimension.is_multi)
        normalized[name] = as_list(value) if multi else value
    return {
        "templateId": manifest.id,
        "version": manifest.schema_version or "1.0.0",
        "selections": normalized,
        "derived": derive_flags(manifest.feature_specs, selections),
        "metadata": {
            "name": project_name,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "cliVersion": __version__,
        },
    }


def write_selection_record(record: dict[str, Any], directory: Path, template_name: str) -> Path:
    safe_name = safe_file_stem(template_name)
    target = Path(directory) / f"{safe_name}.selection.json"
    write_json(record, target)
    return target
