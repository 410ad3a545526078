"""
Plugin source manifest loading and validation.

A plugin source directory carries either `manifest.json` or `manifest.md`
(YAML frontmatter holds the fields, the body is free-form documentation).
Validation never raises; problems come back as error strings.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import frontmatter
import yaml
from pydantic import ValidationError

from aiwg.models.actions import ValidationCheck
from aiwg.models.plugin import PluginManifest

logger = logging.getLogger(__name__)

MANIFEST_JSON = "manifest.json"
MANIFEST_MD = "manifest.md"


def find_manifest(source: Path) -> Optional[Path]:
    """Return the manifest file of a plugin source, preferring manifest.json."""
    for name in (MANIFEST_JSON, MANIFEST_MD):
        candidate = Path(source) / name
        if candidate.is_file():
            return candidate
    return None


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        msg = item["msg"].removeprefix("Value error, ")
        loc = ".".join(str(part) for part in item["loc"])
        if item["type"] == "missing":
            messages.append(f"Missing required field: {loc}")
        elif loc:
            messages.append(f"{loc}: {msg}")
        else:
            messages.append(msg)
    return messages


def _parse(text: str, fmt: str) -> Any:
    if fmt == "md":
        return frontmatter.loads(text).metadata
    return json.loads(text)


def validate_manifest_text(text: str, fmt: str = "json") -> ValidationCheck:
    """Validate raw manifest text (`fmt` is "json" or "md")."""
    try:
        data = _parse(text, fmt)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        return ValidationCheck(valid=False, errors=[f"Failed to parse manifest: {e}"])

    if not isinstance(data, dict) or not data:
        return ValidationCheck(valid=False, errors=["Manifest must be an object with plugin fields"])

    try:
        manifest = PluginManifest.model_validate(data)
    except ValidationError as e:
        return ValidationCheck(valid=False, errors=_format_errors(e))

    warnings = []
    if not manifest.description:
        warnings.append("Manifest has no description")
    return ValidationCheck(valid=True, manifest=manifest, warnings=warnings)


def validate_plugin_source(source: Path) -> ValidationCheck:
    """Validate a plugin source directory: manifest plus declared files."""
    source = Path(source)
    if not source.is_dir():
        return ValidationCheck(valid=False, errors=[f"Plugin source not found: {source}"])

    manifest_path = find_manifest(source)
    if manifest_path is None:
        return ValidationCheck(
            valid=False,
            errors=[f"No {MANIFEST_JSON} or {MANIFEST_MD} found in {source}"],
        )

    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ValidationCheck(valid=False, errors=[f"Failed to read {manifest_path.name}: {e}"])

    fmt = "md" if manifest_path.name == MANIFEST_MD else "json"
    check = validate_manifest_text(text, fmt)
    if not check.valid or check.manifest is None:
        return check

    errors = []
    for rel in check.manifest.files or []:
        path = (source / rel.lstrip("/")).resolve()
        if not path.is_relative_to(source.resolve()):
            errors.append(f"Declared file escapes the plugin source: {rel}")
        elif not path.exists():
            errors.append(f"Declared file not found: {rel}")
    if errors:
        return ValidationCheck(valid=False, errors=errors, warnings=check.warnings)

    logger.debug(f"Validated manifest {manifest_path}")
    return check
