"""
Plugin models.

Registry layout under the root:
  registry.json                     - the document of record
  frameworks/{id}/repo/             - framework files
  frameworks/{id}/projects/         - per-framework project workspaces
  add-ons/{id}/                     - add-on files
  extensions/{id}/                  - extension files

On disk the JSON keys are camelCase; Python attributes are snake_case.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

PLUGIN_ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(
    r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)
_RANGE_TOKEN_PATTERN = re.compile(
    r"^(?:[\^~]|[<>]=?|=)?v?(?:\d+|[xX*])(?:\.(?:\d+|[xX*])){0,2}(?:-[0-9A-Za-z.-]+)?$"
)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def is_semver_range(value: str) -> bool:
    """Check an npm-style semver range (`^1.0.0`, `>=1.2 <2`, `1.x || 2.x`)."""
    if not isinstance(value, str) or not value.strip():
        return False
    for alternative in value.split("||"):
        tokens = alternative.split()
        if not tokens:
            return False
        for token in tokens:
            if token in ("*", "-", "latest"):
                continue
            if not _RANGE_TOKEN_PATTERN.match(token):
                return False
    return True


class PluginType(str, Enum):
    FRAMEWORK = "framework"
    ADD_ON = "add-on"
    EXTENSION = "extension"

    @property
    def root_dir(self) -> str:
        """Directory under the registry root holding plugins of this type."""
        return TYPE_ROOT_DIRS[self]


TYPE_ROOT_DIRS = {
    PluginType.FRAMEWORK: "frameworks",
    PluginType.ADD_ON: "add-ons",
    PluginType.EXTENSION: "extensions",
}


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


class PluginHealth(BaseModel):
    """Last derived health of a registry entry."""

    status: HealthStatus = HealthStatus.HEALTHY
    last_check: str = Field(default_factory=now_iso, alias="lastCheck")
    issues: Optional[list[str]] = None

    model_config = {"populate_by_name": True}


class PluginEntry(BaseModel):
    """One installed plugin as recorded in registry.json."""

    id: str
    type: PluginType
    name: str
    version: str
    path: str  # Relative to the registry root, POSIX separators
    installed_at: str = Field(default_factory=now_iso, alias="installedAt")
    parent_framework: Optional[str] = Field(default=None, alias="parentFramework")
    health: Optional[PluginHealth] = None

    model_config = {"populate_by_name": True}


class Registry(BaseModel):
    """The registry document."""

    version: str = "1.0.0"
    last_modified: str = Field(default_factory=now_iso, alias="lastModified")
    plugins: list[PluginEntry] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def get(self, plugin_id: str) -> Optional[PluginEntry]:
        for entry in self.plugins:
            if entry.id == plugin_id:
                return entry
        return None

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PluginManifest(BaseModel):
    """Contents of a plugin source's manifest.json or manifest.md frontmatter."""

    id: str
    type: PluginType
    name: str
    version: str
    description: str = ""
    author: Optional[str] = None
    license: Optional[str] = None
    repository: Optional[str] = None
    keywords: Optional[list[str]] = None
    files: Optional[list[str]] = None
    dependencies: Optional[dict[str, str]] = None
    parent_framework: Optional[str] = Field(default=None, alias="parentFramework")

    model_config = {"populate_by_name": True}

    @field_validator("id")
    @classmethod
    def _check_id(cls, v: str) -> str:
        if not PLUGIN_ID_PATTERN.match(v):
            raise ValueError(
                f"Invalid plugin id '{v}': use lowercase letters, digits and single hyphens"
            )
        return v

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        if not SEMVER_PATTERN.match(v):
            raise ValueError(f"Invalid version '{v}': expected semver (e.g. 1.0.0)")
        return v

    @field_validator("dependencies")
    @classmethod
    def _check_dependencies(cls, v: Optional[dict[str, str]]) -> Optional[dict[str, str]]:
        if v is None:
            return v
        for dep_id, version_range in v.items():
            if not is_semver_range(version_range):
                raise ValueError(f"Invalid version range for '{dep_id}': {version_range!r}")
        return v

    @model_validator(mode="after")
    def _check_parent(self) -> "PluginManifest":
        if self.type == PluginType.ADD_ON and not self.parent_framework:
            raise ValueError("Add-on plugins must declare parentFramework")
        return self


# ---------------------------------------------------------------------------
# Validation and status reports
# ---------------------------------------------------------------------------

class IssueCategory(str, Enum):
    MISSING = "missing"
    ORPHANED = "orphaned"
    MISMATCH = "mismatch"
    INVALID_REF = "invalid-ref"
    STALE_HEALTH = "stale-health"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    severity: IssueSeverity
    category: IssueCategory
    plugin_id: Optional[str] = Field(default=None, alias="pluginId")
    path: Optional[str] = None
    message: str
    suggestion: Optional[str] = None

    model_config = {"populate_by_name": True}


class RegistryValidationStats(BaseModel):
    total_plugins: int = Field(default=0, alias="totalPlugins")
    healthy_plugins: int = Field(default=0, alias="healthyPlugins")
    orphaned_plugins: int = Field(default=0, alias="orphanedPlugins")
    missing_plugins: int = Field(default=0, alias="missingPlugins")
    invalid_refs: int = Field(default=0, alias="invalidRefs")

    model_config = {"populate_by_name": True}


class RegistryValidationResult(BaseModel):
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    stats: RegistryValidationStats = Field(default_factory=RegistryValidationStats)


class PluginStatusResult(BaseModel):
    """Derived health of one registry entry."""

    id: str
    name: str
    type: PluginType
    version: str
    installed_at: str = Field(alias="installedAt")
    health: HealthStatus
    health_message: str = Field(alias="healthMessage")
    path: str
    parent_framework: Optional[str] = Field(default=None, alias="parentFramework")
    disk_usage: Optional[int] = Field(default=None, alias="diskUsage")
    project_count: Optional[int] = Field(default=None, alias="projectCount")

    model_config = {"populate_by_name": True}


class StatusSummary(BaseModel):
    total_plugins: int = Field(default=0, alias="totalPlugins")
    frameworks: int = 0
    add_ons: int = Field(default=0, alias="addOns")
    extensions: int = 0
    healthy: int = 0
    warnings: int = 0
    errors: int = 0
    total_disk_usage: int = Field(default=0, alias="totalDiskUsage")
    legacy_mode: bool = Field(default=False, alias="legacyMode")

    model_config = {"populate_by_name": True}
