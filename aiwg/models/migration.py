"""
Workspace migration models.

Legacy layout:   .aiwg/{requirements,architecture,...}/
Scoped layout:   .aiwg/shared/{category}/   and   .aiwg/{framework}/...
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


class Severity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"


class ConflictStrategy(str, Enum):
    SKIP = "skip"
    OVERWRITE = "overwrite"
    KEEP_NEWEST = "keep-newest"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: Union[str, "ConflictStrategy", None]) -> "ConflictStrategy":
        """Resolve a user-supplied strategy once per run."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.KEEP_NEWEST
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown conflict strategy '{value}' (choose from {choices})")


class ConflictType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class Conflict(BaseModel):
    path: str
    type: ConflictType = ConflictType.FILE
    resolution: ConflictStrategy
    description: str = ""


class MigrationError(BaseModel):
    path: str
    error: str
    severity: Severity


class MigrationResult(BaseModel):
    id: str
    success: bool
    files_moved_count: int = Field(default=0, alias="filesMovedCount")
    files_copied_count: int = Field(default=0, alias="filesCopiedCount")
    files_skipped_count: int = Field(default=0, alias="filesSkippedCount")
    errors: list[MigrationError] = Field(default_factory=list)
    backup_path: Optional[str] = Field(default=None, alias="backupPath")
    duration: int = 0  # milliseconds

    model_config = {"populate_by_name": True}


class ScopedMigrationResult(MigrationResult):
    """Result of moving a legacy workspace into framework-scoped form."""

    framework: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None
    conflicts: list[Conflict] = Field(default_factory=list)
    framework_specific_count: int = Field(default=0, alias="frameworkSpecificCount")
    shared_resource_count: int = Field(default=0, alias="sharedResourceCount")


class DuplicateInfo(BaseModel):
    """One relative path present under two or more framework namespaces."""

    path: str
    frameworks: list[str]
    identical: bool


class MergeReport(BaseModel):
    duplicates_found: int = Field(default=0, alias="duplicatesFound")
    merged_count: int = Field(default=0, alias="mergedCount")
    removed_count: int = Field(default=0, alias="removedCount")

    model_config = {"populate_by_name": True}


class MergeResult(BaseModel):
    id: str
    conflicts: list[Conflict] = Field(default_factory=list)
    report: MergeReport = Field(default_factory=MergeReport)
    errors: list[MigrationError] = Field(default_factory=list)
    backup_path: Optional[str] = Field(default=None, alias="backupPath")

    model_config = {"populate_by_name": True}


class LegacyWorkspaceInfo(BaseModel):
    path: str
    artifact_count: int = Field(alias="artifactCount")
    frameworks: list[str] = Field(default_factory=list)
    size: int = 0  # bytes
    has_git: bool = Field(default=False, alias="hasGit")
    legacy_dirs: list[str] = Field(default_factory=list, alias="legacyDirs")

    model_config = {"populate_by_name": True}


class FrameworkInfo(BaseModel):
    name: str
    path: str
    artifact_count: int = Field(default=0, alias="artifactCount")

    model_config = {"populate_by_name": True}


class MigrationTarget(BaseModel):
    source_path: str = Field(alias="sourcePath")
    target_path: str = Field(alias="targetPath")
    framework: str

    model_config = {"populate_by_name": True}


class MigrationOptions(BaseModel):
    source: str
    target: str
    framework: str
    backup: bool = True
    dry_run: bool = Field(default=False, alias="dryRun")
    overwrite: bool = False
    # Route shared-category files to .aiwg/shared/ instead of the target;
    # None splits only when the target is a framework namespace
    split_shared: Optional[bool] = Field(default=None, alias="splitShared")

    model_config = {"populate_by_name": True}


class MigrationValidation(BaseModel):
    safe: bool
    warnings: list[str] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    estimated_duration: int = Field(default=0, alias="estimatedDuration")  # seconds

    model_config = {"populate_by_name": True}


class ContaminationIssue(BaseModel):
    path: str
    kind: str  # "private-dir" | "config-file"
    message: str


class IsolationReport(BaseModel):
    valid: bool
    issues: list[ContaminationIssue] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)


class AssistantFramework(BaseModel):
    """An AI assistant framework found in a project."""

    name: str
    path: str
    type: str = "ide"
    version: Optional[str] = None
    capabilities: Optional[list[str]] = None
    agent_count: int = Field(default=0, alias="agentCount")
    command_count: int = Field(default=0, alias="commandCount")

    model_config = {"populate_by_name": True}
