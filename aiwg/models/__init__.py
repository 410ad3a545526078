"""
Pydantic models for the plugin engine.
"""

from aiwg.models.plugin import (
    PluginType,
    HealthStatus,
    PluginHealth,
    PluginEntry,
    Registry,
    PluginManifest,
    IssueCategory,
    IssueSeverity,
    ValidationIssue,
    RegistryValidationResult,
    PluginStatusResult,
    StatusSummary,
)
from aiwg.models.actions import (
    ActionType,
    Action,
    InstallResult,
    UninstallResult,
    UninstallStats,
    UninstallCheck,
    ValidationCheck,
)
from aiwg.models.migration import (
    Severity,
    ConflictStrategy,
    Conflict,
    MigrationError,
    MigrationResult,
    ScopedMigrationResult,
    ConflictType,
    DuplicateInfo,
    MergeReport,
    MergeResult,
    LegacyWorkspaceInfo,
    FrameworkInfo,
    MigrationTarget,
    MigrationOptions,
    MigrationValidation,
    ContaminationIssue,
    IsolationReport,
    AssistantFramework,
)

__all__ = [
    # Plugin / registry
    "PluginType",
    "HealthStatus",
    "PluginHealth",
    "PluginEntry",
    "Registry",
    "PluginManifest",
    "IssueCategory",
    "IssueSeverity",
    "ValidationIssue",
    "RegistryValidationResult",
    "PluginStatusResult",
    "StatusSummary",
    # Actions
    "ActionType",
    "Action",
    "InstallResult",
    "UninstallResult",
    "UninstallStats",
    "UninstallCheck",
    "ValidationCheck",
    # Migration
    "Severity",
    "ConflictStrategy",
    "Conflict",
    "MigrationError",
    "MigrationResult",
    "ScopedMigrationResult",
    "ConflictType",
    "DuplicateInfo",
    "MergeReport",
    "MergeResult",
    "LegacyWorkspaceInfo",
    "FrameworkInfo",
    "MigrationTarget",
    "MigrationOptions",
    "MigrationValidation",
    "ContaminationIssue",
    "IsolationReport",
    "AssistantFramework",
]
