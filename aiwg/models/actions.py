"""
Action log and lifecycle result models.

Install and uninstall both describe their work as a list of Actions, so a
dry-run preview and a post-hoc report share one representation.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from aiwg.models.plugin import PluginManifest


class ActionType(str, Enum):
    VALIDATE = "validate"
    CREATE_DIR = "create-dir"
    COPY_FILE = "copy-file"
    REMOVE_DIR = "remove-dir"
    CHECK_DEPS = "check-deps"
    ARCHIVE_PROJECTS = "archive-projects"
    UPDATE_REGISTRY = "update-registry"
    ROLLBACK = "rollback"


class Action(BaseModel):
    type: ActionType
    executed: bool = False
    detail: str
    path: Optional[str] = None


class InstallResult(BaseModel):
    success: bool
    plugin_id: str = Field(alias="pluginId")
    version: Optional[str] = None
    install_path: Optional[str] = Field(default=None, alias="installPath")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class UninstallStats(BaseModel):
    files_removed: int = Field(default=0, alias="filesRemoved")
    dirs_removed: int = Field(default=0, alias="dirsRemoved")
    bytes_freed: int = Field(default=0, alias="bytesFreed")
    projects_archived: int = Field(default=0, alias="projectsArchived")

    model_config = {"populate_by_name": True}


class UninstallResult(BaseModel):
    success: bool
    plugin_id: str = Field(alias="pluginId")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    stats: UninstallStats = Field(default_factory=UninstallStats)

    model_config = {"populate_by_name": True}


class UninstallCheck(BaseModel):
    """Answer to "may this plugin be removed?"."""

    can_uninstall: bool = Field(alias="canUninstall")
    reason: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class ValidationCheck(BaseModel):
    """Result of validating a plugin source directory."""

    valid: bool
    manifest: Optional[PluginManifest] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
