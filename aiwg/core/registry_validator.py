"""
Registry consistency checks.

Reconciles registry.json against the directories under the root:

- missing:       a registered plugin directory (error) or manifest (warning) is absent
- orphaned:      a directory under frameworks/, add-ons/ or extensions/ has no entry
- mismatch:      a registered path is not a directory, or a type root can't be read
- invalid-ref:   parentFramework does not name a registered framework
- stale-health:  health.lastCheck is older than the threshold

validate() performs the one scan; the query helpers derive from its result.
Nothing here raises.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from aiwg.config import get_settings
from aiwg.core.registry import RegistryStore, locate_manifest, plugin_dir
from aiwg.models.plugin import (
    TYPE_ROOT_DIRS,
    IssueCategory,
    IssueSeverity,
    PluginEntry,
    PluginType,
    RegistryValidationResult,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


def hours_since(timestamp: str) -> Optional[float]:
    """Hours elapsed since an ISO timestamp; None when it can't be parsed."""
    try:
        then = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    return (datetime.now(timezone.utc) - then).total_seconds() / 3600


class RegistryValidator:
    def __init__(
        self,
        root: Optional[Path] = None,
        store: Optional[RegistryStore] = None,
        check_filesystem: bool = True,
        check_framework_refs: bool = True,
        check_health_staleness: bool = True,
        health_stale_threshold_hours: Optional[float] = None,
    ):
        settings = get_settings()
        self.root = Path(root) if root is not None else settings.root
        self.store = store or RegistryStore(self.root)
        self.check_filesystem = check_filesystem
        self.check_framework_refs = check_framework_refs
        self.check_health_staleness = check_health_staleness
        self.health_stale_threshold_hours = (
            health_stale_threshold_hours
            if health_stale_threshold_hours is not None
            else settings.health_stale_threshold_hours
        )

    def validate(self) -> RegistryValidationResult:
        result = RegistryValidationResult(valid=True)

        if not self.store.exists():
            # Nothing installed yet; only stray directories can be wrong
            plugins: list[PluginEntry] = []
        else:
            registry, load_error = self.store.try_load()
            if load_error is not None:
                result.issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    category=IssueCategory.MISSING,
                    path=str(self.store.path),
                    message=f"Failed to load registry: {load_error}",
                    suggestion="Restore registry.json from a backup or reinstall plugins",
                ))
            plugins = registry.plugins

        result.stats.total_plugins = len(plugins)

        for entry in plugins:
            issues = self._check_entry(entry)
            result.issues.extend(issues)
            if any(i.category == IssueCategory.MISSING and i.severity == IssueSeverity.ERROR for i in issues):
                result.stats.missing_plugins += 1

        if self.check_filesystem:
            orphaned = self._find_orphaned_directories(plugins)
            result.stats.orphaned_plugins = sum(1 for i in orphaned if i.category == IssueCategory.ORPHANED)
            result.issues.extend(orphaned)

        if self.check_framework_refs:
            invalid = self._check_framework_refs(plugins)
            result.stats.invalid_refs = len(invalid)
            result.issues.extend(invalid)

        flagged = {i.plugin_id for i in result.issues if i.plugin_id}
        result.stats.healthy_plugins = sum(1 for p in plugins if p.id not in flagged)
        result.valid = not any(i.severity == IssueSeverity.ERROR for i in result.issues)
        return result

    # -----------------------------------------------------------------
    # Checks
    # -----------------------------------------------------------------

    def _check_entry(self, entry: PluginEntry) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []

        if self.check_filesystem:
            path = plugin_dir(self.root, entry)
            if not path.exists():
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    category=IssueCategory.MISSING,
                    plugin_id=entry.id,
                    path=str(path),
                    message=f"Plugin directory not found: {entry.path}",
                    suggestion=f"Run 'aiwg-plugins uninstall {entry.id} --force' or reinstall the plugin",
                ))
            elif not path.is_dir():
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    category=IssueCategory.MISMATCH,
                    plugin_id=entry.id,
                    path=str(path),
                    message=f"Plugin path exists but is not a directory: {entry.path}",
                    suggestion="Remove the file and reinstall the plugin",
                ))
            elif locate_manifest(self.root, entry) is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    category=IssueCategory.MISSING,
                    plugin_id=entry.id,
                    path=str(path),
                    message=f"Plugin manifest not found under {entry.path}",
                    suggestion="Plugin may be incomplete or corrupted",
                ))

        if self.check_health_staleness and entry.health is not None:
            age = hours_since(entry.health.last_check)
            if age is None:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    category=IssueCategory.STALE_HEALTH,
                    plugin_id=entry.id,
                    message=f"Plugin health timestamp is unreadable: {entry.health.last_check!r}",
                    suggestion=f"Run 'aiwg-plugins status --refresh {entry.id}'",
                ))
            elif age > self.health_stale_threshold_hours:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    category=IssueCategory.STALE_HEALTH,
                    plugin_id=entry.id,
                    message=f"Plugin health check is stale ({int(age)} hours old)",
                    suggestion=f"Run 'aiwg-plugins status --refresh {entry.id}'",
                ))

        return issues

    def _find_orphaned_directories(self, plugins: list[PluginEntry]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        registered = {Path(p.path).as_posix() for p in plugins}

        for type_dir in TYPE_ROOT_DIRS.values():
            base = self.root / type_dir
            if not base.exists():
                continue
            try:
                children = sorted(base.iterdir())
            except OSError as e:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    category=IssueCategory.MISMATCH,
                    path=str(base),
                    message=f"Failed to scan directory: {e}",
                ))
                continue
            for child in children:
                if not child.is_dir():
                    continue
                rel = f"{type_dir}/{child.name}"
                if rel in registered:
                    continue
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    category=IssueCategory.ORPHANED,
                    path=str(child),
                    message=f"Directory exists but not in registry: {rel}",
                    suggestion="Reinstall the plugin to register it, or delete the directory",
                ))
        return issues

    def _check_framework_refs(self, plugins: list[PluginEntry]) -> list[ValidationIssue]:
        frameworks = {p.id for p in plugins if p.type == PluginType.FRAMEWORK}
        issues = []
        for entry in plugins:
            if entry.parent_framework and entry.parent_framework not in frameworks:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    category=IssueCategory.INVALID_REF,
                    plugin_id=entry.id,
                    message=f"Plugin '{entry.id}' references non-existent framework: {entry.parent_framework}",
                    suggestion="Install the parent framework or update the plugin's parentFramework field",
                ))
        return issues

    # -----------------------------------------------------------------
    # Derived queries
    # -----------------------------------------------------------------

    def is_consistent(self, result: Optional[RegistryValidationResult] = None) -> bool:
        return (result or self.validate()).valid

    def get_orphaned_plugins(self, result: Optional[RegistryValidationResult] = None) -> list[str]:
        """Registered ids whose directory or manifest is gone."""
        result = result or self.validate()
        ids: list[str] = []
        for issue in result.issues:
            if issue.category == IssueCategory.MISSING and issue.plugin_id and issue.plugin_id not in ids:
                ids.append(issue.plugin_id)
        return ids

    def get_missing_plugins(self, result: Optional[RegistryValidationResult] = None) -> list[str]:
        """Directories on disk that the registry does not know about."""
        result = result or self.validate()
        return [i.path for i in result.issues if i.category == IssueCategory.ORPHANED and i.path]

    # -----------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------

    def generate_report(self, format: str = "text", result: Optional[RegistryValidationResult] = None) -> str:
        result = result or self.validate()
        if format == "json":
            return json.dumps(result.model_dump(by_alias=True, exclude_none=True, mode="json"), indent=2)
        return format_validation_report(result)


def format_validation_report(result: RegistryValidationResult) -> str:
    rule = "=" * 50
    lines = ["Registry Validation Report", rule, ""]
    status = "✓ VALID" if result.valid else "✗ INVALID"
    lines += [f"Status: {status}", ""]

    stats = result.stats
    lines += [
        "Statistics:",
        f"  Total Plugins:    {stats.total_plugins}",
        f"  Healthy:          {stats.healthy_plugins}",
        f"  Orphaned:         {stats.orphaned_plugins}",
        f"  Missing:          {stats.missing_plugins}",
        f"  Invalid Refs:     {stats.invalid_refs}",
        "",
    ]

    if not result.issues:
        lines.append("No issues found.")
    else:
        lines += ["Issues:", "-" * 50]
        for severity, title, marker in (
            (IssueSeverity.ERROR, "Errors:", "✗"),
            (IssueSeverity.WARNING, "Warnings:", "⚠"),
        ):
            group = [i for i in result.issues if i.severity == severity]
            if not group:
                continue
            lines += ["", title]
            for issue in group:
                prefix = f"[{issue.plugin_id}] " if issue.plugin_id else ""
                lines.append(f"  {marker} {prefix}{issue.message}")
                if issue.suggestion:
                    lines.append(f"    → {issue.suggestion}")

    lines += ["", rule]
    return "\n".join(lines)
