"""
Plugin status and health reporting.

Health is derived from the filesystem on every call:

- healthy: directory and manifest exist (and, for frameworks, projects/)
- warning: manifest or projects/ missing, or the stored health is stale
- error:   directory missing, or an add-on's parent framework is not installed
"""

import json
import logging
from pathlib import Path
from typing import Optional

from aiwg.config import get_settings
from aiwg.core.registry import RegistryStore, locate_manifest, plugin_dir
from aiwg.core.registry_validator import hours_since
from aiwg.lib.fs import format_bytes, tree_stats
from aiwg.lib.typed_errors import RegistryEntryNotFoundError
from aiwg.models.plugin import (
    HealthStatus,
    PluginEntry,
    PluginHealth,
    PluginStatusResult,
    PluginType,
    Registry,
    StatusSummary,
)

logger = logging.getLogger(__name__)

_HEALTH_ICONS = {
    HealthStatus.HEALTHY: "✓",
    HealthStatus.WARNING: "⚠",
    HealthStatus.ERROR: "✗",
}

_TYPE_TITLES = (
    (PluginType.FRAMEWORK, "Frameworks"),
    (PluginType.ADD_ON, "Add-ons"),
    (PluginType.EXTENSION, "Extensions"),
)


class PluginStatus:
    """Read-only view of installed plugins and their health."""

    def __init__(
        self,
        root: Optional[Path] = None,
        store: Optional[RegistryStore] = None,
        health_stale_threshold_hours: Optional[float] = None,
    ):
        settings = get_settings()
        self.root = Path(root) if root is not None else settings.root
        self.store = store or RegistryStore(self.root)
        self.health_stale_threshold_hours = (
            health_stale_threshold_hours
            if health_stale_threshold_hours is not None
            else settings.health_stale_threshold_hours
        )

    def get_status(
        self,
        plugin_type: Optional[PluginType] = None,
        plugin_id: Optional[str] = None,
        verbose: bool = False,
    ) -> list[PluginStatusResult]:
        registry = self.store.load()
        results = []
        for entry in registry.plugins:
            if plugin_type is not None and entry.type != plugin_type:
                continue
            if plugin_id is not None and entry.id != plugin_id:
                continue
            results.append(self._status_for(entry, registry, verbose))
        return results

    def summary(self) -> StatusSummary:
        registry = self.store.load()
        summary = StatusSummary(
            total_plugins=len(registry.plugins),
            legacy_mode=not (self.root / PluginType.FRAMEWORK.root_dir).is_dir(),
        )
        for entry in registry.plugins:
            if entry.type == PluginType.FRAMEWORK:
                summary.frameworks += 1
            elif entry.type == PluginType.ADD_ON:
                summary.add_ons += 1
            else:
                summary.extensions += 1

            status = self._status_for(entry, registry, verbose=True)
            if status.health == HealthStatus.HEALTHY:
                summary.healthy += 1
            elif status.health == HealthStatus.WARNING:
                summary.warnings += 1
            else:
                summary.errors += 1
            summary.total_disk_usage += status.disk_usage or 0
        return summary

    def refresh_health(self, plugin_id: str) -> PluginHealth:
        """Recompute an entry's health and persist it to the registry."""
        registry = self.store.load()
        entry = registry.get(plugin_id)
        if entry is None:
            raise RegistryEntryNotFoundError(plugin_id)
        issues = self._check_health(entry, registry, include_staleness=False)
        health = PluginHealth(
            status=_worst(issues),
            issues=[message for _, message in issues] or None,
        )
        entry.health = health
        self.store.update(entry)
        logger.info(f"Refreshed health of '{plugin_id}': {health.status.value}")
        return health

    # -----------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------

    def _status_for(self, entry: PluginEntry, registry: Registry, verbose: bool) -> PluginStatusResult:
        issues = self._check_health(entry, registry)
        health = _worst(issues)
        message = "; ".join(message for _, message in issues) if issues else "OK"

        result = PluginStatusResult(
            id=entry.id,
            name=entry.name,
            type=entry.type,
            version=entry.version,
            installed_at=entry.installed_at,
            health=health,
            health_message=message,
            path=entry.path,
            parent_framework=entry.parent_framework,
        )
        if verbose:
            path = plugin_dir(self.root, entry)
            result.disk_usage = tree_stats(path).bytes
            if entry.type == PluginType.FRAMEWORK:
                projects = path / "projects"
                result.project_count = (
                    sum(1 for p in projects.iterdir() if p.is_dir()) if projects.is_dir() else 0
                )
        return result

    def _check_health(
        self,
        entry: PluginEntry,
        registry: Registry,
        include_staleness: bool = True,
    ) -> list[tuple[HealthStatus, str]]:
        path = plugin_dir(self.root, entry)
        if not path.is_dir():
            return [(HealthStatus.ERROR, "Plugin directory not found")]

        issues: list[tuple[HealthStatus, str]] = []
        if locate_manifest(self.root, entry) is None:
            issues.append((HealthStatus.WARNING, "Manifest not found"))
        if entry.type == PluginType.FRAMEWORK and not (path / "projects").is_dir():
            issues.append((HealthStatus.WARNING, "Projects directory missing"))
        if entry.parent_framework:
            parent = registry.get(entry.parent_framework)
            if parent is None or parent.type != PluginType.FRAMEWORK:
                issues.append((HealthStatus.ERROR, f"Parent framework '{entry.parent_framework}' not installed"))

        if include_staleness and entry.health is not None:
            age = hours_since(entry.health.last_check)
            if age is None or age > self.health_stale_threshold_hours:
                issues.append((HealthStatus.WARNING, "Health check is stale"))
        return issues

    # -----------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------

    def generate_report(
        self,
        plugin_type: Optional[PluginType] = None,
        verbose: bool = False,
        format: str = "text",
    ) -> str:
        statuses = self.get_status(plugin_type=plugin_type, verbose=verbose or format == "json")
        summary = self.summary()
        if format == "json":
            return json.dumps({
                "summary": summary.model_dump(by_alias=True, mode="json"),
                "plugins": [s.model_dump(by_alias=True, exclude_none=True, mode="json") for s in statuses],
            }, indent=2)
        return format_status_report(statuses, summary, verbose)


def _worst(issues: list[tuple[HealthStatus, str]]) -> HealthStatus:
    levels = {status for status, _ in issues}
    if HealthStatus.ERROR in levels:
        return HealthStatus.ERROR
    if HealthStatus.WARNING in levels:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def format_status_report(
    statuses: list[PluginStatusResult],
    summary: StatusSummary,
    verbose: bool = False,
) -> str:
    lines = ["AIWG - Plugin Status", "=" * 50, ""]
    if summary.legacy_mode:
        lines += ["Note: running in legacy mode (no frameworks/ directory)", ""]

    if not statuses:
        lines.append("No plugins installed.")
    for plugin_type, title in _TYPE_TITLES:
        group = [s for s in statuses if s.type == plugin_type]
        if not group:
            continue
        lines.append(f"{title}:")
        for status in group:
            icon = _HEALTH_ICONS[status.health]
            parent = f" -> {status.parent_framework}" if status.parent_framework else ""
            lines.append(f"  {icon} {status.id} v{status.version}{parent}  [{status.health.value}] {status.health_message}")
            if verbose:
                lines.append(f"      Path:      {status.path}")
                lines.append(f"      Installed: {status.installed_at}")
                if status.disk_usage is not None:
                    lines.append(f"      Size:      {format_bytes(status.disk_usage)}")
                if status.project_count is not None:
                    lines.append(f"      Projects:  {status.project_count}")
        lines.append("")

    lines += [
        "Summary:",
        f"  Total:      {summary.total_plugins} "
        f"({summary.frameworks} frameworks, {summary.add_ons} add-ons, {summary.extensions} extensions)",
        f"  Healthy:    {summary.healthy}",
        f"  Warnings:   {summary.warnings}",
        f"  Errors:     {summary.errors}",
        f"  Disk Usage: {format_bytes(summary.total_disk_usage)}",
    ]
    return "\n".join(lines)
