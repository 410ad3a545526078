"""Tests for plugin status and health reporting."""

import json
import shutil
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from aiwg.core.plugin_installer import PluginInstaller
from aiwg.core.plugin_status import PluginStatus
from aiwg.core.registry import RegistryStore
from aiwg.lib.typed_errors import RegistryEntryNotFoundError
from aiwg.models.plugin import HealthStatus, PluginHealth, PluginType


@pytest.fixture
def installed(plugin_root, make_plugin):
    installer = PluginInstaller(root=plugin_root)
    installer.install(make_plugin("sdlc-complete", type="framework"))
    installer.install(make_plugin("gdpr", type="add-on", parent="sdlc-complete"))
    installer.install(make_plugin("voice-pack", contents={"big.md": "x" * 2048}))
    return plugin_root


@pytest.fixture
def status(plugin_root):
    return PluginStatus(root=plugin_root)


def _by_id(results):
    return {r.id: r for r in results}


class TestGetStatus:
    def test_all_healthy(self, status, installed):
        results = _by_id(status.get_status())
        assert set(results) == {"sdlc-complete", "gdpr", "voice-pack"}
        assert all(r.health == HealthStatus.HEALTHY for r in results.values())
        assert results["gdpr"].parent_framework == "sdlc-complete"
        assert results["voice-pack"].health_message == "OK"

    def test_filters(self, status, installed):
        assert [r.id for r in status.get_status(plugin_type=PluginType.ADD_ON)] == ["gdpr"]
        assert [r.id for r in status.get_status(plugin_id="voice-pack")] == ["voice-pack"]
        assert status.get_status(plugin_id="ghost") == []

    def test_verbose_fields(self, status, installed):
        results = _by_id(status.get_status(verbose=True))
        assert results["voice-pack"].disk_usage >= 2048
        assert results["sdlc-complete"].project_count == 0
        assert results["voice-pack"].project_count is None
        assert _by_id(status.get_status())["voice-pack"].disk_usage is None

    def test_missing_directory_is_error(self, status, installed):
        shutil.rmtree(installed / "extensions" / "voice-pack")
        result = status.get_status(plugin_id="voice-pack")[0]
        assert result.health == HealthStatus.ERROR
        assert result.health_message == "Plugin directory not found"

    def test_missing_manifest_is_warning(self, status, installed):
        (installed / "extensions" / "voice-pack" / "manifest.json").unlink()
        assert status.get_status(plugin_id="voice-pack")[0].health == HealthStatus.WARNING

    def test_framework_without_projects_is_warning(self, status, installed):
        (installed / "frameworks" / "sdlc-complete" / "projects").rmdir()
        result = status.get_status(plugin_id="sdlc-complete")[0]
        assert result.health == HealthStatus.WARNING
        assert "Projects directory missing" in result.health_message

    def test_add_on_without_parent_is_error(self, status, installed):
        RegistryStore(installed).remove("sdlc-complete")
        assert status.get_status(plugin_id="gdpr")[0].health == HealthStatus.ERROR

    def test_stale_health_is_warning(self, status, installed):
        store = RegistryStore(installed)
        entry = store.get("voice-pack")
        entry.health = PluginHealth(last_check=(datetime.now(timezone.utc) - timedelta(days=3)).isoformat())
        store.update(entry)
        assert status.get_status(plugin_id="voice-pack")[0].health == HealthStatus.WARNING


class TestSummary:
    def test_counts(self, status, installed):
        (installed / "extensions" / "voice-pack" / "manifest.json").unlink()
        summary = status.summary()
        assert summary.total_plugins == 3
        assert (summary.frameworks, summary.add_ons, summary.extensions) == (1, 1, 1)
        assert (summary.healthy, summary.warnings, summary.errors) == (2, 1, 0)
        assert summary.total_disk_usage >= 2048
        assert not summary.legacy_mode

    def test_legacy_mode_without_frameworks_dir(self, status):
        assert status.summary().legacy_mode

    def test_failed_first_install_keeps_legacy_mode(self, status, plugin_root, make_plugin):
        with patch("aiwg.core.plugin_installer.atomic_copy_file", side_effect=OSError("disk full")):
            result = PluginInstaller(root=plugin_root).install(make_plugin("sdlc-complete", type="framework"))
        assert not result.success
        assert status.summary().legacy_mode


class TestRefreshHealth:
    def test_persists_health(self, status, installed):
        (installed / "extensions" / "voice-pack" / "manifest.json").unlink()
        health = status.refresh_health("voice-pack")
        assert health.status == HealthStatus.WARNING
        assert health.issues == ["Manifest not found"]
        stored = RegistryStore(installed).get("voice-pack").health
        assert stored.status == HealthStatus.WARNING

    def test_unknown_plugin(self, status, installed):
        with pytest.raises(RegistryEntryNotFoundError):
            status.refresh_health("ghost")


class TestReport:
    def test_text(self, status, installed):
        report = status.generate_report(verbose=True)
        assert report.startswith("AIWG - Plugin Status")
        assert "Frameworks:" in report
        assert "Add-ons:" in report
        assert "gdpr v1.0.0 -> sdlc-complete" in report
        assert "Disk Usage:" in report

    def test_empty(self, status):
        assert "No plugins installed." in status.generate_report()

    def test_json(self, status, installed):
        data = json.loads(status.generate_report(format="json"))
        assert data["summary"]["totalPlugins"] == 3
        assert {p["id"] for p in data["plugins"]} == {"sdlc-complete", "gdpr", "voice-pack"}
