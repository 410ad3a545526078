"""Tests for workspace migration, duplicate merging and rollback."""

import json
import os
import shutil
import time

import pytest

from aiwg.core.workspace_migrator import WorkspaceMigrator
from aiwg.lib.typed_errors import BackupNotFoundError
from aiwg.models.migration import (
    ConflictStrategy,
    MigrationOptions,
    MigrationTarget,
    Severity,
)


def _set_mtime(path, offset: float) -> None:
    stamp = time.time() + offset
    os.utime(path, (stamp, stamp))


class StubClassifier:
    def __init__(self, frameworks):
        self.frameworks = frameworks

    def detect_frameworks(self):
        return list(self.frameworks)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetection:
    def test_detect_legacy_workspace(self, make_workspace):
        project = make_workspace({
            "requirements/use-cases/uc-001.md": "uc",
            "architecture/software-architecture-doc.md": "sad",
            "intake/form.md": "form",
        })
        info = WorkspaceMigrator(project).detect_legacy_workspace()
        assert info is not None
        assert info.artifact_count == 3
        assert info.legacy_dirs == ["intake", "requirements", "architecture"]
        assert info.frameworks == ["sdlc-complete"]
        assert info.size > 0

    def test_scoped_workspace_is_not_legacy(self, make_workspace):
        project = make_workspace({"shared/requirements/uc.md": "uc"})
        assert WorkspaceMigrator(project).detect_legacy_workspace() is None

    def test_detect_methodology_frameworks(self, make_workspace):
        project = make_workspace({"campaigns/q1.md": "c", "content/post.md": "p"})
        names = [f.name for f in WorkspaceMigrator(project).detect_frameworks()]
        assert names == ["marketing-flow"]

    def test_detect_defaults_to_sdlc(self, make_workspace):
        project = make_workspace({"notes.md": "n"})
        frameworks = WorkspaceMigrator(project).detect_frameworks()
        assert [f.name for f in frameworks] == ["sdlc-complete"]
        assert frameworks[0].path.endswith("frameworks/sdlc-complete/projects/default")


# ---------------------------------------------------------------------------
# Validation and conflicts
# ---------------------------------------------------------------------------


class TestValidateMigration:
    @pytest.mark.parametrize("framework", ["claude", "codex", "anything"])
    def test_missing_source_is_never_safe(self, tmp_path, framework):
        migrator = WorkspaceMigrator(tmp_path / "project")
        result = migrator.validate_migration(MigrationTarget(
            source_path=str(tmp_path / "nope"), target_path=str(tmp_path / "out"), framework=framework,
        ))
        assert not result.safe
        assert result.warnings == [f"Source path does not exist: {tmp_path / 'nope'}"]

    def test_existing_target_reports_conflicts(self, tmp_path):
        source, target = tmp_path / "src", tmp_path / "dst"
        (source / "a").mkdir(parents=True)
        (source / "a" / "x.md").write_text("new")
        (source / "y.md").write_text("y")
        (target / "a").mkdir(parents=True)
        (target / "a" / "x.md").write_text("old")

        result = WorkspaceMigrator(tmp_path).validate_migration(MigrationTarget(
            source_path=str(source), target_path=str(target), framework="claude",
        ))
        assert result.safe
        assert result.warnings == [f"Target path already exists: {target}"]
        assert [c.path for c in result.conflicts] == ["a/x.md"]
        assert result.estimated_duration == 1


class TestCheckConflicts:
    def test_empty_iff_no_overlap(self, tmp_path):
        source, target = tmp_path / "src", tmp_path / "dst"
        source.mkdir()
        target.mkdir()
        (source / "a.md").write_text("a")
        (target / "b.md").write_text("b")
        migrator = WorkspaceMigrator(tmp_path)
        assert migrator.check_conflicts(source, target) == []

        (target / "a.md").write_text("other")
        conflicts = migrator.check_conflicts(source, target, strategy="skip")
        assert [c.path for c in conflicts] == ["a.md"]
        assert conflicts[0].resolution == ConflictStrategy.SKIP

    def test_missing_target(self, tmp_path):
        (tmp_path / "src").mkdir()
        assert WorkspaceMigrator(tmp_path).check_conflicts(tmp_path / "src", tmp_path / "none") == []

    def test_nested_target_excluded(self, tmp_path):
        source = tmp_path / "src"
        (source / "out").mkdir(parents=True)
        (source / "a.md").write_text("a")
        (source / "out" / "a.md").write_text("a")
        conflicts = WorkspaceMigrator(tmp_path).check_conflicts(source, source / "out")
        assert [c.path for c in conflicts] == ["a.md"]

    def test_unknown_strategy(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "dst").mkdir()
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            WorkspaceMigrator(tmp_path).check_conflicts(tmp_path / "src", tmp_path / "dst", strategy="yolo")


# ---------------------------------------------------------------------------
# Copy migration
# ---------------------------------------------------------------------------


@pytest.fixture
def copy_source(tmp_path):
    source = tmp_path / "legacy-docs"
    (source / "requirements").mkdir(parents=True)
    (source / "agents").mkdir()
    (source / "requirements" / "uc-001.md").write_text("uc")
    (source / "agents" / "reviewer.md").write_text("agent")
    return source


class TestMigrate:
    def test_missing_source_is_critical(self, tmp_path):
        result = WorkspaceMigrator(tmp_path).migrate(MigrationOptions(
            source=str(tmp_path / "nope"), target=str(tmp_path / "out"), framework="claude",
        ))
        assert not result.success
        assert result.errors[0].severity == Severity.CRITICAL

    def test_copies_with_backup(self, tmp_path, copy_source):
        project = tmp_path / "project"
        target = tmp_path / "out"
        result = WorkspaceMigrator(project).migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude",
        ))
        assert result.success
        assert result.files_copied_count == 2
        assert (target / "requirements" / "uc-001.md").read_text() == "uc"
        assert (copy_source / "requirements" / "uc-001.md").exists()
        assert result.backup_path
        assert (project / ".aiwg" / "backups" / result.id / "agents" / "reviewer.md").exists()

    def test_existing_file_skipped_without_overwrite(self, tmp_path, copy_source):
        target = tmp_path / "out"
        (target / "agents").mkdir(parents=True)
        (target / "agents" / "reviewer.md").write_text("mine")

        result = WorkspaceMigrator(tmp_path).migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude", backup=False,
        ))
        assert result.success
        assert result.files_skipped_count == 1
        assert result.files_copied_count == 1
        assert (target / "agents" / "reviewer.md").read_text() == "mine"
        assert result.errors[0].severity == Severity.WARNING
        assert result.errors[0].error == "Target file exists, skipped (overwrite=false)"

    def test_overwrite(self, tmp_path, copy_source):
        target = tmp_path / "out"
        (target / "agents").mkdir(parents=True)
        (target / "agents" / "reviewer.md").write_text("mine")
        result = WorkspaceMigrator(tmp_path).migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude", backup=False, overwrite=True,
        ))
        assert result.files_copied_count == 2
        assert (target / "agents" / "reviewer.md").read_text() == "agent"

    def test_dry_run_counts_only(self, tmp_path, copy_source, tree_snapshot):
        target = tmp_path / "out"
        before = tree_snapshot(tmp_path)
        result = WorkspaceMigrator(tmp_path / "project").migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude", dry_run=True,
        ))
        assert result.success
        assert result.files_copied_count == 2
        assert result.backup_path is None
        assert tree_snapshot(tmp_path) == before

    def test_isolation_blocks_foreign_namespace(self, tmp_path, copy_source):
        project = tmp_path / "project"
        target = project / ".aiwg" / "codex"
        result = WorkspaceMigrator(project).migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude", backup=False, split_shared=False,
        ))
        assert result.files_copied_count == 0
        assert len(result.errors) == 2
        assert all(e.severity == Severity.ERROR for e in result.errors)
        assert not (target / "agents").exists()

    def test_split_shared(self, tmp_path, copy_source):
        project = tmp_path / "project"
        workspace = project / ".aiwg"
        result = WorkspaceMigrator(project).migrate(MigrationOptions(
            source=str(copy_source), target=str(workspace / "claude"), framework="claude",
            backup=False, split_shared=True,
        ))
        assert result.success
        assert result.errors == []
        assert (workspace / "shared" / "requirements" / "uc-001.md").is_file()
        assert (workspace / "claude" / "agents" / "reviewer.md").is_file()
        assert not (workspace / "claude" / "requirements").exists()

    def test_framework_namespace_target_splits_by_default(self, tmp_path, copy_source):
        project = tmp_path / "project"
        workspace = project / ".aiwg"
        result = WorkspaceMigrator(project).migrate(MigrationOptions(
            source=str(copy_source), target=str(workspace / "claude"), framework="claude", backup=False,
        ))
        assert result.success
        assert result.files_copied_count == 2
        assert (workspace / "shared" / "requirements" / "uc-001.md").is_file()
        assert (workspace / "claude" / "agents" / "reviewer.md").is_file()

    def test_outside_target_keeps_tree_by_default(self, tmp_path, copy_source):
        project = tmp_path / "project"
        target = tmp_path / "out"
        WorkspaceMigrator(project).migrate(MigrationOptions(
            source=str(copy_source), target=str(target), framework="claude", backup=False,
        ))
        assert (target / "requirements" / "uc-001.md").is_file()
        assert not (project / ".aiwg" / "shared").exists()

    def test_report(self, tmp_path, copy_source):
        migrator = WorkspaceMigrator(tmp_path)
        result = migrator.migrate(MigrationOptions(
            source=str(copy_source), target=str(tmp_path / "out"), framework="claude", backup=False,
        ))
        report = migrator.generate_report(result)
        assert "Migration Report" in report
        assert f"Migration ID: {result.id}" in report
        assert "Status: ✓ SUCCESS" in report
        assert "  Files Copied:  2" in report
        assert "No errors encountered." in report


# ---------------------------------------------------------------------------
# Legacy -> scoped
# ---------------------------------------------------------------------------


class TestMigrateLegacyToScoped:
    def test_moves_shared_and_private_content(self, make_workspace):
        project = make_workspace({
            "requirements/uc-001.md": "uc",
            "architecture/sad.md": "sad",
            "agents/reviewer.md": "agent",
            "intake/form.md": "form",
        })
        (project / ".claude").mkdir()
        workspace = project / ".aiwg"

        result = WorkspaceMigrator(project).migrate_legacy_to_scoped()

        assert result.success, result.errors
        assert result.framework == "claude"
        assert result.files_moved_count == 4
        assert result.shared_resource_count == 2
        assert result.framework_specific_count == 2
        assert (workspace / "shared" / "requirements" / "uc-001.md").read_text() == "uc"
        assert (workspace / "shared" / "architecture" / "sad.md").is_file()
        assert (workspace / "claude" / "agents" / "reviewer.md").is_file()
        assert (workspace / "claude" / "intake" / "form.md").is_file()
        for legacy in ("requirements", "architecture", "agents", "intake"):
            assert not (workspace / legacy).exists()
        meta = json.loads((workspace / "workspace.json").read_text())
        assert meta["frameworks"] == ["claude"]

    def test_already_scoped_is_skipped(self, make_workspace):
        project = make_workspace({"shared/requirements/uc.md": "uc"})
        result = WorkspaceMigrator(project).migrate_legacy_to_scoped()
        assert result.success
        assert result.skipped
        assert result.reason == "Workspace is already framework-scoped"

    def test_default_framework_and_injected_classifier(self, make_workspace):
        project = make_workspace({"requirements/uc.md": "uc", "agents/a.md": "a"})
        migrator = WorkspaceMigrator(project, detector=StubClassifier(["codex"]))
        assert migrator.migrate_legacy_to_scoped(backup=False).framework == "codex"

        project = make_workspace({"requirements/uc.md": "uc"}, name="other")
        migrator = WorkspaceMigrator(project, detector=StubClassifier(["codex"]))
        result = migrator.migrate_legacy_to_scoped(backup=False, default_framework="windsurf")
        assert result.framework == "windsurf"
        assert (project / ".aiwg" / "windsurf").is_dir()

    def test_falls_back_to_claude(self, make_workspace):
        project = make_workspace({"requirements/uc.md": "uc"})
        result = WorkspaceMigrator(project).migrate_legacy_to_scoped(backup=False)
        assert result.framework == "claude"

    def test_dry_run_changes_nothing(self, make_workspace, tree_snapshot):
        project = make_workspace({"requirements/uc.md": "uc", "agents/a.md": "a"})
        before = tree_snapshot(project)
        result = WorkspaceMigrator(project).migrate_legacy_to_scoped(dry_run=True)
        assert result.success
        assert result.shared_resource_count == 1
        assert result.files_moved_count == 0
        assert tree_snapshot(project) == before

    @pytest.mark.parametrize("strategy, expected", [
        (ConflictStrategy.SKIP, "existing"),
        (ConflictStrategy.MANUAL, "existing"),
        (ConflictStrategy.OVERWRITE, "incoming"),
    ])
    def test_conflict_strategies(self, make_workspace, strategy, expected):
        project = make_workspace({
            "requirements/uc.md": "uc",
            "agents/a.md": "incoming",
            "windsurf/agents/a.md": "existing",
        })
        workspace = project / ".aiwg"
        result = WorkspaceMigrator(project).migrate_legacy_to_scoped(
            backup=False, default_framework="windsurf", conflict_strategy=strategy,
        )
        assert [c.path for c in result.conflicts] == ["agents/a.md"]
        assert (workspace / "windsurf" / "agents" / "a.md").read_text() == expected
        # A kept-aside legacy file is never deleted
        if expected == "existing":
            assert (workspace / "agents" / "a.md").read_text() == "incoming"
            assert result.files_skipped_count == 1

    def test_keep_newest(self, make_workspace):
        project = make_workspace({
            "requirements/uc.md": "uc",
            "agents/a.md": "incoming",
            "windsurf/agents/a.md": "existing",
        })
        workspace = project / ".aiwg"
        _set_mtime(workspace / "windsurf" / "agents" / "a.md", -600)
        WorkspaceMigrator(project).migrate_legacy_to_scoped(
            backup=False, default_framework="windsurf", conflict_strategy="keep-newest",
        )
        assert (workspace / "windsurf" / "agents" / "a.md").read_text() == "incoming"

    def test_identical_content_is_not_a_conflict(self, make_workspace):
        project = make_workspace({
            "requirements/uc.md": "uc",
            "agents/a.md": "same",
            "windsurf/agents/a.md": "same",
        })
        result = WorkspaceMigrator(project).migrate_legacy_to_scoped(backup=False, default_framework="windsurf")
        assert result.conflicts == []
        assert not (project / ".aiwg" / "agents").exists()


# ---------------------------------------------------------------------------
# Duplicate shared content
# ---------------------------------------------------------------------------


class TestMergeDuplicateShared:
    def test_identical_duplicates_merge(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc-001.md": "uc",
            "codex/requirements/uc-001.md": "uc",
            "claude/agents/a.md": "private",
        })
        workspace = project / ".aiwg"
        migrator = WorkspaceMigrator(project)
        duplicates = migrator.detect_duplicate_shared()
        assert [(d.path, d.frameworks, d.identical) for d in duplicates] == [
            ("requirements/uc-001.md", ["claude", "codex"], True),
        ]

        result = migrator.merge_duplicate_shared()
        assert result.report.duplicates_found == 1
        assert result.report.merged_count == 1
        assert result.report.removed_count == 2
        assert result.conflicts == []
        assert (workspace / "shared" / "requirements" / "uc-001.md").read_text() == "uc"
        assert not (workspace / "claude" / "requirements").exists()
        assert not (workspace / "codex" / "requirements").exists()
        assert (workspace / "claude" / "agents" / "a.md").exists()

    def test_keep_newest_picks_latest(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc.md": "older",
            "codex/requirements/uc.md": "newer",
        })
        workspace = project / ".aiwg"
        _set_mtime(workspace / "claude" / "requirements" / "uc.md", -600)
        result = WorkspaceMigrator(project).merge_duplicate_shared(conflict_strategy="keep-newest")
        assert len(result.conflicts) == 1
        assert (workspace / "shared" / "requirements" / "uc.md").read_text() == "newer"
        assert result.report.removed_count == 2

    def test_skip_leaves_differing_copies(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc.md": "a",
            "codex/requirements/uc.md": "b",
        })
        workspace = project / ".aiwg"
        result = WorkspaceMigrator(project).merge_duplicate_shared(conflict_strategy=ConflictStrategy.SKIP)
        assert len(result.conflicts) == 1
        assert result.report.merged_count == 0
        assert (workspace / "claude" / "requirements" / "uc.md").read_text() == "a"
        assert (workspace / "codex" / "requirements" / "uc.md").read_text() == "b"
        assert not (workspace / "shared" / "requirements" / "uc.md").exists()

    def test_overwrite_takes_last_framework_copy(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc.md": "from claude",
            "codex/requirements/uc.md": "from codex",
        })
        workspace = project / ".aiwg"
        _set_mtime(workspace / "codex" / "requirements" / "uc.md", -600)
        result = WorkspaceMigrator(project).merge_duplicate_shared(conflict_strategy="overwrite")
        assert [c.resolution for c in result.conflicts] == [ConflictStrategy.OVERWRITE]
        assert result.report.merged_count == 1
        assert (workspace / "shared" / "requirements" / "uc.md").read_text() == "from codex"
        assert not (workspace / "claude" / "requirements" / "uc.md").exists()
        assert not (workspace / "codex" / "requirements" / "uc.md").exists()

    def test_manual_records_conflict_and_keeps_copies(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc.md": "a",
            "codex/requirements/uc.md": "b",
        })
        workspace = project / ".aiwg"
        result = WorkspaceMigrator(project).merge_duplicate_shared(conflict_strategy="manual")
        assert [(c.path, c.resolution) for c in result.conflicts] == [
            ("requirements/uc.md", ConflictStrategy.MANUAL),
        ]
        assert result.report.merged_count == 0
        assert result.report.removed_count == 0
        assert (workspace / "claude" / "requirements" / "uc.md").read_text() == "a"
        assert (workspace / "codex" / "requirements" / "uc.md").read_text() == "b"
        assert not (workspace / "shared" / "requirements" / "uc.md").exists()

    def test_no_duplicates(self, make_workspace):
        project = make_workspace({"claude/requirements/uc.md": "a"})
        result = WorkspaceMigrator(project).merge_duplicate_shared()
        assert result.report.duplicates_found == 0
        assert (project / ".aiwg" / "claude" / "requirements" / "uc.md").exists()

    def test_backup(self, make_workspace):
        project = make_workspace({
            "claude/requirements/uc.md": "a",
            "codex/requirements/uc.md": "a",
        })
        result = WorkspaceMigrator(project).merge_duplicate_shared(backup=True)
        backup = project / ".aiwg" / "backups" / result.id
        assert (backup / "claude" / "requirements" / "uc.md").exists()


# ---------------------------------------------------------------------------
# Rollback and multi-framework
# ---------------------------------------------------------------------------


class TestRollback:
    def test_restores_legacy_layout(self, make_workspace, tree_snapshot):
        project = make_workspace({
            "requirements/uc-001.md": "uc",
            "agents/a.md": "a",
        })
        (project / ".aiwg" / "intake").mkdir()
        before = tree_snapshot(project / ".aiwg")
        migrator = WorkspaceMigrator(project)

        result = migrator.migrate_legacy_to_scoped()
        assert (project / ".aiwg" / "shared").exists()

        migrator.rollback(result.id)
        workspace = project / ".aiwg"
        assert tree_snapshot(workspace, exclude=("backups",)) == before
        assert (workspace / "intake").is_dir()
        assert not (workspace / "shared").exists()
        assert not (workspace / "claude").exists()
        assert result.id in migrator.list_backups()
        assert not any(p.name.startswith("..aiwg.") for p in project.iterdir())

    def test_restores_copy_source_outside_workspace(self, tmp_path, copy_source, tree_snapshot):
        project = tmp_path / "project"
        before = tree_snapshot(copy_source)
        migrator = WorkspaceMigrator(project)
        result = migrator.migrate(MigrationOptions(
            source=str(copy_source), target=str(tmp_path / "out"), framework="claude",
        ))
        sidecar = json.loads((project / ".aiwg" / "backups" / f"{result.id}.json").read_text())
        assert sidecar["source"] == str(copy_source.resolve())

        (copy_source / "requirements" / "uc-001.md").write_text("edited")
        (copy_source / "notes.md").write_text("new")
        migrator.rollback(result.id)

        assert tree_snapshot(copy_source) == before
        assert not (copy_source / "notes.md").exists()
        assert (tmp_path / "out" / "requirements" / "uc-001.md").exists()

    def test_deleted_backup_raises_and_leaves_workspace(self, make_workspace, tree_snapshot):
        project = make_workspace({"requirements/uc-001.md": "uc"})
        migrator = WorkspaceMigrator(project)
        result = migrator.migrate_legacy_to_scoped()
        workspace = project / ".aiwg"
        shutil.rmtree(workspace / "backups" / result.id)
        before = tree_snapshot(workspace)

        with pytest.raises(BackupNotFoundError):
            migrator.rollback(result.id)
        assert tree_snapshot(workspace) == before
        assert (workspace / "shared" / "requirements" / "uc-001.md").exists()

    def test_unknown_id_raises(self, tmp_path):
        with pytest.raises(BackupNotFoundError, match="Backup not found for migration ID: migration-0"):
            WorkspaceMigrator(tmp_path).rollback("migration-0")


class TestAddFrameworks:
    def test_creates_namespaces(self, make_workspace):
        project = make_workspace({"shared/requirements/uc.md": "uc"})
        migrator = WorkspaceMigrator(project)
        assert migrator.add_frameworks(["codex", "windsurf"]) == ["codex", "windsurf"]
        assert (project / ".aiwg" / "windsurf").is_dir()
        assert migrator.add_frameworks(["codex"]) == []
        meta = json.loads((project / ".aiwg" / "workspace.json").read_text())
        assert meta["frameworks"] == ["codex", "windsurf"]
