"""
Workspace migration between the legacy and framework-scoped layouts.

Legacy:
    .aiwg/intake/  .aiwg/requirements/  .aiwg/architecture/  ...

Scoped:
    .aiwg/shared/{requirements,architecture,...}/   - shared SDLC artifacts
    .aiwg/{framework}/...                           - framework-private content

Every operation that mutates the tree follows the same rules: an optional
backup of the whole source under `.aiwg/backups/{migration-id}/` is taken
before anything changes, target paths are cleared with the
FrameworkIsolator before they are written, and a source file is only
deleted after its copy has been compared byte-for-byte. Dry runs read the
tree and nothing else.
"""

import json
import logging
import math
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union

from aiwg.core.framework_detector import LEGACY_DIRS, FrameworkClassifier, FrameworkDetector, is_legacy_layout
from aiwg.core.framework_isolator import SHARED_NAMESPACE, FrameworkIsolator
from aiwg.lib.fs import (
    IGNORED_NAMES,
    atomic_copy_file,
    atomic_write_json,
    copy_tree,
    list_dirs,
    list_files,
    prune_empty_dirs,
    same_content,
    tree_stats,
)
from aiwg.lib.typed_errors import BackupNotFoundError, IsolationError
from aiwg.models.migration import (
    Conflict,
    ConflictStrategy,
    ConflictType,
    DuplicateInfo,
    FrameworkInfo,
    LegacyWorkspaceInfo,
    MergeResult,
    MigrationError,
    MigrationOptions,
    MigrationResult,
    MigrationTarget,
    MigrationValidation,
    ScopedMigrationResult,
    Severity,
)
from aiwg.models.plugin import now_iso

logger = logging.getLogger(__name__)

BACKUPS_DIR = "backups"
WORKSPACE_FILE = "workspace.json"
DEFAULT_TARGET_FRAMEWORK = "claude"

# Managed state that migration never re-copies
INFRA_EXCLUDES = ("frameworks", BACKUPS_DIR, "registry.json")

# Content signatures of methodology frameworks; detected at >= 50% match
FRAMEWORK_PATTERNS: dict[str, list[str]] = {
    "sdlc-complete": [
        "architecture/software-architecture-doc.md",
        "requirements/use-cases/",
        "testing/master-test-plan.md",
        "deployment/deployment-plan.md",
    ],
    "marketing-flow": [
        "campaigns/",
        "content/",
        "analytics/",
    ],
    "agile-complete": [
        "backlog/",
        "sprints/",
        "retrospectives/",
    ],
}
DEFAULT_METHODOLOGY = "sdlc-complete"


def generate_migration_id() -> str:
    return f"migration-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


def _relative_to(path: Path, base: Path) -> Optional[str]:
    try:
        return path.resolve().relative_to(base.resolve()).as_posix()
    except ValueError:
        return None


def _prune_parents(path: Path, stop: Path) -> None:
    """Remove now-empty directories from path's parent up to (not including) stop."""
    parent = path.parent
    while parent != stop and stop in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            return
        parent = parent.parent


class WorkspaceMigrator:
    """Migrates and consolidates the `.aiwg/` workspace of one project."""

    def __init__(
        self,
        project_root: Path,
        isolator: Optional[FrameworkIsolator] = None,
        detector: Optional[FrameworkClassifier] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.workspace = self.project_root / ".aiwg"
        self.isolator = isolator or FrameworkIsolator(self.project_root)
        self.detector = detector or FrameworkDetector(self.project_root, self.isolator.frameworks)

    # -----------------------------------------------------------------
    # Detection
    # -----------------------------------------------------------------

    def is_legacy_workspace(self) -> bool:
        return is_legacy_layout(self.workspace, self.isolator.frameworks)

    def detect_legacy_workspace(self) -> Optional[LegacyWorkspaceInfo]:
        """Describe the legacy workspace, or None when the layout is not legacy."""
        if not self.is_legacy_workspace():
            return None

        found = [name for name in LEGACY_DIRS if (self.workspace / name).is_dir()]
        artifact_count = 0
        size = 0
        for name in found:
            stats = tree_stats(self.workspace / name)
            artifact_count += stats.files
            size += stats.bytes

        return LegacyWorkspaceInfo(
            path=str(self.workspace),
            artifact_count=artifact_count,
            frameworks=[info.name for info in self.detect_frameworks()],
            size=size,
            has_git=(self.workspace / ".git").exists() or (self.project_root / ".git").exists(),
            legacy_dirs=found,
        )

    def detect_frameworks(self) -> list[FrameworkInfo]:
        """Methodology frameworks whose content signatures match the workspace."""
        detected = []
        for name, patterns in FRAMEWORK_PATTERNS.items():
            matches = 0
            artifacts = 0
            for pattern in patterns:
                path = self.workspace / pattern.rstrip("/")
                if path.is_dir():
                    matches += 1
                    artifacts += tree_stats(path).files
                elif path.is_file():
                    matches += 1
                    artifacts += 1
            if matches >= len(patterns) * 0.5:
                detected.append(FrameworkInfo(
                    name=name,
                    path=str(self.workspace / "frameworks" / name / "projects" / "default"),
                    artifact_count=artifacts,
                ))

        if not detected:
            detected.append(FrameworkInfo(
                name=DEFAULT_METHODOLOGY,
                path=str(self.workspace / "frameworks" / DEFAULT_METHODOLOGY / "projects" / "default"),
                artifact_count=tree_stats(self.workspace).files,
            ))
        return detected

    def detect_target_framework(self) -> str:
        """First assistant framework found in the project, else the default."""
        frameworks = self.detector.detect_frameworks()
        return frameworks[0] if frameworks else DEFAULT_TARGET_FRAMEWORK

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def validate_migration(self, target: MigrationTarget) -> MigrationValidation:
        """Never raises; an absent source is always unsafe."""
        source = Path(target.source_path)
        if not source.exists():
            return MigrationValidation(
                safe=False,
                warnings=[f"Source path does not exist: {target.source_path}"],
            )

        warnings: list[str] = []
        conflicts: list[Conflict] = []
        destination = Path(target.target_path)
        if destination.exists():
            warnings.append(f"Target path already exists: {target.target_path}")
            conflicts.extend(self.check_conflicts(source, destination))

        for rel in self._unreadable_paths(source):
            conflicts.append(Conflict(
                path=rel,
                type=ConflictType.FILE,
                resolution=ConflictStrategy.MANUAL,
                description="Permission denied",
            ))

        file_count = len(list_files(source, self._nested_excludes(source, destination)))
        return MigrationValidation(
            safe=not any(c.resolution == ConflictStrategy.MANUAL for c in conflicts),
            warnings=warnings,
            conflicts=conflicts,
            estimated_duration=math.ceil((file_count + 100) / 1000),
        )

    def check_conflicts(
        self,
        source: Path,
        target: Path,
        strategy: Union[str, ConflictStrategy, None] = None,
    ) -> list[Conflict]:
        """One Conflict per source-relative file path that already exists under target."""
        source, target = Path(source), Path(target)
        if not target.exists():
            return []
        resolution = ConflictStrategy.parse(strategy) if strategy is not None else ConflictStrategy.OVERWRITE
        conflicts = []
        for rel in list_files(source, self._nested_excludes(source, target)):
            if (target / rel).exists():
                conflicts.append(Conflict(
                    path=rel,
                    type=ConflictType.FILE,
                    resolution=resolution,
                    description="File exists in target directory",
                ))
        return conflicts

    def _nested_excludes(self, source: Path, target: Path) -> list[str]:
        """Skip the target subtree when it lives inside the source."""
        rel = _relative_to(target, source)
        return [rel] if rel and rel != "." else []

    def _unreadable_paths(self, source: Path) -> list[str]:
        issues = []
        for dirpath, dirnames, filenames in os.walk(source, onerror=lambda e: issues.append(str(e.filename))):
            for name in dirnames + filenames:
                full = Path(dirpath) / name
                if not os.access(full, os.R_OK):
                    issues.append(full.relative_to(source).as_posix())
        return issues

    # -----------------------------------------------------------------
    # Copy migration
    # -----------------------------------------------------------------

    def migrate(self, options: MigrationOptions) -> MigrationResult:
        """Copy a source tree to a target, skipping or overwriting existing files."""
        start = time.monotonic()
        migration_id = generate_migration_id()
        source = Path(options.source)
        target = Path(options.target)

        if not source.is_dir():
            return MigrationResult(
                id=migration_id,
                success=False,
                errors=[MigrationError(
                    path=options.source,
                    error=f"Source path does not exist: {options.source}",
                    severity=Severity.CRITICAL,
                )],
                duration=_elapsed_ms(start),
            )

        result = MigrationResult(id=migration_id, success=True)
        excludes = list(INFRA_EXCLUDES) + self._nested_excludes(source, target)
        split_shared = (
            options.split_shared
            if options.split_shared is not None
            else self._is_framework_namespace(target)
        )
        plan: list[tuple[str, Path]] = []
        for rel in list_files(source, excludes):
            destination = self._destination_for(rel, target, split_shared)
            denied = self._isolation_error(options.framework, destination)
            if denied is not None:
                result.errors.append(MigrationError(path=rel, error=denied, severity=Severity.ERROR))
                continue
            plan.append((rel, destination))

        if options.dry_run:
            for _, destination in plan:
                if destination.exists() and not options.overwrite:
                    result.files_skipped_count += 1
                else:
                    result.files_copied_count += 1
            result.duration = _elapsed_ms(start)
            return result

        try:
            if options.backup:
                result.backup_path = str(self._create_backup(source, migration_id))
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            result.success = False
            result.errors.append(MigrationError(path=options.source, error=str(e), severity=Severity.CRITICAL))
            result.duration = _elapsed_ms(start)
            return result

        for rel, destination in plan:
            if destination.exists() and not options.overwrite:
                result.files_skipped_count += 1
                result.errors.append(MigrationError(
                    path=rel,
                    error="Target file exists, skipped (overwrite=false)",
                    severity=Severity.WARNING,
                ))
                continue
            try:
                atomic_copy_file(source / rel, destination)
                result.files_copied_count += 1
                logger.debug(f"Copied {rel} -> {destination}")
            except OSError as e:
                result.errors.append(MigrationError(path=rel, error=str(e), severity=Severity.ERROR))

        result.success = not any(e.severity == Severity.CRITICAL for e in result.errors)
        result.duration = _elapsed_ms(start)
        logger.info(
            f"Migration {migration_id}: {result.files_copied_count} copied, "
            f"{result.files_skipped_count} skipped, {len(result.errors)} issue(s)"
        )
        return result

    def _is_framework_namespace(self, target: Path) -> bool:
        rel = _relative_to(target, self.workspace)
        if rel is None or rel == ".":
            return False
        namespace = rel.split("/")[0]
        return namespace != SHARED_NAMESPACE and self.isolator.is_known_namespace(namespace)

    def _destination_for(self, rel: str, target: Path, split_shared: bool) -> Path:
        if split_shared and self.isolator.is_shared_resource(rel):
            return self.workspace / SHARED_NAMESPACE / rel
        return target / rel

    def _isolation_error(self, framework: str, destination: Path) -> Optional[str]:
        """Check a write inside a scoped namespace; other locations are unrestricted."""
        rel = _relative_to(destination, self.workspace)
        if rel is None or not self.isolator.is_known_namespace(rel.split("/")[0]):
            return None
        try:
            self.isolator.assert_writable(framework, rel)
        except IsolationError as e:
            return str(e)
        return None

    # -----------------------------------------------------------------
    # Legacy -> scoped
    # -----------------------------------------------------------------

    def migrate_legacy_to_scoped(
        self,
        backup: bool = True,
        dry_run: bool = False,
        default_framework: Optional[str] = None,
        conflict_strategy: Union[str, ConflictStrategy, None] = ConflictStrategy.SKIP,
    ) -> ScopedMigrationResult:
        """Move shared categories to shared/ and everything else to the framework namespace."""
        start = time.monotonic()
        migration_id = generate_migration_id()
        strategy = ConflictStrategy.parse(conflict_strategy)

        if not self.is_legacy_workspace():
            reason = (
                "Workspace is already framework-scoped"
                if self.workspace.is_dir()
                else f"No workspace found at {self.workspace}"
            )
            return ScopedMigrationResult(id=migration_id, success=True, skipped=True, reason=reason)

        framework = default_framework or self.detect_target_framework()
        if not self.isolator.is_known_namespace(framework):
            self.isolator.register_framework(framework)

        plan = self._scoped_plan(framework)
        result = ScopedMigrationResult(
            id=migration_id,
            success=True,
            framework=framework,
            framework_specific_count=sum(1 for _, dst in plan if not dst.startswith(f"{SHARED_NAMESPACE}/")),
            shared_resource_count=sum(1 for _, dst in plan if dst.startswith(f"{SHARED_NAMESPACE}/")),
        )

        if dry_run:
            for rel, dst in plan:
                if (self.workspace / dst).exists() and not same_content(self.workspace / rel, self.workspace / dst):
                    result.conflicts.append(Conflict(path=rel, resolution=strategy))
            result.duration = _elapsed_ms(start)
            return result

        try:
            if backup:
                result.backup_path = str(self._create_backup(self.workspace, migration_id))
            (self.workspace / framework).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            result.success = False
            result.errors.append(MigrationError(path=str(self.workspace), error=str(e), severity=Severity.CRITICAL))
            result.duration = _elapsed_ms(start)
            return result

        legacy_dirs = self._legacy_top_dirs()
        for rel, dst in plan:
            self._move_verified(rel, dst, strategy, result)

        # Mirror category directories (including empty ones), then drop emptied legacy dirs
        for rel in legacy_dirs:
            mirror = SHARED_NAMESPACE if self.isolator.is_shared_resource(rel) else framework
            for sub in [rel] + [f"{rel}/{d}" for d in list_dirs(self.workspace / rel)]:
                (self.workspace / mirror / sub).mkdir(parents=True, exist_ok=True)
            prune_empty_dirs(self.workspace / rel, keep_root=False)

        self._record_frameworks([framework])
        result.success = not any(e.severity == Severity.CRITICAL for e in result.errors)
        result.duration = _elapsed_ms(start)
        logger.info(
            f"Scoped migration {migration_id} to '{framework}': {result.files_moved_count} moved, "
            f"{result.files_skipped_count} skipped, {len(result.conflicts)} conflict(s)"
        )
        return result

    def _scoped_excludes(self) -> set[str]:
        return {
            *INFRA_EXCLUDES, WORKSPACE_FILE, SHARED_NAMESPACE, ".git",
            *self.isolator.frameworks,
        }

    def _legacy_top_dirs(self) -> list[str]:
        excluded = self._scoped_excludes()
        return sorted(
            entry.name for entry in self.workspace.iterdir()
            if entry.is_dir() and entry.name not in excluded
        )

    def _scoped_plan(self, framework: str) -> list[tuple[str, str]]:
        """(legacy relative path, scoped relative path) for every file to move."""
        plan = []
        for rel in list_files(self.workspace, self._scoped_excludes()):
            namespace = SHARED_NAMESPACE if self.isolator.is_shared_resource(rel) else framework
            plan.append((rel, f"{namespace}/{rel}"))
        return plan

    def _move_verified(
        self,
        rel: str,
        dst_rel: str,
        strategy: ConflictStrategy,
        result: ScopedMigrationResult,
    ) -> None:
        """Copy, compare, then delete the source. The source survives any failure."""
        src = self.workspace / rel
        dst = self.workspace / dst_rel
        namespace = dst_rel.split("/")[0]
        writer = result.framework if namespace == SHARED_NAMESPACE else namespace
        try:
            self.isolator.assert_writable(writer, dst_rel)
        except IsolationError as e:
            result.errors.append(MigrationError(path=rel, error=str(e), severity=Severity.ERROR))
            return

        try:
            if dst.exists():
                if same_content(src, dst):
                    src.unlink()
                    result.files_moved_count += 1
                    return
                result.conflicts.append(Conflict(path=rel, resolution=strategy))
                if not self._incoming_wins(src, dst, strategy):
                    result.files_skipped_count += 1
                    result.errors.append(MigrationError(
                        path=rel,
                        error=f"Target exists, kept existing ({strategy.value})",
                        severity=Severity.WARNING,
                    ))
                    return

            atomic_copy_file(src, dst)
            if not same_content(src, dst):
                result.errors.append(MigrationError(
                    path=rel, error="Copy verification failed; source kept", severity=Severity.ERROR
                ))
                return
            src.unlink()
            result.files_moved_count += 1
            logger.debug(f"Moved {rel} -> {dst_rel}")
        except OSError as e:
            result.errors.append(MigrationError(path=rel, error=str(e), severity=Severity.ERROR))

    @staticmethod
    def _incoming_wins(src: Path, dst: Path, strategy: ConflictStrategy) -> bool:
        if strategy == ConflictStrategy.OVERWRITE:
            return True
        if strategy == ConflictStrategy.KEEP_NEWEST:
            return src.stat().st_mtime > dst.stat().st_mtime
        return False

    # -----------------------------------------------------------------
    # Duplicate shared content
    # -----------------------------------------------------------------

    def detect_duplicate_shared(self) -> list[DuplicateInfo]:
        """Shared-category paths present under two or more framework namespaces."""
        found: dict[str, list[str]] = {}
        for framework in self.isolator.frameworks:
            base = self.workspace / framework
            if not base.is_dir():
                continue
            for rel in list_files(base):
                if self.isolator.is_shared_resource(rel):
                    found.setdefault(rel, []).append(framework)

        duplicates = []
        for rel in sorted(found):
            frameworks = found[rel]
            if len(frameworks) < 2:
                continue
            first = self.workspace / frameworks[0] / rel
            identical = all(same_content(first, self.workspace / fw / rel) for fw in frameworks[1:])
            duplicates.append(DuplicateInfo(path=rel, frameworks=frameworks, identical=identical))
        return duplicates

    def merge_duplicate_shared(
        self,
        conflict_strategy: Union[str, ConflictStrategy, None] = ConflictStrategy.KEEP_NEWEST,
        backup: bool = False,
    ) -> MergeResult:
        """Consolidate duplicated shared content into shared/, then remove the copies."""
        strategy = ConflictStrategy.parse(conflict_strategy)
        duplicates = self.detect_duplicate_shared()
        result = MergeResult(id=generate_migration_id())
        result.report.duplicates_found = len(duplicates)
        if not duplicates:
            return result

        if backup:
            result.backup_path = str(self._create_backup(self.workspace, result.id))

        for duplicate in duplicates:
            self._merge_one(duplicate, strategy, result)

        logger.info(
            f"Merged {result.report.merged_count}/{len(duplicates)} duplicate(s) into shared/, "
            f"removed {result.report.removed_count} framework copies"
        )
        return result

    def _merge_one(self, duplicate: DuplicateInfo, strategy: ConflictStrategy, result: MergeResult) -> None:
        shared_rel = f"{SHARED_NAMESPACE}/{duplicate.path}"
        denied = self._isolation_error(duplicate.frameworks[0], self.workspace / shared_rel)
        if denied is not None:
            result.errors.append(MigrationError(path=duplicate.path, error=denied, severity=Severity.ERROR))
            return

        copies = [self.workspace / fw / duplicate.path for fw in duplicate.frameworks]
        shared_path = self.workspace / shared_rel

        if duplicate.identical:
            chosen = copies[0]
        else:
            result.conflicts.append(Conflict(
                path=duplicate.path,
                resolution=strategy,
                description=f"Content differs across: {', '.join(duplicate.frameworks)}",
            ))
            if strategy in (ConflictStrategy.SKIP, ConflictStrategy.MANUAL):
                return
            chosen = self._pick(copies, strategy)

        try:
            if shared_path.exists() and not same_content(shared_path, chosen):
                if strategy in (ConflictStrategy.SKIP, ConflictStrategy.MANUAL):
                    result.conflicts.append(Conflict(
                        path=duplicate.path,
                        resolution=strategy,
                        description="shared/ already holds different content",
                    ))
                    return
                if strategy == ConflictStrategy.KEEP_NEWEST and shared_path.stat().st_mtime >= chosen.stat().st_mtime:
                    chosen = shared_path

            if chosen != shared_path:
                atomic_copy_file(chosen, shared_path)
            if not same_content(chosen, shared_path):
                result.errors.append(MigrationError(
                    path=duplicate.path,
                    error="Shared copy verification failed; framework copies kept",
                    severity=Severity.ERROR,
                ))
                return
            result.report.merged_count += 1

            for copy in copies:
                copy.unlink()
                result.report.removed_count += 1
                _prune_parents(copy, self.workspace / copy.relative_to(self.workspace).parts[0])
        except OSError as e:
            result.errors.append(MigrationError(path=duplicate.path, error=str(e), severity=Severity.ERROR))

    @staticmethod
    def _pick(copies: list[Path], strategy: ConflictStrategy) -> Path:
        if strategy == ConflictStrategy.OVERWRITE:
            return copies[-1]
        return max(copies, key=lambda p: p.stat().st_mtime)

    # -----------------------------------------------------------------
    # Backup and rollback
    # -----------------------------------------------------------------

    def _backups_root(self) -> Path:
        return self.workspace / BACKUPS_DIR

    def _create_backup(self, source: Path, migration_id: str) -> Path:
        """Snapshot source under .aiwg/backups/{id}/ with a sidecar naming the source."""
        source = Path(source).resolve()
        backup_path = self._backups_root() / migration_id
        preserved = []
        nested = _relative_to(self._backups_root(), source)
        if nested:
            preserved.append(nested)

        copy_tree(source, backup_path, exclude=preserved)
        atomic_write_json(self._backups_root() / f"{migration_id}.json", {
            "id": migration_id,
            "source": str(source),
            "preserved": preserved,
            "createdAt": now_iso(),
        })
        logger.info(f"Backed up {source} to {backup_path}")
        return backup_path

    def list_backups(self) -> list[str]:
        root = self._backups_root()
        if not root.is_dir():
            return []
        return sorted(p.name for p in root.iterdir() if p.is_dir())

    def rollback(self, migration_id: str) -> None:
        """Restore the migration's source tree verbatim from its backup.

        The backup is first copied to a staging directory; only then are the
        current entries swapped out. If the swap fails, the displaced entries
        are put back and the error propagates.
        """
        backup_path = self._backups_root() / migration_id
        if not backup_path.is_dir():
            raise BackupNotFoundError(migration_id)

        source = self.workspace.resolve()
        preserved: list[str] = [BACKUPS_DIR]
        sidecar = self._backups_root() / f"{migration_id}.json"
        if sidecar.is_file():
            meta = json.loads(sidecar.read_text(encoding="utf-8"))
            source = Path(meta.get("source", source))
            preserved = list(meta.get("preserved", []))
        # Only top-level entries are swapped; nested preserved paths keep their top dir
        keep = {p.split("/")[0] for p in preserved} | IGNORED_NAMES

        source.mkdir(parents=True, exist_ok=True)
        staging = source.parent / f".{source.name}.rollback-{migration_id}"
        displaced = source.parent / f".{source.name}.displaced-{migration_id}"
        for leftover in (staging, displaced):
            if leftover.exists():
                shutil.rmtree(leftover)

        try:
            copy_tree(backup_path, staging)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        moved_out: list[str] = []
        moved_in: list[str] = []
        displaced.mkdir()
        try:
            for entry in sorted(source.iterdir()):
                if entry.name in keep:
                    continue
                shutil.move(str(entry), str(displaced / entry.name))
                moved_out.append(entry.name)
            for entry in sorted(staging.iterdir()):
                if entry.name in keep:
                    continue
                shutil.move(str(entry), str(source / entry.name))
                moved_in.append(entry.name)
        except OSError:
            logger.error(f"Rollback of {migration_id} failed; restoring previous state")
            for name in moved_in:
                path = source / name
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
            for name in moved_out:
                shutil.move(str(displaced / name), str(source / name))
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        shutil.rmtree(displaced, ignore_errors=True)
        logger.info(f"Rolled back migration {migration_id} ({len(moved_in)} entries restored)")

    # -----------------------------------------------------------------
    # Multi-framework
    # -----------------------------------------------------------------

    def add_frameworks(self, frameworks: Iterable[str]) -> list[str]:
        """Create namespaces for additional frameworks; returns the ones created."""
        created = []
        for framework in frameworks:
            if not self.isolator.is_known_namespace(framework):
                self.isolator.register_framework(framework)
            path = self.isolator.get_framework_path(framework)
            if not path.exists():
                path.mkdir(parents=True)
                created.append(framework)
        self._record_frameworks(frameworks)
        return created

    def _record_frameworks(self, frameworks: Iterable[str]) -> None:
        path = self.workspace / WORKSPACE_FILE
        data: dict = {}
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Rewriting unreadable {path}: {e}")
            if not isinstance(data, dict):
                data = {}
        known = list(data.get("frameworks", []))
        for framework in frameworks:
            if framework not in known:
                known.append(framework)
        data.update({"version": data.get("version", "1.0.0"), "frameworks": known, "updatedAt": now_iso()})
        atomic_write_json(path, data)

    # -----------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------

    def generate_report(self, result: MigrationResult) -> str:
        return format_migration_report(result)


_SEVERITY_ICONS = {
    Severity.CRITICAL: "❌",
    Severity.ERROR: "⚠️",
    Severity.WARNING: "ℹ️",
}


def format_migration_report(result: MigrationResult) -> str:
    lines = ["Migration Report", "=" * 80, ""]
    lines.append(f"Migration ID: {result.id}")
    lines.append(f"Status: {'✓ SUCCESS' if result.success else '❌ FAILED'}")
    lines.append(f"Duration: {result.duration}ms")
    if isinstance(result, ScopedMigrationResult):
        if result.skipped:
            lines.append(f"Skipped: {result.reason}")
        if result.framework:
            lines.append(f"Framework: {result.framework}")
    lines.append("")

    lines.append("Statistics:")
    lines.append(f"  Files Moved:   {result.files_moved_count}")
    lines.append(f"  Files Copied:  {result.files_copied_count}")
    lines.append(f"  Files Skipped: {result.files_skipped_count}")
    if isinstance(result, ScopedMigrationResult):
        lines.append(f"  Framework-specific: {result.framework_specific_count}")
        lines.append(f"  Shared:             {result.shared_resource_count}")
        lines.append(f"  Conflicts:          {len(result.conflicts)}")
    lines.append("")

    if result.backup_path:
        lines.append(f"Backup Created: {result.backup_path}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for index, error in enumerate(result.errors, start=1):
            icon = _SEVERITY_ICONS[error.severity]
            lines.append(f"  {index}. {icon} [{error.severity.value.upper()}] {error.path}")
            lines.append(f"     {error.error}")
    else:
        lines.append("No errors encountered.")

    return "\n".join(lines)
