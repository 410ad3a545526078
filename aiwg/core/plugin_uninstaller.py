"""
Plugin removal.

Uninstall runs validate -> check-deps -> [archive-projects] -> remove-dir ->
update-registry as reversible steps. The plugin directory is first moved
into `{root}/.trash/` so the removal can be undone; the trash is purged
only once every step has succeeded.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from aiwg.config import get_settings
from aiwg.core.registry import TRASH_DIR, RegistryStore, plugin_dir
from aiwg.core.transaction import Step, Transaction
from aiwg.lib.fs import format_bytes, list_files, remove_if_empty, tree_stats
from aiwg.lib.lock import RegistryLock
from aiwg.lib.typed_errors import RegistryLockError, TransactionError
from aiwg.models.actions import Action, ActionType, UninstallCheck, UninstallResult
from aiwg.models.plugin import PluginEntry, PluginType, Registry

logger = logging.getLogger(__name__)

ARCHIVE_DIR = Path("archive") / "uninstalled"


class PluginUninstaller:
    """Removes installed plugins and their registry entries."""

    def __init__(
        self,
        root: Optional[Path] = None,
        store: Optional[RegistryStore] = None,
        lock_timeout: Optional[float] = None,
        lock_stale_after: Optional[float] = None,
    ):
        settings = get_settings()
        self.root = Path(root) if root is not None else settings.root
        self.store = store or RegistryStore(self.root)
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.lock_timeout_seconds
        self.lock_stale_after = (
            lock_stale_after if lock_stale_after is not None else settings.lock_stale_seconds
        )

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def list_installed(self, plugin_type: Optional[PluginType] = None) -> list[PluginEntry]:
        return self.store.list_by_type(plugin_type)

    def get_dependent_plugins(self, plugin_id: str, registry: Optional[Registry] = None) -> list[PluginEntry]:
        """Entries whose parentFramework is plugin_id."""
        registry = registry or self.store.load()
        return [p for p in registry.plugins if p.parent_framework == plugin_id]

    def get_uninstall_order(self, plugin_id: str) -> list[str]:
        """Depth-first order with every (transitive) dependent before its parent."""
        registry = self.store.load()
        order: list[str] = []
        visited: set[str] = set()

        def visit(current: str) -> None:
            if current in visited:
                return
            visited.add(current)
            for dependent in self.get_dependent_plugins(current, registry):
                visit(dependent.id)
            order.append(current)

        visit(plugin_id)
        return order

    def get_active_projects(self, entry: PluginEntry) -> list[str]:
        if entry.type != PluginType.FRAMEWORK:
            return []
        projects_dir = plugin_dir(self.root, entry) / "projects"
        if not projects_dir.is_dir():
            return []
        return sorted(p.name for p in projects_dir.iterdir() if p.is_dir())

    def can_uninstall(self, plugin_id: str) -> UninstallCheck:
        entry = self.store.get(plugin_id)
        if entry is None:
            return UninstallCheck(can_uninstall=False, reason=f"Plugin '{plugin_id}' is not installed")

        dependents = self.get_dependent_plugins(plugin_id)
        if dependents:
            ids = ", ".join(d.id for d in dependents)
            return UninstallCheck(
                can_uninstall=False,
                reason=f"Plugin has {len(dependents)} dependent plugin(s): {ids}",
            )

        warnings = []
        projects = self.get_active_projects(entry)
        if projects:
            warnings.append(f"Plugin has {len(projects)} active project(s)")
        return UninstallCheck(can_uninstall=True, warnings=warnings)

    # -----------------------------------------------------------------
    # Uninstall
    # -----------------------------------------------------------------

    def uninstall(
        self,
        plugin_id: str,
        force: bool = False,
        dry_run: bool = False,
        keep_projects: bool = False,
    ) -> UninstallResult:
        if dry_run:
            return self._run(plugin_id, force, keep_projects, dry_run=True)

        if not self.store.exists():
            return UninstallResult(
                success=False,
                plugin_id=plugin_id,
                errors=[f"Plugin '{plugin_id}' is not installed"],
                actions=[Action(type=ActionType.VALIDATE, detail=f"Look up {plugin_id}")],
            )
        try:
            with RegistryLock(self.root, self.lock_timeout, self.lock_stale_after):
                return self._run(plugin_id, force, keep_projects, dry_run=False)
        except RegistryLockError as e:
            return UninstallResult(success=False, plugin_id=plugin_id, errors=[str(e)])

    def _run(self, plugin_id: str, force: bool, keep_projects: bool, dry_run: bool) -> UninstallResult:
        result = UninstallResult(success=False, plugin_id=plugin_id)
        registry = self.store.load()
        entry = registry.get(plugin_id)
        if entry is None:
            result.errors.append(f"Plugin '{plugin_id}' is not installed")
            result.actions.append(Action(type=ActionType.VALIDATE, detail=f"Look up {plugin_id}"))
            return result

        dependents = self.get_dependent_plugins(plugin_id, registry)
        if dependents and not force:
            names = ", ".join(f"{d.id} ({d.type.value})" for d in dependents)
            result.errors.append(
                f"Cannot uninstall '{plugin_id}' - the following plugins depend on it: {names}. "
                f"Uninstall them first or use --force to skip this check."
            )
            result.actions = [
                Action(type=ActionType.VALIDATE, executed=not dry_run,
                       detail=f"Found plugin: {entry.name} v{entry.version} ({entry.type.value})"),
                Action(type=ActionType.CHECK_DEPS, executed=not dry_run,
                       detail=f"Found {len(dependents)} dependent plugin(s)"),
            ]
            return result
        if force:
            result.warnings.append("Dependency check skipped (--force)")

        projects = self.get_active_projects(entry)
        if projects:
            result.warnings.append(f"Plugin has {len(projects)} active project(s): {', '.join(projects)}")

        target = plugin_dir(self.root, entry)
        if not target.exists():
            result.warnings.append(f"Plugin directory not found: {entry.path}")

        stats = tree_stats(target)
        result.stats.files_removed = stats.files
        result.stats.dirs_removed = stats.dirs + 1 if target.is_dir() else 0
        result.stats.bytes_freed = stats.bytes
        archive = keep_projects and bool(projects)
        if archive:
            result.stats.projects_archived = len(projects)

        steps = self._plan(entry, target, dependents, force, archive)
        if dry_run:
            result.actions = [step.action for step in steps]
            result.success = True
            return result

        transaction = Transaction(steps)
        result.actions = transaction.actions
        try:
            transaction.run()
        except TransactionError as e:
            result.errors.append(f"Uninstall failed: {e.cause}")
            result.errors.extend(transaction.undo_failures)
            result.actions.append(Action(
                type=ActionType.ROLLBACK,
                executed=True,
                detail="Rolling back changes due to error",
            ))
            logger.error(f"Uninstall of '{plugin_id}' failed and was rolled back: {e}")
            return result

        result.success = True
        logger.info(
            f"Uninstalled {entry.type.value} '{plugin_id}' "
            f"({result.stats.files_removed} files, {format_bytes(result.stats.bytes_freed)})"
        )
        return result

    # -----------------------------------------------------------------
    # Planning
    # -----------------------------------------------------------------

    def _plan(
        self,
        entry: PluginEntry,
        target: Path,
        dependents: list[PluginEntry],
        force: bool,
        archive: bool,
    ) -> list[Step]:
        if force and dependents:
            deps_detail = f"Dependency check skipped; {len(dependents)} dependent plugin(s) left in place"
        elif force:
            deps_detail = "Dependency check skipped"
        else:
            deps_detail = "No dependent plugins found"

        steps = [
            Step(Action(type=ActionType.VALIDATE,
                        detail=f"Found plugin: {entry.name} v{entry.version} ({entry.type.value})"), _noop),
            Step(Action(type=ActionType.CHECK_DEPS, detail=deps_detail), _noop),
        ]
        if archive:
            steps.append(self._archive_step(entry, target / "projects"))
        if target.exists():
            steps.append(self._remove_dir_step(entry, target))
        steps.append(self._registry_step(entry))
        return steps

    def _archive_step(self, entry: PluginEntry, projects_dir: Path) -> Step:
        dest = self.root / ARCHIVE_DIR / entry.id
        written: list[tuple[Path, Optional[bytes]]] = []
        created_dirs: list[Path] = []

        def apply() -> None:
            for rel in list_files(projects_dir):
                dst = dest / rel
                missing = []
                parent = dst.parent
                while not parent.exists():
                    missing.append(parent)
                    parent = parent.parent
                created_dirs.extend(reversed(missing))
                dst.parent.mkdir(parents=True, exist_ok=True)
                written.append((dst, dst.read_bytes() if dst.exists() else None))
                shutil.copy2(projects_dir / rel, dst)

        def undo() -> None:
            for dst, previous in reversed(written):
                if previous is not None:
                    dst.write_bytes(previous)
                elif dst.exists():
                    dst.unlink()
            for directory in reversed(created_dirs):
                remove_if_empty(directory)

        return Step(
            action=Action(
                type=ActionType.ARCHIVE_PROJECTS,
                detail=f"Archive projects to {(ARCHIVE_DIR / entry.id).as_posix()}",
                path=str(dest),
            ),
            apply=apply,
            undo=undo,
        )

    def _remove_dir_step(self, entry: PluginEntry, target: Path) -> Step:
        trash = self.root / TRASH_DIR / f"{entry.id}-{uuid.uuid4().hex[:8]}"

        def apply() -> None:
            trash.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(target), str(trash))

        def undo() -> None:
            shutil.move(str(trash), str(target))
            remove_if_empty(trash.parent)

        def finalize() -> None:
            shutil.rmtree(trash)
            remove_if_empty(trash.parent)

        return Step(
            action=Action(type=ActionType.REMOVE_DIR, detail=f"Remove directory: {entry.path}", path=str(target)),
            apply=apply,
            undo=undo,
            finalize=finalize,
        )

    def _registry_step(self, entry: PluginEntry) -> Step:
        snapshot: Optional[bytes] = None

        def apply() -> None:
            nonlocal snapshot
            snapshot = self.store.snapshot()
            self.store.remove(entry.id)

        def undo() -> None:
            self.store.restore(snapshot)

        return Step(
            action=Action(type=ActionType.UPDATE_REGISTRY, detail=f"Remove {entry.id} from registry",
                          path=str(self.store.path)),
            apply=apply,
            undo=undo,
        )


def _noop() -> None:
    pass
