"""
Plugin installation from a local source directory.

A plugin source holds a manifest (manifest.json or manifest.md) plus its
files. Installation copies the files under the registry root and records
a PluginEntry:

    frameworks/{id}/repo/       - framework files
    frameworks/{id}/projects/   - project workspaces, kept across reinstalls
    frameworks/{id}/working/    - scratch space for framework tooling
    frameworks/{id}/archive/    - archived framework artifacts
    add-ons/{id}/               - add-on files
    extensions/{id}/            - extension files

The install is planned as a list of reversible steps (see transaction.py).
A dry run returns the plan without touching the filesystem. A real run
holds the registry lock, re-checks the registry, and executes the plan;
any failure undoes what this run did.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from aiwg.config import get_settings
from aiwg.core.manifest import find_manifest, validate_plugin_source
from aiwg.core.registry import TRASH_DIR, RegistryStore
from aiwg.core.transaction import Step, Transaction
from aiwg.lib.fs import IGNORED_NAMES, atomic_copy_file, list_files, remove_if_empty
from aiwg.lib.lock import RegistryLock
from aiwg.lib.typed_errors import RegistryLockError, TransactionError
from aiwg.models.actions import Action, ActionType, InstallResult, ValidationCheck
from aiwg.models.plugin import (
    HealthStatus,
    PluginEntry,
    PluginHealth,
    PluginManifest,
    PluginType,
    Registry,
)

logger = logging.getLogger(__name__)

FRAMEWORK_DIRS = ("repo", "projects", "working", "archive")


class PluginInstaller:
    """Installs plugin sources under a registry root."""

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

    def validate_plugin(self, source: Path) -> ValidationCheck:
        """Check a plugin source without installing it. Never raises."""
        return validate_plugin_source(Path(source))

    def list_installed(self, plugin_type: Optional[PluginType] = None) -> list[PluginEntry]:
        return self.store.list_by_type(plugin_type)

    def get_plugin_info(self, plugin_id: str) -> Optional[PluginEntry]:
        return self.store.get(plugin_id)

    def get_install_path(self, manifest: PluginManifest) -> Path:
        return self.root / manifest.type.root_dir / manifest.id

    # -----------------------------------------------------------------
    # Install
    # -----------------------------------------------------------------

    def install(
        self,
        source: Path,
        force: bool = False,
        dry_run: bool = False,
        skip_dependency_check: bool = False,
    ) -> InstallResult:
        source = Path(source)
        check = self.validate_plugin(source)
        validate_action = Action(type=ActionType.VALIDATE, detail=f"Validate plugin source {source}")

        if not check.valid or check.manifest is None:
            return InstallResult(
                success=False,
                plugin_id=source.name,
                errors=check.errors,
                warnings=check.warnings,
                actions=[validate_action],
            )

        manifest = check.manifest
        install_path = self.get_install_path(manifest)
        result = InstallResult(
            success=False,
            plugin_id=manifest.id,
            version=manifest.version,
            install_path=str(install_path),
            warnings=list(check.warnings),
        )

        if dry_run:
            errors = self._preflight(manifest, self.store.load(), force, skip_dependency_check, result.warnings)
            if errors:
                result.errors.extend(errors)
                result.actions = [validate_action]
                return result
            result.actions = [step.action for step in self._plan(source, manifest)]
            result.success = True
            return result

        self.root.mkdir(parents=True, exist_ok=True)
        try:
            with RegistryLock(self.root, self.lock_timeout, self.lock_stale_after):
                # Re-read inside the lock; another process may have installed meanwhile
                errors = self._preflight(
                    manifest, self.store.load(), force, skip_dependency_check, result.warnings
                )
                if errors:
                    result.errors.extend(errors)
                    result.actions = [validate_action]
                    return result

                transaction = Transaction(self._plan(source, manifest))
                result.actions = transaction.actions
                try:
                    transaction.run()
                except TransactionError as e:
                    result.errors.append(f"Installation failed: {e.cause}")
                    result.errors.extend(transaction.undo_failures)
                    result.actions.append(Action(
                        type=ActionType.ROLLBACK,
                        executed=True,
                        detail="Rolling back changes due to error",
                    ))
                    logger.error(f"Install of '{manifest.id}' failed and was rolled back: {e}")
                    return result
        except RegistryLockError as e:
            result.errors.append(str(e))
            return result

        result.success = True
        logger.info(f"Installed {manifest.type.value} '{manifest.id}' v{manifest.version} to {install_path}")
        return result

    def _preflight(
        self,
        manifest: PluginManifest,
        registry: Registry,
        force: bool,
        skip_dependency_check: bool,
        warnings: list[str],
    ) -> list[str]:
        """Registry-level checks: duplicates, parent framework, dependencies."""
        errors: list[str] = []
        if registry.get(manifest.id) is not None:
            if not force:
                return [f"Plugin '{manifest.id}' is already installed. Use --force to reinstall."]
            message = f"Reinstalling existing plugin '{manifest.id}'"
            if message not in warnings:
                warnings.append(message)

        if skip_dependency_check:
            return errors

        if manifest.type == PluginType.ADD_ON and manifest.parent_framework:
            parent = registry.get(manifest.parent_framework)
            if parent is None or parent.type != PluginType.FRAMEWORK:
                errors.append(
                    f"Parent framework '{manifest.parent_framework}' is not installed. "
                    f"Install it first: aiwg-plugins install <{manifest.parent_framework}-source>"
                )

        for dep_id, dep_range in (manifest.dependencies or {}).items():
            if registry.get(dep_id) is None:
                errors.append(f"Required dependency '{dep_id}' ({dep_range}) is not installed")
        return errors

    # -----------------------------------------------------------------
    # Planning
    # -----------------------------------------------------------------

    def _source_files(self, source: Path, manifest: PluginManifest) -> list[str]:
        """Relative paths to copy; restricted to declared files when `files` is set."""
        if manifest.files is None:
            return list_files(source)

        selected: set[str] = set()
        manifest_path = find_manifest(source)
        if manifest_path is not None:
            selected.add(manifest_path.name)
        for declared in manifest.files:
            rel = declared.strip("/")
            if not rel or rel.split("/")[0] in IGNORED_NAMES:
                continue
            path = source / rel
            if path.is_dir():
                selected.update(f"{rel}/{inner}" for inner in list_files(path))
            else:
                selected.add(rel)
        return sorted(selected)

    def _plan(self, source: Path, manifest: PluginManifest) -> list[Step]:
        install_path = self.get_install_path(manifest)
        files_root = install_path / "repo" if manifest.type == PluginType.FRAMEWORK else install_path
        files = self._source_files(source, manifest)

        steps = [Step(
            action=Action(
                type=ActionType.VALIDATE,
                detail=f"Validated manifest for {manifest.name} v{manifest.version}",
            ),
            apply=lambda: None,
        )]

        # Framework reinstalls replace repo/ only; projects/ holds user data
        if files_root.exists():
            steps.append(self._replace_step(manifest.id, files_root))

        directories = [parent for parent in install_path.parents if self.root in parent.parents]
        directories.append(install_path)
        if manifest.type == PluginType.FRAMEWORK:
            directories += [install_path / name for name in FRAMEWORK_DIRS]
        for rel in files:
            parent = (files_root / rel).parent
            while parent != files_root and parent not in directories:
                directories.append(parent)
                parent = parent.parent
        directories.sort(key=lambda d: (len(d.parts), str(d)))
        for directory in directories:
            steps.append(self._create_dir_step(directory))

        for rel in files:
            steps.append(self._copy_file_step(source / rel, files_root / rel))

        steps.append(self._registry_step(manifest, install_path))
        return steps

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _replace_step(self, plugin_id: str, replaced: Path) -> Step:
        """Move previously installed files aside so a forced reinstall starts clean."""
        trash = self.root / TRASH_DIR / f"{plugin_id}-previous"

        def apply() -> None:
            if trash.exists():
                shutil.rmtree(trash)
            trash.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(replaced), str(trash))

        def undo() -> None:
            if replaced.exists():
                shutil.rmtree(replaced)
            shutil.move(str(trash), str(replaced))
            remove_if_empty(trash.parent)

        def finalize() -> None:
            shutil.rmtree(trash, ignore_errors=True)
            remove_if_empty(trash.parent)

        return Step(
            action=Action(
                type=ActionType.REMOVE_DIR,
                detail=f"Remove previous install at {self._rel(replaced)}",
                path=str(replaced),
            ),
            apply=apply,
            undo=undo,
            finalize=finalize,
        )

    def _create_dir_step(self, directory: Path) -> Step:
        created = False

        def apply() -> None:
            nonlocal created
            if not directory.exists():
                directory.mkdir(parents=True)
                created = True

        def undo() -> None:
            if created and directory.exists():
                shutil.rmtree(directory)

        return Step(
            action=Action(
                type=ActionType.CREATE_DIR,
                detail=f"Create directory: {self._rel(directory)}",
                path=str(directory),
            ),
            apply=apply,
            undo=undo,
        )

    def _copy_file_step(self, src: Path, dst: Path) -> Step:
        previous: Optional[bytes] = None

        def apply() -> None:
            nonlocal previous
            if dst.exists():
                previous = dst.read_bytes()
            atomic_copy_file(src, dst)
            logger.debug(f"Copied {src} -> {dst}")

        def undo() -> None:
            if previous is not None:
                dst.write_bytes(previous)
            elif dst.exists():
                dst.unlink()

        return Step(
            action=Action(
                type=ActionType.COPY_FILE,
                detail=f"Copy file: {self._rel(dst)}",
                path=str(dst),
            ),
            apply=apply,
            undo=undo,
        )

    def _registry_step(self, manifest: PluginManifest, install_path: Path) -> Step:
        snapshot: Optional[bytes] = None

        def apply() -> None:
            nonlocal snapshot
            snapshot = self.store.snapshot()
            self.store.upsert(PluginEntry(
                id=manifest.id,
                type=manifest.type,
                name=manifest.name,
                version=manifest.version,
                path=self._rel(install_path),
                parent_framework=manifest.parent_framework,
                health=PluginHealth(status=HealthStatus.HEALTHY),
            ))

        def undo() -> None:
            self.store.restore(snapshot)

        return Step(
            action=Action(
                type=ActionType.UPDATE_REGISTRY,
                detail=f"Update registry: add {manifest.id} v{manifest.version}",
                path=str(self.store.path),
            ),
            apply=apply,
            undo=undo,
        )