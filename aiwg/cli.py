"""
AIWG plugin CLI.

Usage:
    aiwg-plugins install SOURCE [--force] [--dry-run]   # Install a plugin source
    aiwg-plugins uninstall ID [--force] [--keep-projects]
    aiwg-plugins order ID                              # Safe uninstall order
    aiwg-plugins status [ID] [--type T] [--verbose]    # Installed plugins + health
    aiwg-plugins status ID --refresh                   # Recompute and store health
    aiwg-plugins validate [--json]                     # Registry consistency report
    aiwg-plugins detect                                # Inspect the project workspace
    aiwg-plugins migrate [--framework F] [--dry-run]   # Legacy -> framework-scoped
    aiwg-plugins copy SOURCE TARGET --framework F      # Copy-migrate a directory
    aiwg-plugins merge-shared [--strategy S]           # Consolidate duplicate shared files
    aiwg-plugins rollback MIGRATION_ID                 # Restore a migration backup
    aiwg-plugins config show|get KEY|set KEY VALUE     # {root}/config.yaml
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from aiwg.config import CONFIG_KEYS, _load_yaml_config, get_config_path, get_settings, save_yaml_config
from aiwg.core.framework_detector import FrameworkDetector
from aiwg.core.plugin_installer import PluginInstaller
from aiwg.core.plugin_status import PluginStatus
from aiwg.core.plugin_uninstaller import PluginUninstaller
from aiwg.core.registry_validator import RegistryValidator
from aiwg.core.workspace_migrator import WorkspaceMigrator, format_migration_report
from aiwg.lib.logger import LOG_LEVELS, setup_logging
from aiwg.lib.typed_errors import AiwgError, describe_error
from aiwg.models.actions import Action
from aiwg.models.migration import ConflictStrategy, MigrationOptions, MigrationTarget
from aiwg.models.plugin import PluginType

STRATEGY_CHOICES = [s.value for s in ConflictStrategy]
TYPE_CHOICES = [t.value for t in PluginType]


# --- Helpers ---


def _root(args: argparse.Namespace) -> Path:
    if getattr(args, "root", None):
        return Path(args.root).expanduser().resolve()
    return get_settings().root


def _project(args: argparse.Namespace) -> Path:
    return Path(getattr(args, "project", None) or ".").expanduser().resolve()


def _dump(model) -> str:
    return json.dumps(model.model_dump(by_alias=True, exclude_none=True, mode="json"), indent=2)


def _print_actions(actions: list[Action], dry_run: bool) -> None:
    if not actions:
        return
    print("\nPlanned actions:" if dry_run else "\nActions:")
    for action in actions:
        mark = "✓" if action.executed else ("-" if dry_run else "✗")
        print(f"  {mark} [{action.type.value}] {action.detail}")


def _print_messages(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"  ⚠ {warning}")
    for error in errors:
        print(f"  ✗ {error}")


# --- Plugin commands ---


def cmd_install(args: argparse.Namespace) -> int:
    installer = PluginInstaller(root=_root(args))
    result = installer.install(
        Path(args.source),
        force=args.force,
        dry_run=args.dry_run,
        skip_dependency_check=args.skip_deps,
    )
    if args.json:
        print(_dump(result))
        return 0 if result.success else 1

    if result.success:
        verb = "Would install" if args.dry_run else "Installed"
        print(f"{verb} {result.plugin_id} v{result.version} -> {result.install_path}")
    else:
        print(f"Install of '{result.plugin_id}' failed:")
    _print_messages(result.errors, result.warnings)
    _print_actions(result.actions, args.dry_run)
    return 0 if result.success else 1


def cmd_uninstall(args: argparse.Namespace) -> int:
    uninstaller = PluginUninstaller(root=_root(args))
    result = uninstaller.uninstall(
        args.plugin_id,
        force=args.force,
        dry_run=args.dry_run,
        keep_projects=args.keep_projects,
    )
    if args.json:
        print(_dump(result))
        return 0 if result.success else 1

    if result.success:
        verb = "Would remove" if args.dry_run else "Removed"
        stats = result.stats
        print(f"{verb} {result.plugin_id}: {stats.files_removed} files, {stats.dirs_removed} directories")
        if stats.projects_archived:
            print(f"  Archived {stats.projects_archived} project(s)")
    else:
        print(f"Uninstall of '{result.plugin_id}' failed:")
    _print_messages(result.errors, result.warnings)
    _print_actions(result.actions, args.dry_run)
    return 0 if result.success else 1


def cmd_order(args: argparse.Namespace) -> int:
    uninstaller = PluginUninstaller(root=_root(args))
    if uninstaller.store.get(args.plugin_id) is None:
        print(f"Plugin '{args.plugin_id}' is not installed")
        return 1
    for index, plugin_id in enumerate(uninstaller.get_uninstall_order(args.plugin_id), start=1):
        print(f"  {index}. {plugin_id}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    status = PluginStatus(root=_root(args))
    plugin_type = PluginType(args.type) if args.type else None

    if args.refresh:
        if not args.plugin_id:
            print("Error: --refresh needs a plugin id")
            return 1
        health = status.refresh_health(args.plugin_id)
        print(f"{args.plugin_id}: {health.status.value}")
        for issue in health.issues or []:
            print(f"  - {issue}")
        return 0

    if args.plugin_id:
        results = status.get_status(plugin_type=plugin_type, plugin_id=args.plugin_id, verbose=True)
        if not results:
            print(f"Plugin '{args.plugin_id}' is not installed")
            return 1
        if args.json:
            print(_dump(results[0]))
            return 0
        result = results[0]
        print(f"{result.name} ({result.id}) v{result.version}")
        print(f"  Type:      {result.type.value}")
        print(f"  Health:    {result.health.value} - {result.health_message}")
        print(f"  Path:      {result.path}")
        print(f"  Installed: {result.installed_at}")
        if result.parent_framework:
            print(f"  Parent:    {result.parent_framework}")
        if result.project_count is not None:
            print(f"  Projects:  {result.project_count}")
        return 0

    print(status.generate_report(plugin_type=plugin_type, verbose=args.verbose,
                                 format="json" if args.json else "text"))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    validator = RegistryValidator(root=_root(args))
    result = validator.validate()
    print(validator.generate_report(format="json" if args.json else "text", result=result))
    return 0 if result.valid else 1


# --- Workspace commands ---


def cmd_detect(args: argparse.Namespace) -> int:
    project = _project(args)
    migrator = WorkspaceMigrator(project)
    detector = FrameworkDetector(project)

    assistants = detector.detect_frameworks()
    print(f"Project: {project}")
    print(f"  Assistant frameworks: {', '.join(assistants) if assistants else '(none)'}")

    legacy = migrator.detect_legacy_workspace()
    if legacy is None:
        print("  Workspace: framework-scoped" if migrator.workspace.is_dir() else "  Workspace: (none)")
        return 0
    print("  Workspace: legacy")
    print(f"    Artifacts:  {legacy.artifact_count}")
    print(f"    Dirs:       {', '.join(legacy.legacy_dirs)}")
    print(f"    Detected:   {', '.join(legacy.frameworks)}")
    print(f"    Git:        {'yes' if legacy.has_git else 'no'}")
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    migrator = WorkspaceMigrator(_project(args))
    result = migrator.migrate_legacy_to_scoped(
        backup=not args.no_backup,
        dry_run=args.dry_run,
        default_framework=args.framework,
        conflict_strategy=args.strategy,
    )
    if args.json:
        print(_dump(result))
    else:
        print(format_migration_report(result))
        for conflict in result.conflicts:
            print(f"  conflict: {conflict.path} ({conflict.resolution.value})")
    return 0 if result.success else 1


def cmd_copy(args: argparse.Namespace) -> int:
    migrator = WorkspaceMigrator(_project(args))
    if not args.dry_run:
        validation = migrator.validate_migration(MigrationTarget(
            source_path=args.source, target_path=args.target, framework=args.framework,
        ))
        for warning in validation.warnings:
            print(f"  ⚠ {warning}")
        if not validation.safe:
            print("Migration is not safe to run; resolve the conflicts above first.")
            return 1

    result = migrator.migrate(MigrationOptions(
        source=args.source,
        target=args.target,
        framework=args.framework,
        backup=not args.no_backup,
        dry_run=args.dry_run,
        overwrite=args.overwrite,
        split_shared=args.split_shared,
    ))
    print(_dump(result) if args.json else migrator.generate_report(result))
    return 0 if result.success else 1


def cmd_merge_shared(args: argparse.Namespace) -> int:
    migrator = WorkspaceMigrator(_project(args))
    if args.dry_run:
        duplicates = migrator.detect_duplicate_shared()
        if not duplicates:
            print("No duplicate shared resources found.")
        for duplicate in duplicates:
            state = "identical" if duplicate.identical else "differs"
            print(f"  {duplicate.path}: {', '.join(duplicate.frameworks)} ({state})")
        return 0

    result = migrator.merge_duplicate_shared(conflict_strategy=args.strategy, backup=args.backup)
    if args.json:
        print(_dump(result))
    else:
        report = result.report
        print(f"Duplicates found: {report.duplicates_found}")
        print(f"Merged:           {report.merged_count}")
        print(f"Copies removed:   {report.removed_count}")
        for conflict in result.conflicts:
            print(f"  conflict: {conflict.path} - {conflict.description}")
        for error in result.errors:
            print(f"  ✗ {error.path}: {error.error}")
        if result.backup_path:
            print(f"Backup Created: {result.backup_path}")
    return 0 if not result.errors else 1


def cmd_rollback(args: argparse.Namespace) -> int:
    migrator = WorkspaceMigrator(_project(args))
    if args.migration_id is None:
        backups = migrator.list_backups()
        if not backups:
            print("No migration backups found.")
        for backup in backups:
            print(f"  {backup}")
        return 0
    migrator.rollback(args.migration_id)
    print(f"Rolled back {args.migration_id}")
    return 0


# --- Config ---


def cmd_config(args: argparse.Namespace) -> int:
    """Config management: show, set, get."""
    root = _root(args)
    action = getattr(args, "action", None)

    if action == "show":
        config = _load_yaml_config(root)
        print(f"\nConfig: {get_config_path(root)}")
        print("-" * 40)
        if not config:
            print("  (empty)")
        for key, value in config.items():
            print(f"  {key}: {value}")
        return 0

    if action in ("get", "set") and args.key not in CONFIG_KEYS:
        print(f"Unknown key: {args.key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS))}")
        return 1

    if action == "get":
        config = _load_yaml_config(root)
        if args.key in config:
            print(config[args.key])
        else:
            print(getattr(get_settings(), args.key))
        return 0

    if action == "set":
        config = _load_yaml_config(root)
        value: object = args.value
        if args.key.endswith(("_hours", "_seconds")):
            try:
                value = float(args.value)
            except ValueError:
                print(f"Error: {args.key} must be a number")
                return 1
        elif args.key == "log_level":
            value = args.value.upper()
            if value not in LOG_LEVELS:
                print(f"Error: log_level must be one of: {', '.join(LOG_LEVELS)}")
                return 1
        config[args.key] = value
        path = save_yaml_config(root, config)
        print(f"Set {args.key} = {value} in {path}")
        return 0

    print("Usage: aiwg-plugins config {show|set|get}")
    return 1


# --- Parser ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aiwg-plugins",
        description="AIWG plugin lifecycle and workspace migration",
    )
    parser.add_argument("--root", help="Plugin root (default: AIWG_ROOT or ~/.local/share/ai-writing-guide)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override the configured log level",
    )
    subparsers = parser.add_subparsers(dest="command")

    # install
    install_parser = subparsers.add_parser("install", help="Install a plugin from a source directory")
    install_parser.add_argument("source", help="Plugin source directory")
    install_parser.add_argument("--force", action="store_true", help="Reinstall if already installed")
    install_parser.add_argument("--dry-run", action="store_true", help="Show the plan without changing anything")
    install_parser.add_argument("--skip-deps", action="store_true", help="Skip parent/dependency checks")
    install_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    # uninstall
    uninstall_parser = subparsers.add_parser("uninstall", help="Uninstall a plugin")
    uninstall_parser.add_argument("plugin_id", help="Plugin id")
    uninstall_parser.add_argument("--force", action="store_true", help="Skip the dependent-plugin check")
    uninstall_parser.add_argument("--dry-run", action="store_true", help="Show the plan without changing anything")
    uninstall_parser.add_argument(
        "--keep-projects", action="store_true",
        help="Archive framework projects to archive/uninstalled/ first",
    )
    uninstall_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    # order
    order_parser = subparsers.add_parser("order", help="Show the safe uninstall order for a plugin")
    order_parser.add_argument("plugin_id", help="Plugin id")

    # status
    status_parser = subparsers.add_parser("status", help="Show installed plugins and health")
    status_parser.add_argument("plugin_id", nargs="?", help="Show a single plugin")
    status_parser.add_argument("--type", choices=TYPE_CHOICES, help="Filter by plugin type")
    status_parser.add_argument("--verbose", "-v", action="store_true", help="Include paths and disk usage")
    status_parser.add_argument("--refresh", action="store_true", help="Recompute and store health")
    status_parser.add_argument("--json", action="store_true", help="Print as JSON")

    # validate
    validate_parser = subparsers.add_parser("validate", help="Check registry consistency")
    validate_parser.add_argument("--json", action="store_true", help="Print as JSON")

    # workspace commands share --project
    project_help = "Project directory containing .aiwg/ (default: current directory)"

    detect_parser = subparsers.add_parser("detect", help="Inspect a project workspace")
    detect_parser.add_argument("--project", help=project_help)

    migrate_parser = subparsers.add_parser("migrate", help="Migrate a legacy workspace to framework-scoped")
    migrate_parser.add_argument("--project", help=project_help)
    migrate_parser.add_argument("--framework", help="Target framework namespace")
    migrate_parser.add_argument("--strategy", choices=STRATEGY_CHOICES, default="skip", help="Conflict strategy")
    migrate_parser.add_argument("--no-backup", action="store_true", help="Do not back up .aiwg/ first")
    migrate_parser.add_argument("--dry-run", action="store_true", help="Report without moving files")
    migrate_parser.add_argument("--json", action="store_true", help="Print as JSON")

    copy_parser = subparsers.add_parser("copy", help="Copy-migrate a directory tree")
    copy_parser.add_argument("source", help="Source directory")
    copy_parser.add_argument("target", help="Target directory")
    copy_parser.add_argument("--framework", required=True, help="Framework performing the writes")
    copy_parser.add_argument("--project", help=project_help)
    copy_parser.add_argument("--overwrite", action="store_true", help="Overwrite existing target files")
    copy_parser.add_argument(
        "--split-shared",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Route shared categories to .aiwg/shared/ (default: only for framework namespace targets)",
    )
    copy_parser.add_argument("--no-backup", action="store_true", help="Do not back up the source first")
    copy_parser.add_argument("--dry-run", action="store_true", help="Count without copying")
    copy_parser.add_argument("--json", action="store_true", help="Print as JSON")

    merge_parser = subparsers.add_parser("merge-shared", help="Merge duplicated shared resources")
    merge_parser.add_argument("--project", help=project_help)
    merge_parser.add_argument("--strategy", choices=STRATEGY_CHOICES, default="keep-newest", help="Conflict strategy")
    merge_parser.add_argument("--backup", action="store_true", help="Back up .aiwg/ first")
    merge_parser.add_argument("--dry-run", action="store_true", help="List duplicates only")
    merge_parser.add_argument("--json", action="store_true", help="Print as JSON")

    rollback_parser = subparsers.add_parser("rollback", help="Restore a migration backup")
    rollback_parser.add_argument("migration_id", nargs="?", help="Migration id (list backups if omitted)")
    rollback_parser.add_argument("--project", help=project_help)

    # config
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show config.yaml")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    return parser


COMMANDS = {
    "install": cmd_install,
    "uninstall": cmd_uninstall,
    "order": cmd_order,
    "status": cmd_status,
    "validate": cmd_validate,
    "detect": cmd_detect,
    "migrate": cmd_migrate,
    "copy": cmd_copy,
    "merge-shared": cmd_merge_shared,
    "rollback": cmd_rollback,
    "config": cmd_config,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except AiwgError as e:
        error = describe_error(e)
        print(f"{error.title}: {error.message}", file=sys.stderr)
        if error.hint:
            print(f"  {error.hint}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
