"""
Plugin lifecycle and workspace migration engines.
"""

from aiwg.core.plugin_installer import PluginInstaller
from aiwg.core.plugin_status import PluginStatus
from aiwg.core.plugin_uninstaller import PluginUninstaller
from aiwg.core.registry import RegistryStore
from aiwg.core.registry_validator import RegistryValidator
from aiwg.core.workspace_migrator import WorkspaceMigrator

__all__ = [
    "PluginInstaller",
    "PluginStatus",
    "PluginUninstaller",
    "RegistryStore",
    "RegistryValidator",
    "WorkspaceMigrator",
]
