"""
Registry store.

`{root}/registry.json` is the sole source of truth for installed plugins.
Every call reads or writes the file; nothing is cached between calls, so a
long operation must re-load rather than reuse an earlier Registry.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from aiwg.lib.fs import atomic_write_json
from aiwg.lib.typed_errors import RegistryEntryNotFoundError
from aiwg.models.plugin import PluginEntry, PluginType, Registry, now_iso

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "registry.json"
TRASH_DIR = ".trash"  # Staging area for removals that may still be undone
MANIFEST_FILENAMES = ("manifest.json", "manifest.md")


class RegistryStore:
    """Load/save access to registry.json under a plugin root."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.path = self.root / REGISTRY_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Registry:
        """Read the registry; a missing or unparsable file yields an empty one."""
        registry, _ = self.try_load()
        return registry

    def try_load(self) -> tuple[Registry, Optional[str]]:
        """Read the registry and report why it could not be parsed, if it couldn't."""
        if not self.path.exists():
            return Registry(), None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Registry.model_validate(data), None
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to read registry {self.path}: {e}")
            return Registry(), str(e)

    def save(self, registry: Registry) -> None:
        """Atomically overwrite registry.json, stamping lastModified."""
        registry.last_modified = now_iso()
        atomic_write_json(self.path, registry.to_json())
        logger.debug(f"Saved registry with {len(registry.plugins)} plugin(s)")

    def get(self, plugin_id: str) -> Optional[PluginEntry]:
        return self.load().get(plugin_id)

    def list_by_type(self, plugin_type: Optional[PluginType] = None) -> list[PluginEntry]:
        plugins = self.load().plugins
        if plugin_type is None:
            return plugins
        return [p for p in plugins if p.type == plugin_type]

    def upsert(self, entry: PluginEntry) -> None:
        """Insert or replace an entry by id."""
        registry = self.load()
        registry.plugins = [p for p in registry.plugins if p.id != entry.id] + [entry]
        self.save(registry)

    def update(self, entry: PluginEntry) -> None:
        """Replace an existing entry; unknown ids raise."""
        registry = self.load()
        for index, existing in enumerate(registry.plugins):
            if existing.id == entry.id:
                registry.plugins[index] = entry
                self.save(registry)
                return
        raise RegistryEntryNotFoundError(entry.id)

    def remove(self, plugin_id: str) -> bool:
        registry = self.load()
        remaining = [p for p in registry.plugins if p.id != plugin_id]
        if len(remaining) == len(registry.plugins):
            return False
        registry.plugins = remaining
        self.save(registry)
        return True

    def snapshot(self) -> Optional[bytes]:
        """Raw bytes of registry.json, or None when it does not exist."""
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def restore(self, snapshot: Optional[bytes]) -> None:
        """Put registry.json back exactly as captured by snapshot()."""
        if snapshot is None:
            if self.path.exists():
                self.path.unlink()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f".{REGISTRY_FILENAME}.restore")
        tmp.write_bytes(snapshot)
        tmp.replace(self.path)


def plugin_dir(root: Path, entry: PluginEntry) -> Path:
    """Absolute directory of an installed plugin."""
    return Path(root) / entry.path


def locate_manifest(root: Path, entry: PluginEntry) -> Optional[Path]:
    """Find an installed plugin's manifest (frameworks keep theirs in repo/)."""
    base = plugin_dir(root, entry)
    candidates = [base / "repo", base] if entry.type == PluginType.FRAMEWORK else [base]
    for directory in candidates:
        for name in MANIFEST_FILENAMES:
            manifest = directory / name
            if manifest.is_file():
                return manifest
    return None
