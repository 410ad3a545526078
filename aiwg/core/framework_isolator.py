"""
Framework isolation for scoped workspaces.

A scoped workspace partitions `{project}/.aiwg/` into namespaces:

    .aiwg/shared/{category}/   - SDLC artifacts every framework may read
    .aiwg/{framework}/         - one private namespace per framework

Resource paths handed to the access checks are relative to `.aiwg/`
(`shared/requirements/uc-001.md`, `claude/agents/reviewer.md`). The
migrator classifies every target path here before writing it.
"""

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Optional

import yaml

from aiwg.lib.fs import list_files
from aiwg.lib.typed_errors import IsolationError, UnknownFrameworkError
from aiwg.models.migration import ContaminationIssue, IsolationReport

logger = logging.getLogger(__name__)

SHARED_NAMESPACE = "shared"
DEFAULT_FRAMEWORKS = ("claude", "codex", "cursor")

FRAMEWORK_SPECIFIC_DIRS = ("agents", "commands", "memory", "context")
SHARED_RESOURCE_DIRS = (
    "requirements", "architecture", "testing", "deployment",
    "security", "quality", "risks", "planning",
)
FRAMEWORK_CONFIG_FILES = ("settings.json", "config.yaml", "config.yml")


def _normalize(resource: str) -> str:
    """Strip leading slashes and reject parent traversal."""
    cleaned = resource.replace("\\", "/").lstrip("/")
    if ".." in PurePosixPath(cleaned).parts:
        raise ValueError(f"Path traversal not allowed: {resource}")
    return cleaned


def _first_segment(resource: str) -> str:
    parts = PurePosixPath(resource.replace("\\", "/").lstrip("/")).parts
    return parts[0] if parts else ""


class FrameworkIsolator:
    """Path resolution and access control for `.aiwg/` namespaces."""

    def __init__(self, project_root: Path, frameworks: Optional[Iterable[str]] = None):
        self.project_root = Path(project_root).resolve()
        self.workspace = self.project_root / ".aiwg"
        self._frameworks: list[str] = list(frameworks if frameworks is not None else DEFAULT_FRAMEWORKS)

    @property
    def frameworks(self) -> list[str]:
        return list(self._frameworks)

    def register_framework(self, framework: str) -> None:
        if framework == SHARED_NAMESPACE:
            raise ValueError("'shared' is reserved and cannot be registered as a framework")
        if framework not in self._frameworks:
            self._frameworks.append(framework)

    def is_known_namespace(self, namespace: str) -> bool:
        return namespace == SHARED_NAMESPACE or namespace in self._frameworks

    # -----------------------------------------------------------------
    # Paths and classification
    # -----------------------------------------------------------------

    def get_framework_path(self, framework: str, resource: Optional[str] = None) -> Path:
        """Resolve `.aiwg/{framework}/{resource}` for a known namespace."""
        if not self.is_known_namespace(framework):
            raise UnknownFrameworkError(framework)
        base = self.workspace / framework
        if not resource:
            return base
        return base / _normalize(resource)

    @staticmethod
    def is_shared_resource(resource: str) -> bool:
        """Resources rooted at an SDLC category are shared across frameworks."""
        return _first_segment(resource) in SHARED_RESOURCE_DIRS

    @staticmethod
    def is_private_resource(resource: str) -> bool:
        """Agents, commands, memory, context and framework config are private."""
        if _first_segment(resource) in FRAMEWORK_SPECIFIC_DIRS:
            return True
        return PurePosixPath(resource.replace("\\", "/")).name in FRAMEWORK_CONFIG_FILES

    # -----------------------------------------------------------------
    # Access control
    # -----------------------------------------------------------------

    def can_access(self, framework: str, resource: str) -> bool:
        namespace = _first_segment(resource)
        return namespace == SHARED_NAMESPACE or namespace == framework

    def can_read(self, framework: str, resource: str) -> bool:
        return self.can_access(framework, resource)

    def can_write(self, framework: str, resource: str) -> bool:
        """Own namespace always; shared/ except private-type content; nothing else."""
        try:
            cleaned = _normalize(resource)
        except ValueError:
            return False
        namespace = _first_segment(cleaned)
        if namespace == framework and framework != SHARED_NAMESPACE:
            return True
        if namespace == SHARED_NAMESPACE:
            inner = "/".join(PurePosixPath(cleaned).parts[1:])
            return not self.is_private_resource(inner)
        return False

    def assert_writable(self, framework: str, resource: str) -> None:
        if not self.can_write(framework, resource):
            raise IsolationError(framework, resource)

    # -----------------------------------------------------------------
    # Inspection
    # -----------------------------------------------------------------

    def validate_isolation(self) -> IsolationReport:
        """Flag private-type content found under shared/."""
        issues: list[ContaminationIssue] = []
        shared = self.workspace / SHARED_NAMESPACE
        if shared.is_dir():
            for entry in sorted(shared.iterdir()):
                if entry.is_dir() and entry.name in FRAMEWORK_SPECIFIC_DIRS:
                    issues.append(ContaminationIssue(
                        path=f"shared/{entry.name}",
                        kind="private-dir",
                        message=f"{entry.name} should not be in shared",
                    ))
            for rel in list_files(shared):
                if PurePosixPath(rel).name in FRAMEWORK_CONFIG_FILES:
                    issues.append(ContaminationIssue(
                        path=f"shared/{rel}",
                        kind="config-file",
                        message=f"{PurePosixPath(rel).name} should not be in shared",
                    ))
        present = [fw for fw in self._frameworks if (self.workspace / fw).is_dir()]
        return IsolationReport(valid=not issues, issues=issues, frameworks=present)

    def get_framework_resources(self, framework: str, resource_type: str) -> list[str]:
        path = self.get_framework_path(framework, resource_type)
        if not path.is_dir():
            return []
        return sorted(entry.name for entry in path.iterdir())

    def get_shared_resources(self, resource_type: str) -> list[str]:
        path = self.get_framework_path(SHARED_NAMESPACE, resource_type)
        if not path.is_dir():
            return []
        return sorted(entry.name for entry in path.iterdir())

    def get_framework_config(self, framework: str) -> dict[str, Any]:
        """settings.json, else config.yaml, else a minimal default."""
        settings_path = self.get_framework_path(framework, "settings.json")
        if settings_path.is_file():
            try:
                return json.loads(settings_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable {settings_path}: {e}")

        for name in ("config.yaml", "config.yml"):
            yaml_path = self.get_framework_path(framework, name)
            if not yaml_path.is_file():
                continue
            try:
                with open(yaml_path) as f:
                    data = yaml.safe_load(f) or {}
                if isinstance(data, dict):
                    return data
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring unreadable {yaml_path}: {e}")

        return {"framework": framework}

    def categorize_resources(self, workspace: Optional[Path] = None) -> dict[str, list[str]]:
        """Split legacy workspace files into framework-specific and shared lists."""
        root = Path(workspace) if workspace is not None else self.workspace
        framework_specific: list[str] = []
        shared: list[str] = []
        for name in FRAMEWORK_SPECIFIC_DIRS:
            framework_specific.extend(f"{name}/{rel}" for rel in list_files(root / name))
        for name in SHARED_RESOURCE_DIRS:
            shared.extend(f"{name}/{rel}" for rel in list_files(root / name))
        return {"framework_specific": framework_specific, "shared": shared}
