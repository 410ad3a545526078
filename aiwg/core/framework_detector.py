"""
Default framework classifier.

Detects which AI assistant frameworks a project uses from directory
evidence: `{project}/.{id}/` or `{project}/.aiwg/{id}/`. The migrator only
needs an object with `detect_frameworks()`; anything with that method can
be injected instead.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol

from aiwg.core.framework_isolator import DEFAULT_FRAMEWORKS, SHARED_NAMESPACE
from aiwg.models.migration import AssistantFramework

logger = logging.getLogger(__name__)

# Top-level directories of a flat, pre-scoping .aiwg/ workspace
LEGACY_DIRS = (
    "intake", "requirements", "architecture", "planning", "risks",
    "testing", "security", "quality", "deployment", "handoffs",
    "gates", "decisions", "team", "working", "reports",
)


class FrameworkClassifier(Protocol):
    def detect_frameworks(self) -> list[str]: ...


class FrameworkDetector:
    def __init__(self, project_root: Path, frameworks: Optional[Iterable[str]] = None):
        self.project_root = Path(project_root)
        self.frameworks = list(frameworks if frameworks is not None else DEFAULT_FRAMEWORKS)

    def detect_frameworks(self) -> list[str]:
        """Framework ids with a `.{id}/` or `.aiwg/{id}/` directory, in declared order."""
        detected = []
        for framework in self.frameworks:
            if self._framework_dir(framework) is not None:
                detected.append(framework)
        return detected

    def is_legacy_workspace(self) -> bool:
        return is_legacy_layout(self.project_root / ".aiwg", self.frameworks)

    def get_framework_info(self, framework: str) -> AssistantFramework:
        path = self._framework_dir(framework)
        if path is None:
            raise ValueError(f"Framework not found: {framework}")

        info = AssistantFramework(name=framework, path=str(path))
        settings = path / "settings.json"
        if settings.is_file():
            try:
                data = json.loads(settings.read_text(encoding="utf-8"))
                info.version = data.get("version")
                info.capabilities = data.get("capabilities")
            except (OSError, json.JSONDecodeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable {settings}: {e}")

        info.agent_count = _count_files(path / "agents")
        info.command_count = _count_files(path / "commands")
        return info

    def _framework_dir(self, framework: str) -> Optional[Path]:
        # .aiwg/{id} wins over the assistant's own dot-directory
        for candidate in (self.project_root / ".aiwg" / framework, self.project_root / f".{framework}"):
            if candidate.is_dir():
                return candidate
        return None


def _count_files(directory: Path) -> int:
    if not directory.is_dir():
        return 0
    return sum(1 for entry in directory.iterdir() if entry.is_file())


def is_legacy_layout(workspace: Path, frameworks: Iterable[str]) -> bool:
    """Legacy: SDLC dirs directly under .aiwg/, no shared/ or framework namespace."""
    if not workspace.is_dir():
        return False
    if not any((workspace / name).is_dir() for name in LEGACY_DIRS):
        return False
    scoped = [SHARED_NAMESPACE, *frameworks]
    return not any((workspace / name).is_dir() for name in scoped)
