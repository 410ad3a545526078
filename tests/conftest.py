"""
Pytest configuration and fixtures.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

import pytest

# Set test environment before aiwg.config builds its settings
os.environ["AIWG_ROOT"] = tempfile.mkdtemp(prefix="aiwg-test-")
os.environ["AIWG_LOG_LEVEL"] = "WARNING"


@pytest.fixture
def plugin_root(tmp_path: Path) -> Path:
    """A fresh, empty registry root for each test."""
    root = tmp_path / "aiwg-root"
    root.mkdir()
    return root


@pytest.fixture
def make_plugin(tmp_path: Path) -> Callable[..., Path]:
    """Factory for plugin source directories.

    make_plugin("sdlc-complete", type="framework", contents={"agents/a.md": "..."})
    """
    sources = tmp_path / "sources"

    def _make(
        plugin_id: str,
        type: str = "extension",
        version: str = "1.0.0",
        contents: Optional[dict[str, str]] = None,
        parent: Optional[str] = None,
        fmt: str = "json",
        **extra,
    ) -> Path:
        source = sources / f"{plugin_id}-{version}"
        source.mkdir(parents=True, exist_ok=True)

        manifest = {
            "id": plugin_id,
            "type": type,
            "name": plugin_id.replace("-", " ").title(),
            "version": version,
            "description": f"Test plugin {plugin_id}",
        }
        if parent:
            manifest["parentFramework"] = parent
        manifest.update(extra)

        if fmt == "md":
            lines = ["---"]
            for key, value in manifest.items():
                lines.append(f"{key}: {json.dumps(value)}")
            lines += ["---", "", f"# {manifest['name']}", ""]
            (source / "manifest.md").write_text("\n".join(lines))
        else:
            (source / "manifest.json").write_text(json.dumps(manifest, indent=2))

        for rel, content in (contents if contents is not None else {"README.md": f"# {plugin_id}\n"}).items():
            path = source / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return source

    return _make


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[..., Path]:
    """Factory for project directories with a populated .aiwg/ workspace.

    Keys of `files` are relative to .aiwg/. Returns the project root.
    """

    def _make(files: dict[str, str], name: str = "project") -> Path:
        project = tmp_path / name
        workspace = project / ".aiwg"
        workspace.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = workspace / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return project

    return _make


def snapshot_tree(
    root: Path,
    exclude: tuple[str, ...] = (),
    include_dirs: bool = False,
) -> dict[str, Optional[bytes]]:
    """Relative path -> bytes for every file below root.

    With include_dirs, directories are listed too (mapped to None).
    """
    result: dict[str, Optional[bytes]] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        if rel.split("/")[0] in exclude:
            continue
        if path.is_file():
            result[rel] = path.read_bytes()
        elif include_dirs and path.is_dir():
            result[rel] = None
    return result


@pytest.fixture
def tree_snapshot() -> Callable[..., dict[str, bytes]]:
    return snapshot_tree
