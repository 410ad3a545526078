"""
Filesystem helpers shared by the installer, uninstaller and migrator.
"""

import filecmp
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterable, NamedTuple

# Never copied out of a plugin source or workspace
IGNORED_NAMES = frozenset({".git", "__pycache__", ".DS_Store"})


class TreeStats(NamedTuple):
    files: int
    dirs: int
    bytes: int


def atomic_write_text(path: Path, content: str) -> None:
    """Atomically write a text file (temp file in the same dir + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.stem}-")
    closed = False
    try:
        os.write(fd, content.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
    except Exception:
        if not closed:
            os.close(fd)
        if Path(tmp_path).exists():
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: Path, data: Any) -> None:
    """Atomically write a JSON file."""
    atomic_write_text(path, json.dumps(data, indent=2) + "\n")


def atomic_copy_file(src: Path, dst: Path) -> None:
    """Copy src over dst via a temp file so dst is never half-written."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dst.parent, suffix=".tmp", prefix=f".{dst.name}-")
    os.close(fd)
    try:
        shutil.copy2(src, tmp_path)
        os.replace(tmp_path, dst)
    except Exception:
        if Path(tmp_path).exists():
            os.unlink(tmp_path)
        raise


def same_content(a: Path, b: Path) -> bool:
    """Byte-for-byte comparison of two files."""
    return filecmp.cmp(a, b, shallow=False)


def list_files(root: Path, exclude: Iterable[str] = ()) -> list[str]:
    """List files under root as sorted POSIX paths relative to root.

    `exclude` holds relative prefixes (top-level names or nested paths)
    to skip entirely.
    """
    if not root.is_dir():
        return []
    excluded = tuple(e.strip("/") for e in exclude)
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        kept = []
        for name in dirnames:
            rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            if name in IGNORED_NAMES or _is_excluded(rel, excluded):
                continue
            kept.append(name)
        dirnames[:] = sorted(kept)
        for name in filenames:
            rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            if name in IGNORED_NAMES or _is_excluded(rel, excluded):
                continue
            files.append(rel)
    return sorted(files)


def list_dirs(root: Path, exclude: Iterable[str] = ()) -> list[str]:
    """List directories under root (relative, POSIX, parents first)."""
    if not root.is_dir():
        return []
    excluded = tuple(e.strip("/") for e in exclude)
    dirs: list[str] = []
    for dirpath, dirnames, _ in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        kept = []
        for name in sorted(dirnames):
            rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            if name in IGNORED_NAMES or _is_excluded(rel, excluded):
                continue
            kept.append(name)
            dirs.append(rel)
        dirnames[:] = kept
    return dirs


def _is_excluded(rel: str, excluded: tuple[str, ...]) -> bool:
    return any(rel == e or rel.startswith(e + "/") for e in excluded)


def tree_stats(root: Path) -> TreeStats:
    """Count files, subdirectories and bytes below root."""
    files = dirs = size = 0
    if not root.is_dir():
        return TreeStats(0, 0, 0)
    for dirpath, dirnames, filenames in os.walk(root):
        dirs += len(dirnames)
        for name in filenames:
            files += 1
            try:
                size += (Path(dirpath) / name).stat().st_size
            except OSError:
                pass
    return TreeStats(files, dirs, size)


def copy_tree(src: Path, dst: Path, exclude: Iterable[str] = ()) -> int:
    """Copy every file below src into dst, keeping relative paths.

    Empty directories are recreated too. Returns the number of files copied.
    """
    dst.mkdir(parents=True, exist_ok=True)
    for rel in list_dirs(src, exclude):
        (dst / rel).mkdir(parents=True, exist_ok=True)
    count = 0
    for rel in list_files(src, exclude):
        target = dst / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src / rel, target)
        count += 1
    return count


def prune_empty_dirs(root: Path, keep_root: bool = True) -> int:
    """Remove empty directories below root, deepest first."""
    if not root.is_dir():
        return 0
    removed = 0
    for dirpath, _, _ in sorted(os.walk(root), key=lambda w: len(w[0]), reverse=True):
        path = Path(dirpath)
        if keep_root and path == root:
            continue
        try:
            path.rmdir()
            removed += 1
        except OSError:
            pass
    return removed


def format_bytes(size: int) -> str:
    """Format bytes as a human-readable string."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f}".rstrip("0").rstrip(".") + f" {units[index]}"


def remove_if_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except OSError:
        pass
