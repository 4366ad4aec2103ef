"""Validation of a freshly cloned construct tree.

Runs to completion (or aborts) before any file content is read. Entries are
inspected with ``lstat`` semantics: a symlink is reported as a symlink and is
never followed or descended into.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator

from ..errors import GitSyncError, SyncErrorCode

# Version-control metadata at the tree root is not part of the construct.
SKIPPED_ROOT_ENTRIES = {".git"}
MAX_PATH_LENGTH = 255


@dataclass(frozen=True)
class TreeEntry:
    """A single filesystem entry below the clone root."""

    relative_path: str
    is_symlink: bool
    is_directory: bool


def iter_tree(root: Path) -> Iterator[TreeEntry]:
    """Yield every entry below ``root`` depth-first, in sorted order."""
    root = Path(root)

    def _walk(directory: Path) -> Iterator[TreeEntry]:
        with os.scandir(directory) as it:
            items = sorted(it, key=lambda e: e.name)
        for item in items:
            if directory == root and item.name in SKIPPED_ROOT_ENTRIES:
                continue
            st = os.lstat(item.path)
            is_symlink = stat.S_ISLNK(st.st_mode)
            is_directory = stat.S_ISDIR(st.st_mode)
            rel = os.path.relpath(item.path, root).replace(os.sep, "/")
            yield TreeEntry(relative_path=rel, is_symlink=is_symlink, is_directory=is_directory)
            if is_directory and not is_symlink:
                yield from _walk(Path(item.path))

    yield from _walk(root)


def check_entry(entry: TreeEntry, *, max_path_length: int = MAX_PATH_LENGTH) -> None:
    """Raise on the first rule ``entry`` violates."""
    rel = entry.relative_path
    if ".." in PurePosixPath(rel).parts or ".." in rel.split("\\"):
        raise GitSyncError(SyncErrorCode.PATH_TRAVERSAL, f"Path traversal detected: {rel}")
    if rel.startswith(("/", "\\")) or os.path.isabs(rel):
        raise GitSyncError(SyncErrorCode.ABSOLUTE_PATH, f"Absolute path not allowed: {rel}")
    if len(rel) > max_path_length:
        raise GitSyncError(
            SyncErrorCode.PATH_TOO_LONG,
            f"Path exceeds {max_path_length} chars: {rel}",
        )
    if entry.is_symlink:
        raise GitSyncError(SyncErrorCode.SYMLINK_DETECTED, f"Symlinks not allowed: {rel}")


def validate_entries(
    entries: Iterable[TreeEntry], *, max_path_length: int = MAX_PATH_LENGTH
) -> int:
    """Check entries fail-fast; returns how many entries were accepted."""
    count = 0
    for entry in entries:
        check_entry(entry, max_path_length=max_path_length)
        count += 1
    return count


def validate_tree(root: Path, *, max_path_length: int = MAX_PATH_LENGTH) -> int:
    """Walk and validate the clone at ``root``; the walk stops at the first violation."""
    return validate_entries(iter_tree(root), max_path_length=max_path_length)
