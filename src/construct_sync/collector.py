"""Bounded snapshot of a construct's files.

Only an allow-listed set of root files and directories is captured. Every
ceiling (count, per-file size, aggregate size) is checked as each file is
discovered, before its content is read, so a hostile tree cannot transiently
exceed a limit.
"""

from __future__ import annotations

import base64
import hashlib
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .config import LimitsConfig
from .errors import GitSyncError, SyncErrorCode
from .types import CollectedFile

ALLOWED_ROOT_FILES = [
    "construct.yaml",
    "manifest.json",
    "README.md",
    "LICENSE",
]

ALLOWED_DIRS = ["skills", "commands", "contexts", "identity", "scripts"]

MIME_TYPES = {
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".json": "application/json",
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".sh": "application/x-sh",
    ".ts": "text/typescript",
    ".js": "text/javascript",
}
DEFAULT_MIME_TYPE = "text/plain"


def get_mime_type(file_name: str) -> str:
    return MIME_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_MIME_TYPE)


@dataclass
class _Budget:
    limits: LimitsConfig
    count: int = 0
    total_bytes: int = 0

    def admit(self, rel_path: str, size: int) -> None:
        if self.count >= self.limits.max_files:
            raise GitSyncError(
                SyncErrorCode.TOO_MANY_FILES,
                f"Exceeds {self.limits.max_files} file limit at: {rel_path}",
            )
        self.check_size(rel_path, size)
        if self.total_bytes + size > self.limits.max_total_size_bytes:
            raise GitSyncError(
                SyncErrorCode.TOTAL_SIZE_EXCEEDED,
                f"Total size exceeds {self.limits.max_total_size_bytes} byte limit at file: {rel_path}",
            )
        self.count += 1
        self.total_bytes += size

    def check_size(self, rel_path: str, size: int) -> None:
        if size > self.limits.max_file_size_bytes:
            raise GitSyncError(
                SyncErrorCode.FILE_TOO_LARGE,
                f"File exceeds {self.limits.max_file_size_bytes} byte limit: {rel_path} ({size} bytes)",
            )


def _iter_dir_files(directory: Path, root: Path) -> Iterator[tuple[Path, str, os.stat_result]]:
    with os.scandir(directory) as it:
        items = sorted(it, key=lambda e: e.name)
    for item in items:
        path = Path(item.path)
        rel = path.relative_to(root).as_posix()
        st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode):
            raise GitSyncError(SyncErrorCode.SYMLINK_DETECTED, f"Symlinks not allowed: {rel}")
        if stat.S_ISDIR(st.st_mode):
            yield from _iter_dir_files(path, root)
        elif stat.S_ISREG(st.st_mode):
            yield path, rel, st


def _read_file(path: Path, rel: str, budget: _Budget) -> CollectedFile:
    with open(path, "rb") as f:
        content = f.read(budget.limits.max_file_size_bytes + 1)
    # The file may have grown since lstat.
    budget.check_size(rel, len(content))
    return CollectedFile(
        path=rel,
        content=base64.b64encode(content).decode("ascii"),
        content_hash=hashlib.sha256(content).hexdigest(),
        size_bytes=len(content),
        mime_type=get_mime_type(path.name),
    )


def _collect_one(path: Path, rel: str, st: os.stat_result, budget: _Budget) -> CollectedFile:
    budget.admit(rel, st.st_size)
    collected = _read_file(path, rel, budget)
    if collected.size_bytes != st.st_size:
        # Keep the running total honest if the file changed size under us.
        budget.total_bytes += collected.size_bytes - st.st_size
        if budget.total_bytes > budget.limits.max_total_size_bytes:
            raise GitSyncError(
                SyncErrorCode.TOTAL_SIZE_EXCEEDED,
                f"Total size exceeds {budget.limits.max_total_size_bytes} byte limit at file: {rel}",
            )
    return collected


def collect_files(root: Path, limits: LimitsConfig | None = None) -> list[CollectedFile]:
    """
    Collect allow-listed files from a validated clone.

    Args:
        root: Clone root (already through tree validation)
        limits: Count and size ceilings

    Returns:
        Root files first, then directory files in sorted traversal order

    Raises:
        GitSyncError: TOO_MANY_FILES, FILE_TOO_LARGE, TOTAL_SIZE_EXCEEDED
            or SYMLINK_DETECTED
    """
    root = Path(root)
    budget = _Budget(limits=limits or LimitsConfig())
    files: list[CollectedFile] = []

    for file_name in ALLOWED_ROOT_FILES:
        path = root / file_name
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            continue
        if stat.S_ISLNK(st.st_mode):
            raise GitSyncError(SyncErrorCode.SYMLINK_DETECTED, f"Symlinks not allowed: {file_name}")
        if not stat.S_ISREG(st.st_mode):
            continue
        files.append(_collect_one(path, file_name, st, budget))

    for dir_name in ALLOWED_DIRS:
        dir_path = root / dir_name
        try:
            st = os.lstat(dir_path)
        except FileNotFoundError:
            continue
        if stat.S_ISLNK(st.st_mode):
            raise GitSyncError(SyncErrorCode.SYMLINK_DETECTED, f"Symlinks not allowed: {dir_name}")
        if not stat.S_ISDIR(st.st_mode):
            continue
        for path, rel, file_st in _iter_dir_files(dir_path, root):
            files.append(_collect_one(path, rel, file_st, budget))

    return files


def total_size(files: list[CollectedFile]) -> int:
    return sum(f.size_bytes for f in files)
