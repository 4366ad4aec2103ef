"""Sandboxed shallow clone of a construct repository.

Key security properties:
- Executes an argv list (no shell), so neither the URL nor the ref can inject
  commands; ``--`` ends option parsing before the URL.
- Interactive credential prompts and LFS smudging are disabled.
- A hard wall-clock timeout kills the whole git process group.
"""

from __future__ import annotations

import asyncio
import os
import re
import signal
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .errors import GitSyncError, SyncErrorCode
from .guards.redaction import redact_text

_COMMIT_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")

# Git diagnostics are kept mostly whole so callers can see why a clone failed.
_DIAGNOSTIC_MAX_LEN = 2000


class Cloner(ABC):
    """Fetches a repository into a destination directory."""

    @abstractmethod
    async def clone(self, url: str, ref: str, dest: Path) -> str:
        """Check out ``ref`` of ``url`` into ``dest`` and return the commit id."""


class GitCloner(Cloner):
    """Shallow, single-branch ``git clone`` via direct process invocation."""

    def __init__(self, timeout_seconds: float = 30.0, git_executable: str = "git"):
        self.timeout_seconds = timeout_seconds
        self.git_executable = git_executable

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update(
            {
                "GIT_TERMINAL_PROMPT": "0",
                "GIT_LFS_SKIP_SMUDGE": "1",
            }
        )
        return env

    @staticmethod
    def _check_argv(argv: list[str]) -> tuple[bool, str]:
        if not argv:
            return False, "Empty argv"
        for a in argv:
            if any(ch in a for ch in ["\n", "\r", "\x00"]):
                return False, "Newlines/NUL not allowed"
        return True, ""

    def clone_argv(self, url: str, ref: str, dest: Path) -> list[str]:
        return [
            self.git_executable,
            "clone",
            "--depth",
            "1",
            "--branch",
            ref,
            "--single-branch",
            "-c",
            "submodule.recurse=false",
            "--",
            url,
            str(dest),
        ]

    async def _run(self, argv: list[str], cwd: Path | None = None) -> dict[str, Any]:
        t0 = time.time()
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd is not None else None,
            env=self._env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self._kill(proc)
            await proc.wait()
            return {
                "argv": argv,
                "exit_code": proc.returncode,
                "stdout": "",
                "stderr": "",
                "duration_s": round(time.time() - t0, 3),
                "timed_out": True,
            }
        except asyncio.CancelledError:
            self._kill(proc)
            raise
        return {
            "argv": argv,
            "exit_code": proc.returncode,
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
            "duration_s": round(time.time() - t0, 3),
            "timed_out": False,
        }

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process) -> None:
        # git spawns helpers (git-remote-https); take down the whole session.
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            try:
                proc.kill()
            except ProcessLookupError:
                pass

    async def clone(self, url: str, ref: str, dest: Path) -> str:
        if not ref or ref.startswith("-"):
            raise GitSyncError(SyncErrorCode.CLONE_FAILED, f"Git clone failed: invalid ref {ref!r}")

        argv = self.clone_argv(url, ref, dest)
        ok, reason = self._check_argv(argv)
        if not ok:
            raise GitSyncError(SyncErrorCode.CLONE_FAILED, f"Git clone failed: {reason}")

        result = await self._invoke(argv)
        if result["exit_code"] != 0:
            raise GitSyncError(
                SyncErrorCode.CLONE_FAILED,
                f"Git clone failed: {redact_text(result['stderr'], max_len=_DIAGNOSTIC_MAX_LEN)}",
            )

        head = await self._invoke([self.git_executable, "rev-parse", "HEAD"], cwd=dest)
        commit = head["stdout"].strip()
        if head["exit_code"] != 0 or not _COMMIT_RE.match(commit):
            raise GitSyncError(
                SyncErrorCode.CLONE_FAILED,
                f"Git clone failed: could not resolve HEAD "
                f"({redact_text(head['stderr'] or commit, max_len=_DIAGNOSTIC_MAX_LEN)})",
            )
        return commit

    async def _invoke(self, argv: list[str], cwd: Path | None = None) -> dict[str, Any]:
        try:
            result = await self._run(argv, cwd=cwd)
        except OSError as e:
            # git missing, not executable, or cwd gone.
            raise GitSyncError(SyncErrorCode.CLONE_FAILED, f"Git clone failed: {e}")
        if result["timed_out"]:
            raise GitSyncError(
                SyncErrorCode.CLONE_TIMEOUT,
                f"Git clone timed out after {self.timeout_seconds:g}s",
            )
        return result
