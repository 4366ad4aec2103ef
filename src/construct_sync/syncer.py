"""Construct sync orchestrator.

One call runs every stage in order over its own ephemeral directory:

    validate URL -> clone -> validate tree -> read manifest
        -> collect files -> parse identity -> SyncResult

There are no retries and no partial results: the first stage error propagates
unchanged, and the directory is removed however the call ends.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from .cloner import Cloner, GitCloner
from .collector import collect_files, total_size
from .config import SyncConfig, load_config
from .errors import GitSyncError
from .guards.redaction import redact_text
from .guards.tree_guard import validate_tree
from .guards.url_guard import Resolver, validate_git_url
from .identity import parse_identity
from .logging import get_logger
from .manifest import read_manifest
from .telemetry import TelemetrySink
from .types import SyncResult

logger = get_logger("syncer")

WORKDIR_PREFIX = "construct-sync-"


@contextmanager
def ephemeral_workdir(prefix: str = WORKDIR_PREFIX) -> Iterator[Path]:
    """Create a uniquely named temp dir and remove it on every exit path."""
    workdir = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield workdir
    finally:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to clean up temp directory %s: %s", workdir, e)


class ConstructSyncer:
    """Clones, validates and snapshots constructs from git repositories."""

    def __init__(
        self,
        config: SyncConfig | None = None,
        cloner: Cloner | None = None,
        resolver: Resolver | None = None,
        telemetry: TelemetrySink | None = None,
    ):
        # Collaborators are injectable so tests can stand in for git and DNS.
        self.config = config or load_config()
        self.cloner = cloner or GitCloner(
            timeout_seconds=self.config.clone.timeout_seconds,
            git_executable=self.config.clone.git_executable,
        )
        self.resolver = resolver
        self.telemetry = telemetry or TelemetrySink(
            enabled=self.config.telemetry.enabled,
            path=Path(self.config.telemetry.log_path),
        )

    def _emit(self, run_id: str, event_type: str, data: dict[str, Any]) -> None:
        try:
            self.telemetry.log(run_id, event_type, data)
        except OSError as e:
            logger.warning("Telemetry write failed (%s): %s", event_type, e)

    async def sync(self, url: str, ref: str) -> SyncResult:
        """
        Run one full ingestion.

        Args:
            url: HTTPS clone URL of the construct repository
            ref: Branch or tag to check out

        Returns:
            SyncResult snapshot of the construct

        Raises:
            GitSyncError: from whichever stage rejected the repository
        """
        run_id = uuid.uuid4().hex
        self._emit(run_id, "sync_started", {"url": redact_text(url), "ref": redact_text(ref)})
        try:
            result = await self._run_stages(run_id, url, ref)
        except GitSyncError as e:
            logger.info("Sync of %s@%s failed: %s", redact_text(url), redact_text(ref), e.code.value)
            self._emit(
                run_id,
                "sync_failed",
                {"code": e.code.value, "category": e.code.category, "message": redact_text(e.message)},
            )
            raise
        self._emit(
            run_id,
            "sync_completed",
            {
                "version": result.version,
                "commit": result.commit,
                "file_count": result.file_count,
                "total_size_bytes": result.total_size_bytes,
                "has_identity": result.identity is not None,
            },
        )
        return result

    async def _run_stages(self, run_id: str, url: str, ref: str) -> SyncResult:
        loop = asyncio.get_event_loop()
        limits = self.config.limits

        with ephemeral_workdir() as workdir:
            repo_dir = workdir / "repo"

            await validate_git_url(
                url,
                allowed_hosts=self.config.source.allowed_hosts,
                resolver=self.resolver,
            )

            logger.info("Starting git clone of %s@%s into %s", url, ref, repo_dir)
            commit = await self.cloner.clone(url, ref, repo_dir)
            logger.info("Clone complete at %s", commit)
            self._emit(run_id, "clone_completed", {"commit": commit})

            entry_count = await loop.run_in_executor(
                None,
                lambda: validate_tree(repo_dir, max_path_length=limits.max_path_length),
            )
            logger.debug("Tree validated (%d entries)", entry_count)

            manifest = await loop.run_in_executor(
                None,
                lambda: read_manifest(
                    repo_dir,
                    schema_path=self.config.manifest.resolved_schema_path(),
                    max_file_size_bytes=limits.max_file_size_bytes,
                ),
            )

            files = await loop.run_in_executor(None, collect_files, repo_dir, limits)
            identity = await loop.run_in_executor(None, parse_identity, repo_dir)

            result = SyncResult(
                version=manifest["version"],
                commit=commit,
                manifest=manifest,
                files=tuple(files),
                identity=identity,
                total_size_bytes=total_size(files),
            )

        logger.info(
            "Sync complete: version=%s commit=%s files=%d bytes=%d identity=%s",
            result.version,
            result.commit,
            result.file_count,
            result.total_size_bytes,
            result.identity is not None,
        )
        return result


async def sync_from_repo(url: str, ref: str) -> SyncResult:
    """Sync a construct using process-level configuration."""
    return await ConstructSyncer().sync(url, ref)
