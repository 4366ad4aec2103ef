"""Integration tests: full sync through the real git binary.

The clone URL still has to pass the HTTPS/allow-list policy; only the argv
handed to git is pointed at a local repository.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from construct_sync.cloner import GitCloner
from construct_sync.errors import GitSyncError, SyncErrorCode
from construct_sync.syncer import ConstructSyncer

from conftest import VALID_MANIFEST_YAML, make_resolver

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")

URL = "https://github.com/acme/pack"


class LocalGitCloner(GitCloner):
    """Clones from a local path whatever https URL it is given."""

    def __init__(self, origin: Path, **kwargs):
        super().__init__(**kwargs)
        self.origin = origin

    def clone_argv(self, url, ref, dest):
        return super().clone_argv(self.origin.as_uri(), ref, dest)


def _git(repo, *args):
    return subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True).stdout.strip()


@pytest.fixture
def origin(tmp_path):
    """Create a construct repository with a tagged release."""
    repo = tmp_path / "origin"
    repo.mkdir()
    _git(repo, "init", "-b", "main")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")

    (repo / "construct.yaml").write_text(VALID_MANIFEST_YAML)
    (repo / "README.md").write_text("# Acme!!\n\n")
    (repo / "skills" / "review").mkdir(parents=True)
    (repo / "skills" / "review" / "SKILL.md").write_text("# Review\n")
    (repo / "identity").mkdir()
    (repo / "identity" / "expertise.yaml").write_text("domains:\n  - name: review\n")
    (repo / "notes.txt").write_text("not collected\n")

    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "Initial commit")
    _git(repo, "tag", "v1.2.0")
    return repo


@pytest.fixture
def syncer(origin, missing_schema_config):
    return ConstructSyncer(
        config=missing_schema_config,
        cloner=LocalGitCloner(origin, timeout_seconds=30),
        resolver=make_resolver("140.82.112.3"),
    )


@pytest.mark.asyncio
async def test_sync_branch(syncer, origin):
    result = await syncer.sync(URL, "main")

    assert result.commit == _git(origin, "rev-parse", "HEAD")
    assert result.version == "1.2.0"
    assert [f.path for f in result.files] == [
        "construct.yaml",
        "README.md",
        "skills/review/SKILL.md",
        "identity/expertise.yaml",
    ]
    assert result.identity.expertise_domains == [{"name": "review"}]


@pytest.mark.asyncio
async def test_sync_tag(syncer, origin):
    result = await syncer.sync(URL, "v1.2.0")
    assert result.commit == _git(origin, "rev-list", "-n", "1", "v1.2.0")


@pytest.mark.asyncio
async def test_committed_symlink_rejected(origin, syncer):
    (origin / "skills" / "leak").symlink_to("/etc/passwd")
    _git(origin, "add", ".")
    _git(origin, "commit", "-m", "Add symlink")

    with pytest.raises(GitSyncError) as exc_info:
        await syncer.sync(URL, "main")
    assert exc_info.value.code == SyncErrorCode.SYMLINK_DETECTED


@pytest.mark.asyncio
async def test_unknown_ref(syncer):
    with pytest.raises(GitSyncError) as exc_info:
        await syncer.sync(URL, "does-not-exist")
    assert exc_info.value.code == SyncErrorCode.CLONE_FAILED


@pytest.mark.asyncio
async def test_policy_still_applies(syncer):
    with pytest.raises(GitSyncError) as exc_info:
        await syncer.sync("https://gitlab.com/acme/pack", "main")
    assert exc_info.value.code == SyncErrorCode.HOST_NOT_ALLOWED
