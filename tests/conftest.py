"""Global pytest configuration for hermetic test runs."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from construct_sync.cloner import Cloner
from construct_sync.config import SyncConfig
from construct_sync.manifest import reset_schema_validator_cache

FAKE_COMMIT = "0123456789abcdef0123456789abcdef01234567"
PUBLIC_ADDRESS = "140.82.112.3"

VALID_MANIFEST_YAML = "name: Acme Pack\nslug: acme-pack\nversion: 1.2.0\ntype: pack\n"


def pytest_sessionstart(session):  # noqa: ARG001
    # Never let a test pick up a developer's sync configuration.
    for key in list(os.environ):
        if key.startswith("CONSTRUCT_SYNC_"):
            del os.environ[key]


@pytest.fixture(autouse=True)
def _fresh_schema_cache():
    reset_schema_validator_cache()
    yield
    reset_schema_validator_cache()


class FakeCloner(Cloner):
    """Copies a prepared tree into the destination instead of running git."""

    def __init__(self, source: Path | None = None, commit: str = FAKE_COMMIT, error: Exception | None = None):
        self.source = source
        self.commit = commit
        self.error = error
        self.calls: list[tuple[str, str, Path]] = []

    async def clone(self, url: str, ref: str, dest: Path) -> str:
        self.calls.append((url, ref, dest))
        if self.error is not None:
            raise self.error
        if self.source is not None:
            shutil.copytree(self.source, dest, symlinks=True)
        else:
            dest.mkdir(parents=True)
        return self.commit


def make_resolver(*addresses: str):
    calls: list[str] = []

    async def _resolve(host: str) -> list[str]:
        calls.append(host)
        return list(addresses)

    _resolve.calls = calls  # type: ignore[attr-defined]
    return _resolve


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Materialize ``{relative_path: content}`` under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def public_resolver():
    return make_resolver(PUBLIC_ADDRESS)


@pytest.fixture
def missing_schema_config(tmp_path):
    """Config pointing at a schema artifact that does not exist."""
    config = SyncConfig()
    config.manifest.schema_path = str(tmp_path / "no-such-schema.json")
    return config


@pytest.fixture
def construct_tree(tmp_path):
    """A minimal valid construct: manifest plus a 10-byte README."""
    return write_tree(
        tmp_path / "source",
        {
            "construct.yaml": VALID_MANIFEST_YAML,
            "README.md": "# Acme!!\n\n",
        },
    )
