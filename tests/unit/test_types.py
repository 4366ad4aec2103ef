"""Unit tests for errors.py and types.py."""

import dataclasses

import pytest

from construct_sync.errors import GitSyncError, SyncErrorCode
from construct_sync.types import CollectedFile, IdentityData, SyncResult


class TestSyncErrorCode:
    def test_every_code_has_a_category(self):
        categories = {code.category for code in SyncErrorCode}
        assert categories == {"policy", "transport", "content_integrity", "schema", "resource_limit"}

    @pytest.mark.parametrize(
        "code,category",
        [
            (SyncErrorCode.SSRF_BLOCKED, "policy"),
            (SyncErrorCode.CLONE_TIMEOUT, "transport"),
            (SyncErrorCode.SYMLINK_DETECTED, "content_integrity"),
            (SyncErrorCode.NO_MANIFEST, "schema"),
            (SyncErrorCode.TOO_MANY_FILES, "resource_limit"),
        ],
    )
    def test_category(self, code, category):
        assert code.category == category

    def test_seventeen_codes(self):
        assert len(SyncErrorCode) == 17


class TestGitSyncError:
    def test_fields(self):
        err = GitSyncError(SyncErrorCode.HOST_NOT_ALLOWED, "Host not allowed: evil.com")
        assert err.code is SyncErrorCode.HOST_NOT_ALLOWED
        assert err.message == "Host not allowed: evil.com"
        assert str(err) == "Host not allowed: evil.com"
        assert isinstance(err, RuntimeError)

    def test_code_from_string(self):
        assert GitSyncError("NO_MANIFEST", "none").code is SyncErrorCode.NO_MANIFEST

    def test_unknown_code_rejected(self):
        with pytest.raises(ValueError):
            GitSyncError("NOT_A_CODE", "x")

    def test_to_dict_and_repr(self):
        err = GitSyncError(SyncErrorCode.CLONE_FAILED, "boom")
        assert err.to_dict() == {"code": "CLONE_FAILED", "message": "boom"}
        assert "CLONE_FAILED" in repr(err)


def _file(path="README.md", size=3):
    return CollectedFile(path=path, content="YWJj", content_hash="ab" * 32, size_bytes=size, mime_type="text/markdown")


class TestSyncResult:
    def test_to_dict(self):
        identity = IdentityData(
            persona={"archetype": "x"},
            expertise=None,
            persona_yaml="archetype: x\n",
            expertise_yaml=None,
            cognitive_frame={"archetype": "x"},
            expertise_domains=None,
            voice_config=None,
            model_preferences=None,
        )
        result = SyncResult(
            version="1.0.0",
            commit="a" * 40,
            manifest={"name": "n", "slug": "s", "version": "1.0.0"},
            files=(_file(), _file("LICENSE", 4)),
            identity=identity,
            total_size_bytes=7,
        )

        data = result.to_dict()
        assert result.file_count == 2
        assert data["files"][1]["path"] == "LICENSE"
        assert data["identity"]["persona_yaml"] == "archetype: x\n"
        assert data["total_size_bytes"] == 7

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            _file().size_bytes = 10

    def test_without_identity(self):
        result = SyncResult("1", "a" * 40, {}, (), None, 0)
        assert result.to_dict()["identity"] is None
