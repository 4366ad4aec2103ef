"""Error surface for construct git sync.

Every stage raises exactly one ``GitSyncError``; the ``code`` tells callers
which stage rejected the repository and why.
"""

from __future__ import annotations

from enum import Enum


class SyncErrorCode(str, Enum):
    """Mutually exclusive, stage-specific failure codes."""

    # URL policy
    INVALID_URL = "INVALID_URL"
    INVALID_PROTOCOL = "INVALID_PROTOCOL"
    INVALID_PORT = "INVALID_PORT"
    HOST_NOT_ALLOWED = "HOST_NOT_ALLOWED"
    SSRF_BLOCKED = "SSRF_BLOCKED"
    DNS_RESOLUTION_FAILED = "DNS_RESOLUTION_FAILED"
    # Transport
    CLONE_TIMEOUT = "CLONE_TIMEOUT"
    CLONE_FAILED = "CLONE_FAILED"
    # Tree integrity
    PATH_TRAVERSAL = "PATH_TRAVERSAL"
    ABSOLUTE_PATH = "ABSOLUTE_PATH"
    PATH_TOO_LONG = "PATH_TOO_LONG"
    SYMLINK_DETECTED = "SYMLINK_DETECTED"
    # Manifest
    NO_MANIFEST = "NO_MANIFEST"
    MANIFEST_VALIDATION_FAILED = "MANIFEST_VALIDATION_FAILED"
    # Resource limits
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    TOTAL_SIZE_EXCEEDED = "TOTAL_SIZE_EXCEEDED"
    TOO_MANY_FILES = "TOO_MANY_FILES"

    @property
    def category(self) -> str:
        return _CATEGORIES[self]


_CATEGORIES: dict[SyncErrorCode, str] = {
    SyncErrorCode.INVALID_URL: "policy",
    SyncErrorCode.INVALID_PROTOCOL: "policy",
    SyncErrorCode.INVALID_PORT: "policy",
    SyncErrorCode.HOST_NOT_ALLOWED: "policy",
    SyncErrorCode.SSRF_BLOCKED: "policy",
    SyncErrorCode.DNS_RESOLUTION_FAILED: "policy",
    SyncErrorCode.CLONE_TIMEOUT: "transport",
    SyncErrorCode.CLONE_FAILED: "transport",
    SyncErrorCode.PATH_TRAVERSAL: "content_integrity",
    SyncErrorCode.ABSOLUTE_PATH: "content_integrity",
    SyncErrorCode.PATH_TOO_LONG: "content_integrity",
    SyncErrorCode.SYMLINK_DETECTED: "content_integrity",
    SyncErrorCode.NO_MANIFEST: "schema",
    SyncErrorCode.MANIFEST_VALIDATION_FAILED: "schema",
    SyncErrorCode.FILE_TOO_LARGE: "resource_limit",
    SyncErrorCode.TOTAL_SIZE_EXCEEDED: "resource_limit",
    SyncErrorCode.TOO_MANY_FILES: "resource_limit",
}


class GitSyncError(RuntimeError):
    """Raised by any sync stage that rejects the repository."""

    def __init__(self, code: SyncErrorCode | str, message: str):
        super().__init__(message)
        self.code = SyncErrorCode(code)
        self.message = message

    def __repr__(self) -> str:
        return f"GitSyncError(code={self.code.value!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}
