"""Core data types for construct git sync."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class CollectedFile:
    """One file captured from the cloned construct."""

    path: str  # Relative POSIX path, never traversing
    content: str  # Base64 of the raw bytes
    content_hash: str  # SHA-256 hex of the raw bytes
    size_bytes: int
    mime_type: str


@dataclass(frozen=True)
class IdentityData:
    """Persona/expertise descriptors shipped under ``identity/``."""

    persona: dict[str, Any] | None
    expertise: dict[str, Any] | None
    persona_yaml: str | None
    expertise_yaml: str | None
    cognitive_frame: dict[str, Any] | None
    expertise_domains: list[Any] | None
    voice_config: dict[str, Any] | None
    model_preferences: dict[str, Any] | None

    @property
    def has_persona(self) -> bool:
        return self.persona is not None

    @property
    def has_expertise(self) -> bool:
        return self.expertise is not None


@dataclass(frozen=True)
class SyncResult:
    """Snapshot produced by one successful sync."""

    version: str
    commit: str
    manifest: dict[str, Any]
    files: tuple[CollectedFile, ...]
    identity: IdentityData | None
    total_size_bytes: int

    @property
    def file_count(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for storage/relay collaborators."""
        return {
            "version": self.version,
            "commit": self.commit,
            "manifest": self.manifest,
            "files": [asdict(f) for f in self.files],
            "identity": asdict(self.identity) if self.identity is not None else None,
            "total_size_bytes": self.total_size_bytes,
        }
