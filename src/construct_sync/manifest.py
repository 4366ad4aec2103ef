"""Construct manifest reading and validation.

``construct.yaml`` is preferred; ``manifest.json`` is the fallback. When the
construct JSON schema is available on disk it is compiled once per process and
every violation is reported together. Without it, only the essential identity
fields are checked.
"""

from __future__ import annotations

import json
import os
import stat
import threading
from pathlib import Path
from typing import Any

import yaml
from jsonschema import SchemaError, validators
from jsonschema.protocols import Validator

from .errors import GitSyncError, SyncErrorCode
from .logging import get_logger

logger = get_logger("manifest")

PRIMARY_MANIFEST = "construct.yaml"
FALLBACK_MANIFEST = "manifest.json"
ESSENTIAL_FIELDS = ("name", "slug", "version")

_validator_lock = threading.Lock()
# Keyed by resolved schema path; ``None`` records that the artifact is unusable.
_validators: dict[Path, Validator | None] = {}


def _load_schema_validator(schema_path: Path) -> Validator | None:
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        cls = validators.validator_for(schema)
        cls.check_schema(schema)
        return cls(schema)
    except FileNotFoundError:
        logger.warning("Construct schema not found at %s, using essential-field validation", schema_path)
    except (OSError, ValueError, SchemaError) as e:
        logger.warning("Construct schema at %s is unusable (%s), using essential-field validation", schema_path, e)
    return None


def get_schema_validator(schema_path: Path | str) -> Validator | None:
    """Return the compiled validator for ``schema_path``, building it at most once."""
    key = Path(schema_path).expanduser().resolve()
    with _validator_lock:
        if key not in _validators:
            _validators[key] = _load_schema_validator(key)
        return _validators[key]


def reset_schema_validator_cache() -> None:
    with _validator_lock:
        _validators.clear()


def _error_pointer(error: Any) -> str:
    return "/" + "/".join(str(p) for p in error.absolute_path)


def validate_manifest(manifest: dict[str, Any], validator: Validator | None) -> None:
    """Raise MANIFEST_VALIDATION_FAILED listing every problem found."""
    if validator is not None:
        errors = sorted(validator.iter_errors(manifest), key=_error_pointer)
        if errors:
            details = "; ".join(f"{_error_pointer(e)}: {e.message}" for e in errors)
            raise GitSyncError(
                SyncErrorCode.MANIFEST_VALIDATION_FAILED,
                f"Manifest validation failed: {details}",
            )
    else:
        logger.info("Validating manifest without schema (essential fields only)")

    # Essential field checks run even when the schema passed.
    missing = [
        field
        for field in ESSENTIAL_FIELDS
        if not isinstance(manifest.get(field), str) or not manifest.get(field)
    ]
    if missing:
        details = "; ".join(f'Manifest must have a "{field}" field' for field in missing)
        raise GitSyncError(SyncErrorCode.MANIFEST_VALIDATION_FAILED, details)


def _read_capped(path: Path, max_bytes: int) -> str | None:
    """Read a root manifest file; None when absent or not a regular file."""
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return None
    if not stat.S_ISREG(st.st_mode):
        return None
    if st.st_size > max_bytes:
        raise GitSyncError(
            SyncErrorCode.FILE_TOO_LARGE,
            f"File exceeds {max_bytes} byte limit: {path.name} ({st.st_size} bytes)",
        )
    with open(path, "rb") as f:
        data = f.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise GitSyncError(
            SyncErrorCode.FILE_TOO_LARGE,
            f"File exceeds {max_bytes} byte limit: {path.name}",
        )
    return data.decode("utf-8")


def _parse_yaml_manifest(root: Path, max_bytes: int) -> dict[str, Any] | None:
    try:
        text = _read_capped(root / PRIMARY_MANIFEST, max_bytes)
        if text is None:
            return None
        data = yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.debug("%s unreadable, trying %s: %s", PRIMARY_MANIFEST, FALLBACK_MANIFEST, e)
        return None
    if not isinstance(data, dict):
        logger.debug("%s is not a mapping, trying %s", PRIMARY_MANIFEST, FALLBACK_MANIFEST)
        return None
    return data


def _parse_json_manifest(root: Path, max_bytes: int) -> dict[str, Any] | None:
    try:
        text = _read_capped(root / FALLBACK_MANIFEST, max_bytes)
        if text is None:
            return None
        data = json.loads(text)
    except (OSError, UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def read_manifest(
    root: Path,
    *,
    schema_path: Path | str,
    max_file_size_bytes: int = 256 * 1024,
) -> dict[str, Any]:
    """
    Locate, parse and validate the construct manifest under ``root``.

    Args:
        root: Validated clone root
        schema_path: Location of the construct JSON schema (may be absent)
        max_file_size_bytes: Manifests larger than this are rejected unparsed

    Returns:
        The parsed manifest mapping

    Raises:
        GitSyncError: NO_MANIFEST, MANIFEST_VALIDATION_FAILED or FILE_TOO_LARGE
    """
    root = Path(root)
    manifest = _parse_yaml_manifest(root, max_file_size_bytes)
    if manifest is None:
        manifest = _parse_json_manifest(root, max_file_size_bytes)
    if manifest is None:
        raise GitSyncError(
            SyncErrorCode.NO_MANIFEST,
            f"No valid {PRIMARY_MANIFEST} or {FALLBACK_MANIFEST} found",
        )

    validate_manifest(manifest, get_schema_validator(schema_path))
    return manifest
