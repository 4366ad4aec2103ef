"""Best-effort parsing of a construct's ``identity/`` descriptors."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .logging import get_logger
from .types import IdentityData

logger = get_logger("identity")

IDENTITY_DIR = "identity"
PERSONA_FILE = "persona.yaml"
EXPERTISE_FILE = "expertise.yaml"
COGNITIVE_FRAME_KEYS = ("archetype", "disposition", "thinking_style", "decision_making")


def _load_yaml_mapping(path: Path) -> tuple[dict[str, Any] | None, str | None]:
    """Return (parsed, raw text); both None when unreadable or not a mapping."""
    try:
        text = path.read_text(encoding="utf-8")
        data = yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.debug("Ignoring identity file %s: %s", path.name, e)
        return None, None
    if not isinstance(data, dict):
        return None, None
    return data, text


def _field(data: dict[str, Any] | None, key: str) -> Any:
    if data is None or data.get(key) is None:
        return None
    return data[key]


def parse_identity(root: Path) -> IdentityData | None:
    """Read persona/expertise descriptors if the construct ships any."""
    identity_dir = Path(root) / IDENTITY_DIR
    if not identity_dir.is_dir() or identity_dir.is_symlink():
        return None

    persona, persona_yaml = _load_yaml_mapping(identity_dir / PERSONA_FILE)
    expertise, expertise_yaml = _load_yaml_mapping(identity_dir / EXPERTISE_FILE)
    if persona is None and expertise is None:
        return None

    cognitive_frame = (
        {key: persona.get(key) for key in COGNITIVE_FRAME_KEYS} if persona is not None else None
    )
    # An empty list or mapping still counts as present.
    voice_config = _field(persona, "voice")
    model_preferences = _field(persona, "model_preferences")
    expertise_domains = _field(expertise, "domains")

    return IdentityData(
        persona=persona,
        expertise=expertise,
        persona_yaml=persona_yaml,
        expertise_yaml=expertise_yaml,
        cognitive_frame=cognitive_frame,
        expertise_domains=expertise_domains,
        voice_config=voice_config,
        model_preferences=model_preferences,
    )
