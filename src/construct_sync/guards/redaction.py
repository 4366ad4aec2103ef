from __future__ import annotations

import re

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Userinfo embedded in URLs (git echoes remote URLs in its errors).
    (re.compile(r"(?P<scheme>\b[a-zA-Z][a-zA-Z0-9+.-]*://)[^/\s@]+@"), r"\g<scheme>REDACTED@"),
    # Common API key shapes (best-effort).
    (re.compile(r"\bsk-[A-Za-z0-9]{16,}\b"), "sk-REDACTED"),
    (re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "AKIA_REDACTED"),
    (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.S), "PRIVATE_KEY_REDACTED"),
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), "gh_REDACTED"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), "github_pat_REDACTED"),
]


def redact_text(s: str, *, max_len: int = 400) -> str:
    """Redact credentials and common secret patterns, then truncate.

    Git stderr is attacker-influenced and may echo remote URLs, so it goes
    through here before reaching error messages, logs or telemetry.
    """
    if not s:
        return ""
    out = s
    for pat, repl in _PATTERNS:
        out = pat.sub(repl, out)
    out = out.strip()
    if len(out) > max_len:
        out = out[:max_len] + "...(truncated)"
    return out
