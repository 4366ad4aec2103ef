"""Security guards applied to untrusted construct repositories.

These run before (or instead of) reading any repository content:
- Source URL and SSRF validation (url_guard.py)
- Cloned tree validation: symlinks, traversal, path length (tree_guard.py)
- Secret redaction for git diagnostics and telemetry (redaction.py)
"""
