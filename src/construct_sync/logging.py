"""Logger namespace for construct sync.

Handlers and levels belong to the host application; modules here only log
through ``get_logger``.
"""

from __future__ import annotations

import logging

_LOGGER_NAME = "construct_sync"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the construct_sync hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


__all__ = ["get_logger"]
