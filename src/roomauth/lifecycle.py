"""Singleton lifecycle management.

Process-wide instances (settings, the shared authorization server, the
shared social login service) are created lazily by their ``get_*()``
accessors. Each accessor registers a reset callback here, and
``reset_all()`` drops every cached instance so the next ``get_*()`` call
builds a fresh one from current settings.

Created: 2026-03-02
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# Registry: name → reset callback
_registry: dict[str, Callable[[], Any]] = {}


def register(name: str, *, reset: Callable[[], Any]) -> None:
    """Register a singleton's reset callback.

    Args:
        name: Unique identifier (e.g. ``"oauth_server"``).
        reset: Sync callable that clears the cached instance.
    """
    _registry[name] = reset


def registered() -> list[str]:
    """Names of the singletons currently registered."""
    return list(_registry)


def reset_all() -> None:
    """Reset all registered singletons to their initial state.

    Errors are logged but don't prevent other resets from running.
    """
    for name, reset_cb in list(_registry.items()):
        try:
            reset_cb()
            logger.debug("Reset %s", name)
        except Exception:
            logger.warning("Error resetting %s", name, exc_info=True)
    _registry.clear()
