from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for the injector's singleton and discovery caches.

    Pass one of these values as ``lock_mode`` to ``InjectorBuilder``. Use
    ``NONE`` only when the injector is confined to a single thread.
    """

    THREAD = "thread"
    """Guard each cache slot with its own ``threading.RLock``."""

    NONE = "none"
    """Disable locking around cache reads/writes."""
