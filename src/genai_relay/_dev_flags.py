"""Internal helpers for development-time feature flags.

Centralizes how opt-in debug toggles are read so semantics stay consistent
across the codebase.
"""

from __future__ import annotations

import os

__all__ = ["debug_requests_enabled"]


def debug_requests_enabled() -> bool:
    """Return True when full request descriptors should be logged.

    Any non-empty value of the ``DEBUG`` environment variable enables it.
    """
    return bool(os.getenv("DEBUG"))
