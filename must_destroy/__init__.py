"""Guards for values that must be torn down explicitly.

`MustDestroy` owns a value implementing the `Destroy` protocol and raises a
misuse fault if it goes out of scope before `destroy` was called on it.
"""
from __future__ import annotations

from must_destroy.config import Settings
from must_destroy.errors import (
    DroppedWithoutDestroyError,
    GuardConsumedError,
    MustDestroyError,
)
from must_destroy.guard import MustDestroy
from must_destroy.logging import setup_logging
from must_destroy.models import LeakRecord, LeakReport
from must_destroy.registry import LeakRegistry, get_registry, set_registry
from must_destroy.types import Destroy, GuardState

__all__ = [
    "Destroy",
    "DroppedWithoutDestroyError",
    "GuardConsumedError",
    "GuardState",
    "LeakRecord",
    "LeakRegistry",
    "LeakReport",
    "MustDestroy",
    "MustDestroyError",
    "Settings",
    "get_registry",
    "set_registry",
    "setup_logging",
]
