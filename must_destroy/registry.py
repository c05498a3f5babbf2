"""Runtime registry of live guards and of every misuse fault observed.

Python offers no guaranteed destruction point for objects that stay
referenced until interpreter exit, so the registry also provides a shutdown
check that reports every guard still armed when `atexit` handlers run.
"""
from __future__ import annotations

import atexit
import logging
import os
import weakref
from typing import Protocol

from must_destroy.config import Settings
from must_destroy.logging import get_logger
from must_destroy.models import LeakRecord, LeakReport
from must_destroy.types import Detection

_log = get_logger(__name__)


class TrackedGuard(Protocol):
    """What the registry needs from a guard it tracks."""

    @property
    def armed(self) -> bool: ...

    def report_leak(self, during: Detection, *, nested: bool = False) -> LeakRecord: ...


def abort_process() -> None:
    """Flush package log handlers and abort the interpreter."""
    for handler in logging.getLogger("must_destroy").handlers:
        handler.flush()
    os.abort()


class LeakRegistry:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else Settings()
        self._live: weakref.WeakSet[TrackedGuard] = weakref.WeakSet()
        self._leaks: list[LeakRecord] = []
        self._shutdown_installed = False

    def track(self, guard: TrackedGuard) -> None:
        self._live.add(guard)

    def record(
        self,
        *,
        guard_id: str,
        wrapped_type: str,
        origin: str | None,
        during: Detection,
        nested: bool = False,
    ) -> LeakRecord:
        """Store a misuse fault and log it at CRITICAL."""
        leak = LeakRecord(
            guard_id=guard_id,
            wrapped_type=wrapped_type,
            origin=origin,
            during=during,
            nested=nested,
        )
        self._leaks.append(leak)
        _log.critical(
            "guard dropped without destroy%s",
            " while another exception was propagating" if nested else "",
            extra={
                "guard_id": guard_id,
                "wrapped_type": wrapped_type,
                "during": during,
                "origin": origin,
            },
        )
        return leak

    @property
    def leaks(self) -> list[LeakRecord]:
        return list(self._leaks)

    def live_armed(self) -> int:
        return sum(1 for guard in list(self._live) if guard.armed)

    def snapshot(self) -> LeakReport:
        return LeakReport(leaks=self.leaks, live_armed=self.live_armed())

    def clear(self) -> None:
        self._leaks.clear()

    def check_shutdown(self) -> LeakReport:
        """Report every guard that is still armed; abort under the abort policy."""
        found = [
            guard.report_leak("shutdown") for guard in list(self._live) if guard.armed
        ]
        if found:
            _log.critical("%d guard(s) still armed at shutdown", len(found))
            if self.settings.fault_policy == "abort":
                abort_process()
        return self.snapshot()

    def install_shutdown_check(self) -> None:
        if self._shutdown_installed:
            return
        atexit.register(self.check_shutdown)
        self._shutdown_installed = True


_registry: LeakRegistry | None = None


def get_registry() -> LeakRegistry:
    """Return the process-wide registry, building it from environment on first use."""
    global _registry
    if _registry is None:
        settings = Settings.from_env()
        registry = LeakRegistry(settings)
        if settings.shutdown_check:
            registry.install_shutdown_check()
        _registry = registry
    return _registry


def set_registry(registry: LeakRegistry | None) -> None:
    """Replace the process-wide registry; `None` rebuilds it lazily from environment."""
    global _registry
    _registry = registry
