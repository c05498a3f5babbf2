from __future__ import annotations

import gc
import sys
from collections.abc import Generator

import pytest

from must_destroy.config import Settings
from must_destroy.registry import LeakRegistry, set_registry


@pytest.fixture(autouse=True)
def registry() -> Generator[LeakRegistry, None, None]:
    """Isolated process-wide registry; no atexit hook from the test run."""
    reg = LeakRegistry(Settings(shutdown_check=False))
    set_registry(reg)
    yield reg
    set_registry(None)


class UnraisableCollector:
    def __init__(self) -> None:
        self.errors: list[BaseException] = []

    def __call__(self, args: sys.UnraisableHookArgs) -> None:
        if args.exc_value is not None:
            self.errors.append(args.exc_value)

    def collect(self) -> list[BaseException]:
        gc.collect()
        return self.errors


@pytest.fixture
def unraisable(monkeypatch: pytest.MonkeyPatch) -> UnraisableCollector:
    """Capture faults raised from finalizers instead of letting CPython print them."""
    hook = UnraisableCollector()
    monkeypatch.setattr(sys, "unraisablehook", hook)
    return hook
