from __future__ import annotations

DROP_MESSAGE = "Can not drop, must call destroy."


class MustDestroyError(Exception):
    """Base exception for recoverable guard misuse."""


class DroppedWithoutDestroyError(BaseException):
    """Misuse fault: an armed guard reached the end of its lifetime.

    This signals a programming defect (a skipped teardown). Like `SystemExit`
    it derives from `BaseException`, so an application's `except Exception:`
    does not swallow it.
    """

    def __init__(
        self,
        *,
        guard_id: str,
        wrapped_type: str,
        origin: str | None = None,
    ) -> None:
        message = f"{DROP_MESSAGE} guard={guard_id} wraps {wrapped_type}"
        if origin is not None:
            message = f"{message} (created at {origin})"
        super().__init__(message)
        self.guard_id = guard_id
        self.wrapped_type = wrapped_type
        self.origin = origin


class GuardConsumedError(MustDestroyError, AttributeError):
    """Raised when a guard is used after destroy, into_inner or transfer.

    Also an `AttributeError`, so `hasattr` and `getattr(..., default)` on a
    consumed guard report the attribute as missing.
    """

    def __init__(self, *, guard_id: str, operation: str) -> None:
        super().__init__(f"guard {guard_id} already consumed; cannot {operation}")
        self.guard_id = guard_id
        self.operation = operation
