"""`MustDestroy`: an owning guard whose value must be torn down explicitly.

Two scope-exit hooks exist. Used as a context manager, `__exit__` checks the
guard deterministically on every exit path of the `with` block. Otherwise
`__del__` runs when the last reference disappears; CPython reports the fault
raised there through `sys.unraisablehook`.
"""
from __future__ import annotations

import inspect
import os
import uuid
from types import TracebackType
from typing import Generic, Never, NoReturn, SupportsIndex, TypeVar, TypeVarTuple, Unpack

from must_destroy.errors import DroppedWithoutDestroyError, GuardConsumedError
from must_destroy.logging import get_logger
from must_destroy.models import LeakRecord
from must_destroy.registry import LeakRegistry, abort_process, get_registry
from must_destroy.types import Destroy, Detection, GuardState

T_co = TypeVar("T_co", bound="Destroy[Never, object]", covariant=True)
A = TypeVar("A")
R = TypeVar("R")
Ts = TypeVarTuple("Ts")

_log = get_logger(__name__)
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def _type_name(item: object) -> str:
    cls = type(item)
    return f"{cls.__module__}.{cls.__qualname__}"


def _creation_site() -> str | None:
    # First frame outside this package is the code that built the guard.
    # Source lines are never read.
    frame = inspect.currentframe()
    while frame is not None:
        code = frame.f_code
        if os.path.dirname(os.path.abspath(code.co_filename)) != _PACKAGE_DIR:
            return f"{code.co_filename}:{frame.f_lineno} in {code.co_name}"
        frame = frame.f_back
    return None


class MustDestroy(Generic[T_co]):
    """Guard owning `item` until `destroy` is called on it.

    Dropping the guard while it is still armed is a misuse fault
    (`DroppedWithoutDestroyError`). Calling `destroy(args)` disarms the guard
    and forwards `args` to `item.destroy`, returning its result unchanged.

    The guard cannot be copied or pickled. Every consuming call
    (`destroy`, `destroy_with`, `into_inner`, `transfer`) may happen once;
    later use raises `GuardConsumedError`.
    """

    def __init__(self, item: T_co, *, registry: LeakRegistry | None = None) -> None:
        # Disarmed until fully built so a failed constructor never faults.
        self._state = GuardState.DISARMED
        if not callable(getattr(item, "destroy", None)):
            raise TypeError(
                f"{type(item).__name__} does not implement destroy(args) and cannot be guarded"
            )
        self._item: T_co | None = item
        self._registry = registry if registry is not None else get_registry()
        self._guard_id = uuid.uuid4().hex
        self._wrapped_type = _type_name(item)
        self._origin = _creation_site() if self._registry.settings.track_origin else None
        self._registry.track(self)
        self._state = GuardState.ARMED
        _log.debug(
            "guard created",
            extra={
                "guard_id": self._guard_id,
                "wrapped_type": self._wrapped_type,
                "origin": self._origin,
            },
        )

    @property
    def guard_id(self) -> str:
        return self._guard_id

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def armed(self) -> bool:
        return self._state is GuardState.ARMED

    @property
    def value(self) -> T_co:
        """The wrapped value; only available while the guard is armed."""
        return self._wrapped("access value")

    def __getattr__(self, name: str) -> object:
        # Only reached for names the guard itself lacks.
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._wrapped(f"read {name}"), name)

    def __setattr__(self, name: str, value: object) -> None:
        # Guard state and the guard's own properties stay on the guard.
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        setattr(self._wrapped(f"set {name}"), name, value)

    def __delattr__(self, name: str) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__delattr__(self, name)
            return
        delattr(self._wrapped(f"delete {name}"), name)

    def _wrapped(self, operation: str) -> T_co:
        item = self._item
        if self._state is not GuardState.ARMED or item is None:
            raise GuardConsumedError(guard_id=self._guard_id, operation=operation)
        return item

    def _take(self, operation: str) -> T_co:
        item = self._item
        if self._state is not GuardState.ARMED or item is None:
            raise GuardConsumedError(guard_id=self._guard_id, operation=operation)
        self._item = None
        self._state = GuardState.DISARMED
        return item

    def destroy(self: MustDestroy[Destroy[A, R]], args: A, /) -> R:
        """Disarm the guard and tear down the wrapped value with `args`.

        Errors raised by the wrapped teardown propagate unchanged; the guard
        stays disarmed either way.
        """
        item = self._take("destroy")
        _log.debug(
            "guard destroyed",
            extra={"guard_id": self._guard_id, "wrapped_type": self._wrapped_type},
        )
        return item.destroy(args)

    def destroy_with(self: MustDestroy[Destroy[tuple[Unpack[Ts]], R]], *args: Unpack[Ts]) -> R:
        """Call `destroy` with the positional arguments packed into a tuple."""
        return self.destroy(args)

    def into_inner(self) -> T_co:
        """Disarm the guard and hand back the wrapped value without tearing it down."""
        item = self._take("into_inner")
        _log.debug(
            "guard released",
            extra={"guard_id": self._guard_id, "wrapped_type": self._wrapped_type},
        )
        return item

    def transfer(self) -> MustDestroy[T_co]:
        """Move the wrapped value into a new armed guard; this guard is emptied."""
        item = self._take("transfer")
        return type(self)(item, registry=self._registry)

    def report_leak(self, during: Detection, *, nested: bool = False) -> LeakRecord:
        """Mark an armed guard as faulted and record it with the registry."""
        if self._state is not GuardState.ARMED:
            raise GuardConsumedError(guard_id=self._guard_id, operation="report a leak")
        self._state = GuardState.FAULTED
        # The value is discarded without its teardown.
        self._item = None
        return self._registry.record(
            guard_id=self._guard_id,
            wrapped_type=self._wrapped_type,
            origin=self._origin,
            during=during,
            nested=nested,
        )

    def _fault(self, during: Detection, *, nested: bool) -> DroppedWithoutDestroyError:
        self.report_leak(during, nested=nested)
        if self._registry.settings.fault_policy == "abort":
            abort_process()
        return DroppedWithoutDestroyError(
            guard_id=self._guard_id,
            wrapped_type=self._wrapped_type,
            origin=self._origin,
        )

    def __enter__(self) -> MustDestroy[T_co]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if self._state is not GuardState.ARMED:
            return False
        if exc is not None:
            # Recorded, but the exception already propagating is not masked.
            self._fault("context_exit", nested=True)
            return False
        raise self._fault("context_exit", nested=False)

    def __del__(self) -> None:
        if getattr(self, "_state", None) is not GuardState.ARMED:
            return
        raise self._fault("scope_exit", nested=False)

    def __copy__(self) -> NoReturn:
        raise TypeError("MustDestroy guards cannot be copied; use transfer()")

    def __deepcopy__(self, memo: dict[int, object]) -> NoReturn:
        raise TypeError("MustDestroy guards cannot be copied; use transfer()")

    def __reduce_ex__(self, protocol: SupportsIndex) -> NoReturn:
        raise TypeError("MustDestroy guards cannot be pickled")

    def __repr__(self) -> str:
        return (
            f"MustDestroy({self._wrapped_type}, state={self._state.value}, "
            f"id={self._guard_id})"
        )
