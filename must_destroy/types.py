from __future__ import annotations

import enum
from typing import Literal, Protocol, TypeVar, runtime_checkable

A_contra = TypeVar("A_contra", contravariant=True)
R_co = TypeVar("R_co", covariant=True)

FaultPolicy = Literal["raise", "abort"]
Detection = Literal["scope_exit", "context_exit", "shutdown"]


@runtime_checkable
class Destroy(Protocol[A_contra, R_co]):
    """Teardown capability of a value that must be destroyed explicitly.

    `destroy` consumes the value: it must not be used afterwards. For several
    teardown arguments use a tuple as `A_contra`.
    """

    def destroy(self, args: A_contra, /) -> R_co: ...


class GuardState(enum.Enum):
    ARMED = "armed"
    DISARMED = "disarmed"
    FAULTED = "faulted"
