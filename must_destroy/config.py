from __future__ import annotations

import os
from dataclasses import dataclass

from must_destroy.types import FaultPolicy

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def _fault_policy(raw: str) -> FaultPolicy:
    if raw == "raise":
        return "raise"
    if raw == "abort":
        return "abort"
    raise ValueError(f"MUST_DESTROY_FAULT_POLICY must be 'raise' or 'abort', got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Guard settings loaded from environment in a type-safe, framework-free way."""

    fault_policy: FaultPolicy = "raise"
    track_origin: bool = True
    shutdown_check: bool = True
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> Settings:
        prefix = "MUST_DESTROY_"
        policy = os.getenv(f"{prefix}FAULT_POLICY", "raise").strip().lower() or "raise"
        log_level = os.getenv(f"{prefix}LOG_LEVEL", "INFO").strip().upper() or "INFO"
        return Settings(
            fault_policy=_fault_policy(policy),
            track_origin=_flag(f"{prefix}TRACK_ORIGIN", True),
            shutdown_check=_flag(f"{prefix}SHUTDOWN_CHECK", True),
            log_level=log_level,
        )
