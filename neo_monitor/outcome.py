from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """A value plus the reason it is a fallback, if it is one.

    Helpers that may degrade (cache reads, the per-user alert overlay) return
    this instead of swallowing errors, so callers can see and report the degrade.
    """

    value: T
    degraded: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.degraded is None

    @classmethod
    def fallback(cls, value: T, reason: str) -> "Outcome[T]":
        return cls(value=value, degraded=reason)
