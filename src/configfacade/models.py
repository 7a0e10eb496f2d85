"""Data models for configfacade."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class CacheState(Enum):
    """State of a cached property's slot.

    EMPTY until the first read after construction or invalidation,
    POPULATED until the next upstream change notification.
    """

    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class Outcome:
    """Result of evaluating a property once.

    Exactly one of three states: present (``value`` set), absent (neither
    set) or failed (``error`` set).

    Attributes:
        value: Evaluated value, None when absent or failed
        error: Exception raised by the evaluation, if any
    """

    value: Any = None
    error: Exception | None = None

    @property
    def present(self) -> bool:
        return self.error is None and self.value is not None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class BindOptions:
    """Options controlling how ``bind`` maps a config onto a dataclass.

    Attributes:
        allow_missing: Resolve absent required fields to their default (or None)
            instead of raising PropertyAbsentError
    """

    allow_missing: bool = False
