"""
Tagged lookup results.

External lookups never raise into the aggregation. They return either
``Ok(value)`` or ``Degraded(value, reason)`` where the degraded value is the
zero placeholder callers fall back to. ``.value`` works the same for both so
callers that only need the number don't branch; tests and diagnostics can
check ``.ok`` / ``.reason`` to see why a value was zeroed.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok = True
    reason = None


@dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    reason: str
    ok = False


Lookup = Union[Ok[T], Degraded[T]]
