"""
Cascades: per-call invocation history.

A cascade is the chain of invocations triggered, directly or transitively, by
one externally initiated call. It owns the history the matcher joins over and
the depth counter the re-entrancy guard checks. The current cascade lives in a
context variable, so concurrent top-level calls (separate asyncio tasks) never
see each other's history.
"""
from __future__ import annotations

import itertools
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set, Tuple

from .errors import CascadeHaltedError, CycleDetectedError, SyncError
from .schema import InvocationRecord

if TYPE_CHECKING:
    from .instrument import InstrumentedAction


# Shared by invocation records and rule registration so "registered after"
# can be decided by comparing sequence numbers.
_sequence = itertools.count(1)


def next_sequence() -> int:
    return next(_sequence)


@dataclass
class PendingInvocation:
    """A resolved ``then`` entry waiting to be dispatched."""

    action: "InstrumentedAction"
    input: Dict[str, Any]
    sync: str


@dataclass
class Cascade:
    id: str
    max_depth: int
    history: List[InvocationRecord] = field(default_factory=list)
    depth: int = 0
    halted: Optional[SyncError] = None
    # (sync name, record ids) combinations already joined in this cascade.
    seen: Set[Tuple[str, Tuple[str, ...]]] = field(default_factory=set)

    def append(self, record: InvocationRecord) -> None:
        self.history.append(record)

    def enter(self) -> None:
        """Descend one level. Exceeding max_depth halts the cascade."""
        if self.depth + 1 > self.max_depth:
            error = CycleDetectedError(
                f"Cascade {self.id} exceeded max depth {self.max_depth}",
                details={
                    "cascade": self.id,
                    "max_depth": self.max_depth,
                    "last": [f"{r.concept}.{r.action}" for r in self.history[-3:]],
                },
            )
            self.halt(error)
            raise error
        self.depth += 1

    def leave(self) -> None:
        self.depth -= 1

    def halt(self, error: SyncError) -> None:
        if self.halted is None:
            self.halted = error

    def check(self) -> None:
        if self.halted is not None:
            raise CascadeHaltedError(
                f"Cascade {self.id} was halted: {self.halted.message}",
                details={"cascade": self.id, "cause": self.halted.kind},
            )


_current: ContextVar[Optional[Cascade]] = ContextVar("concept_sync_cascade", default=None)


def current_cascade() -> Optional[Cascade]:
    return _current.get()


@contextmanager
def open_cascade(max_depth: int) -> Iterator[Tuple[Cascade, bool]]:
    """
    Join the current cascade, or start a new one.

    Yields (cascade, is_root). The root call owns the cascade: when it exits
    the history is cleared and the context variable reset.
    """
    existing = _current.get()
    if existing is not None:
        yield existing, False
        return

    cascade = Cascade(id=f"cascade-{uuid.uuid4()}", max_depth=max_depth)
    token = _current.set(cascade)
    try:
        yield cascade, True
    finally:
        _current.reset(token)
        cascade.history.clear()
        cascade.seen.clear()
