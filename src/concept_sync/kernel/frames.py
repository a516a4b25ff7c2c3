"""
Frames and unification.

A Frame is one candidate binding environment: an immutable mapping from
Symbol to a concrete value. Matching a pattern against a record either
extends a frame (returning a new one) or rejects it (returning None). Frames
are never mutated, so a search can branch from any frame without aliasing.
"""
from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import UnresolvedSymbolError
from .schema import ActionPattern, InvocationRecord
from .vars import Symbol


def values_equal(left: Any, right: Any) -> bool:
    """Structural equality over records, lists and scalars.

    Booleans only equal booleans, so ``True`` never unifies with ``1``.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if set(left.keys()) != set(right.keys()):
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False
    return bool(left == right)


def snapshot(value: Any) -> Any:
    """Copy records and lists so later mutation cannot rewrite history."""
    if isinstance(value, Mapping):
        return {key: snapshot(item) for key, item in value.items()}
    if isinstance(value, list):
        return [snapshot(item) for item in value]
    if isinstance(value, tuple):
        return tuple(snapshot(item) for item in value)
    return value


class Frame(Mapping[Symbol, Any]):
    __slots__ = ("_bindings",)

    def __init__(self, bindings: Optional[Mapping[Symbol, Any]] = None) -> None:
        self._bindings: Dict[Symbol, Any] = dict(bindings or {})

    def __getitem__(self, symbol: Symbol) -> Any:
        return self._bindings[symbol]

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        inner = ", ".join(f"{sym!r}: {val!r}" for sym, val in self._bindings.items())
        return f"Frame({{{inner}}})"

    def unify(self, symbol: Symbol, value: Any) -> Optional["Frame"]:
        """Require ``symbol`` to hold ``value``.

        Returns this frame if already bound to an equal value, a new frame if
        unbound, and None on conflict.
        """
        if symbol in self._bindings:
            return self if values_equal(self._bindings[symbol], value) else None
        extended = dict(self._bindings)
        extended[symbol] = value
        return Frame(extended)

    def bind(self, symbol: Symbol, value: Any) -> "Frame":
        """Like unify, but a conflicting binding raises ValueError."""
        frame = self.unify(symbol, value)
        if frame is None:
            raise ValueError(
                f"{symbol!r} is already bound to {self._bindings[symbol]!r}, cannot rebind to {value!r}"
            )
        return frame


def match_value(pattern: Any, value: Any, frame: Frame) -> Optional[Frame]:
    """Unify a (possibly nested) pattern against a concrete value.

    Mapping patterns match as subsets: every key of the pattern must be
    present in the value, extra keys in the value are ignored.
    """
    if isinstance(pattern, Symbol):
        return frame.unify(pattern, value)

    if isinstance(pattern, Mapping):
        if not isinstance(value, Mapping):
            return None
        current: Optional[Frame] = frame
        for key, sub_pattern in pattern.items():
            if key not in value:
                return None
            current = match_value(sub_pattern, value[key], current)  # type: ignore[arg-type]
            if current is None:
                return None
        return current

    if isinstance(pattern, (list, tuple)):
        if not isinstance(value, (list, tuple)) or len(pattern) != len(value):
            return None
        current = frame
        for sub_pattern, item in zip(pattern, value):
            current = match_value(sub_pattern, item, current)
            if current is None:
                return None
        return current

    return frame if values_equal(pattern, value) else None


def match_record(pattern: ActionPattern, record: InvocationRecord, frame: Frame) -> Optional[Frame]:
    """Unify one ``when`` pattern against one invocation record.

    A failed record (output carries ``error``) only matches patterns whose
    output pattern names ``error`` explicitly.
    """
    if pattern.action.key != record.key:  # type: ignore[union-attr]
        return None

    matched = match_value(pattern.input, record.input, frame)
    if matched is None:
        return None

    output = pattern.output or {}
    if record.failed and "error" not in output:
        return None
    return match_value(output, record.output, matched)


def resolve(template: Any, frame: Mapping[Symbol, Any]) -> Any:
    """Substitute every symbol in ``template`` with its bound value."""
    if isinstance(template, Symbol):
        if template not in frame:
            raise UnresolvedSymbolError(
                f"Symbol {template!r} is not bound in this frame",
                details={"symbol": repr(template), "bound": [repr(s) for s in frame]},
            )
        return frame[template]
    if isinstance(template, Mapping):
        return {key: resolve(value, frame) for key, value in template.items()}
    if isinstance(template, list):
        return [resolve(item, frame) for item in template]
    if isinstance(template, tuple):
        return tuple(resolve(item, frame) for item in template)
    return template


class Frames(List[Frame]):
    """An ordered list of frames with helpers for ``where`` clauses."""

    def __init__(self, frames: Iterable[Frame] = ()) -> None:
        super().__init__(frames)

    def filter(self, predicate: Callable[[Frame], bool]) -> "Frames":
        return Frames(frame for frame in self if predicate(frame))

    def bind(self, symbol: Symbol, compute: Callable[[Frame], Any]) -> "Frames":
        """Add a derived binding to every frame."""
        return Frames(frame.bind(symbol, compute(frame)) for frame in self)

    async def query(
        self,
        query: Callable[..., Any],
        input: Any,
        output: Mapping[str, Any],
    ) -> "Frames":
        """
        Extend frames with the results of a concept query.

        For each frame the input is resolved against the frame, the query is
        called, and every returned record is unified with ``output``. A frame
        whose query returns nothing (or nothing that unifies) is dropped.

        Args:
            query: A query (``Concept._name``), instrumented or plain
            input: Input template, may reference symbols bound in the frame
            output: Output pattern applied to each returned record

        Returns:
            New Frames, in frame order then result order
        """
        result = Frames()
        for frame in self:
            resolved = resolve(input, frame)
            records = query(**resolved)
            if inspect.isawaitable(records):
                records = await records
            for record in records or ():
                extended = match_value(output, record, frame)
                if extended is not None:
                    result.append(extended)
        return result
