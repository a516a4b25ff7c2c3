"""
Instrumentation: transparent wrappers around concept actions.

Calling an instrumented action runs the underlying action, records the
invocation in the current cascade, and lets the matcher react. Reactions are
drained iteratively from an explicit stack: each level holds the pending
``then`` invocations produced by one record, and the stack height is the
cascade depth checked by the re-entrancy guard.
"""
from __future__ import annotations

import inspect
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from .cascade import Cascade, PendingInvocation, next_sequence, open_cascade
from .errors import SyncError
from .frames import snapshot
from .matcher import Matcher
from .registry import ActionRecord, ConceptRecord
from .schema import ActionKey, ActionKind, InvocationRecord
from .trace import Tracer


Invoker = Callable[["InstrumentedAction", Dict[str, Any]], Awaitable[Any]]


def as_output(result: Any) -> Dict[Any, Any]:
    if result is None:
        return {}
    if isinstance(result, Mapping):
        return snapshot(result)
    return {"result": snapshot(result)}


async def call_handler(handler: Callable[..., Any], inputs: Mapping[str, Any]) -> Any:
    result = handler(**inputs)
    if inspect.isawaitable(result):
        result = await result
    return result


class InstrumentedAction:
    """Drop-in replacement for a concept action. Always awaited."""

    def __init__(self, record: ActionRecord, invoker: Invoker) -> None:
        self._record = record
        self._invoker = invoker
        self.__name__ = record.name
        self.__doc__ = record.handler.__doc__

    @property
    def concept(self) -> str:
        return self._record.concept

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def kind(self) -> ActionKind:
        return self._record.kind

    @property
    def key(self) -> ActionKey:
        return self._record.key

    @property
    def handler(self) -> Callable[..., Any]:
        return self._record.handler

    @property
    def description(self) -> Optional[str]:
        return self._record.description

    async def __call__(self, input: Optional[Mapping[str, Any]] = None, /, **kwargs: Any) -> Any:
        inputs: Dict[str, Any] = dict(input or {})
        inputs.update(kwargs)
        return await self._invoker(self, inputs)

    def __repr__(self) -> str:
        return f"{self.concept}.{self.name}"


class InstrumentedConcept:
    """Façade exposing a concept's actions under their original names.

    Attributes that are not actions (concept state) are read through from the
    underlying instance.
    """

    def __init__(self, record: ConceptRecord, actions: Dict[str, InstrumentedAction]) -> None:
        self._record = record
        self._actions = actions

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def instance(self) -> Any:
        return self._record.instance

    @property
    def actions(self) -> Dict[str, InstrumentedAction]:
        return dict(self._actions)

    def __getattr__(self, name: str) -> Any:
        actions = self.__dict__.get("_actions", {})
        if name in actions:
            return actions[name]
        record = self.__dict__.get("_record")
        if record is None or isinstance(record.instance, Mapping):
            raise AttributeError(name)
        return getattr(record.instance, name)

    def __getitem__(self, name: str) -> InstrumentedAction:
        return self._actions[name]

    def __repr__(self) -> str:
        return f"<InstrumentedConcept {self.name}: {', '.join(self._actions)}>"


class Instrumenter:
    def __init__(self, matcher: Matcher, tracer: Tracer, max_depth: int) -> None:
        self._matcher = matcher
        self._tracer = tracer
        self.max_depth = max_depth

    def wrap(self, concept: ConceptRecord) -> InstrumentedConcept:
        wrapped = {
            name: InstrumentedAction(record, self.invoke)
            for name, record in concept.actions.items()
        }
        return InstrumentedConcept(concept, wrapped)

    async def invoke(self, action: InstrumentedAction, inputs: Dict[str, Any]) -> Any:
        """Entry point behind every instrumented call."""
        if action.kind == ActionKind.QUERY:
            return await call_handler(action.handler, inputs)

        with open_cascade(self.max_depth) as (cascade, _is_root):
            cascade.check()
            record, result = await self._execute(cascade, action, inputs)
            await self._drain(cascade, record)
            return result

    async def _execute(
        self,
        cascade: Cascade,
        action: InstrumentedAction,
        inputs: Dict[str, Any],
        sync: Optional[str] = None,
    ) -> Tuple[Optional[InvocationRecord], Any]:
        # Taken before the call: handlers may mutate their own input.
        recorded_input = snapshot(inputs)
        result = await call_handler(action.handler, inputs)
        if action.kind == ActionKind.QUERY:
            return None, result

        seq = next_sequence()
        record = InvocationRecord(
            id=f"invocation-{seq}",
            seq=seq,
            cascade=cascade.id,
            concept=action.concept,
            action=action.name,
            input=recorded_input,
            output=as_output(result),
            depth=cascade.depth,
            sync=sync,
        )
        cascade.append(record)
        self._tracer.invocation(record)
        return record, result

    async def _drain(self, cascade: Cascade, record: InvocationRecord) -> None:
        """Dispatch every reaction to ``record``, depth-first, without recursion."""
        stack: List[AsyncGenerator[PendingInvocation, None]] = []
        try:
            cascade.enter()
            stack.append(self._matcher.react(cascade, record))
            while stack:
                cascade.check()
                try:
                    pending = await stack[-1].__anext__()
                except StopAsyncIteration:
                    stack.pop()
                    cascade.leave()
                    continue

                child, _ = await self._execute(cascade, pending.action, pending.input, pending.sync)
                if child is not None:
                    cascade.enter()
                    stack.append(self._matcher.react(cascade, child))
        except SyncError as exc:
            cascade.halt(exc)
            self._tracer.failure(exc)
            raise
        finally:
            for level in reversed(stack):
                await level.aclose()
                cascade.leave()
