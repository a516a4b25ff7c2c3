"""
Matcher: decides which synchronizations a new invocation satisfies.

For every rule that mentions the new record's action, the matcher joins all of
the rule's ``when`` patterns against the cascade history, keeps only the
combinations that include the new record, runs ``where``, and resolves the
``then`` inputs of each surviving frame.
"""
from __future__ import annotations

import inspect
from typing import AsyncGenerator, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .cascade import Cascade, PendingInvocation
from .errors import RegistrationError, SyncError, WhereClauseError
from .frames import Frame, Frames, match_record, resolve, snapshot
from .schema import ActionKey, InvocationRecord, SyncRule
from .trace import Tracer


class Matcher:
    def __init__(self, tracer: Tracer) -> None:
        self._tracer = tracer
        self._rules: Dict[str, SyncRule] = {}
        self._by_action: Dict[ActionKey, List[SyncRule]] = {}

    def add(self, rule: SyncRule) -> None:
        if rule.name in self._rules:
            raise RegistrationError(f"Synchronization {rule.name} is already registered")
        self._rules[rule.name] = rule
        for key in dict.fromkeys(rule.triggers()):
            self._by_action.setdefault(key, []).append(rule)

    def rules(self) -> List[SyncRule]:
        return list(self._rules.values())

    def rules_for(self, key: ActionKey) -> List[SyncRule]:
        return list(self._by_action.get(key, ()))

    def join(
        self,
        rule: SyncRule,
        history: Sequence[InvocationRecord],
        record: InvocationRecord,
        seen: Optional[Set[Tuple[str, Tuple[str, ...]]]] = None,
    ) -> Frames:
        """
        Relational join of every ``when`` pattern over the history.

        Each pattern binds a distinct record. Only combinations that use
        ``record`` survive, and records older than the rule are ignored.
        When ``seen`` is given, combinations already in it are skipped and
        new ones are added, so each combination is considered once.
        """
        eligible = [r for r in history if r.seq >= rule.registered_seq]
        partial: List[Tuple[Frame, Tuple[str, ...]]] = [(Frame(), ())]

        for pattern in rule.when:
            extended: List[Tuple[Frame, Tuple[str, ...]]] = []
            for frame, used in partial:
                for candidate in eligible:
                    if candidate.id in used:
                        continue
                    matched = match_record(pattern, candidate, frame)
                    if matched is not None:
                        extended.append((matched, used + (candidate.id,)))
            if not extended:
                return Frames()
            partial = extended

        result = Frames()
        for frame, used in partial:
            if record.id not in used:
                continue
            if seen is not None:
                marker = (rule.name, used)
                if marker in seen:
                    continue
                seen.add(marker)
            result.append(frame)
        return result

    async def apply_where(self, rule: SyncRule, frames: Frames) -> Frames:
        if rule.where is None:
            return frames
        try:
            result = rule.where(frames)
            if inspect.isawaitable(result):
                result = await result
            if result is None:
                raise WhereClauseError(
                    f"where clause of {rule.name} returned None",
                    details={"sync": rule.name},
                )
            return result if isinstance(result, Frames) else Frames(result)
        except SyncError:
            raise
        except Exception as exc:
            raise WhereClauseError(
                f"where clause of {rule.name} raised {type(exc).__name__}: {exc}",
                details={"sync": rule.name},
            ) from exc

    def resolve_then(self, rule: SyncRule, frame: Frame) -> List[PendingInvocation]:
        """Resolve every ``then`` entry for one frame, before any is dispatched."""
        pending: List[PendingInvocation] = []
        for pattern in rule.then:
            inputs = resolve(pattern.input, frame)
            if not isinstance(inputs, Mapping):
                raise RegistrationError(
                    f"then input for {pattern.action!r} in {rule.name} resolved to "
                    f"{type(inputs).__name__}, expected a record",
                    details={"sync": rule.name},
                )
            pending.append(
                PendingInvocation(action=pattern.action, input=snapshot(inputs), sync=rule.name)  # type: ignore[arg-type]
            )
        return pending

    async def react(self, cascade: Cascade, record: InvocationRecord) -> AsyncGenerator[PendingInvocation, None]:
        """
        Yield the ``then`` invocations triggered by ``record``, lazily.

        Rules are evaluated in registration order, and a rule is only joined
        once the caller has finished dispatching everything yielded for the
        rules before it, so later rules see the history those produced.
        """
        for rule in self.rules_for(record.key):
            frames = self.join(rule, cascade.history, record, cascade.seen)
            if not frames:
                continue
            frames = await self.apply_where(rule, frames)
            for frame in frames:
                pending = self.resolve_then(rule, frame)
                self._tracer.fired(rule.name, frame, cascade.depth)
                for invocation in pending:
                    yield invocation
