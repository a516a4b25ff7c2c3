from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .frames import Frames
    from .instrument import InstrumentedAction


ActionKey = Tuple[str, str]

WhereClause = Callable[["Frames"], Union["Frames", Awaitable["Frames"]]]


class ActionKind(str, Enum):
    ACTION = "action"
    QUERY = "query"


class InvocationRecord(BaseModel):
    """Immutable snapshot of one completed action within a cascade."""

    id: str
    seq: int
    cascade: str
    concept: str
    action: str
    input: Dict[Any, Any] = Field(default_factory=dict)
    output: Dict[Any, Any] = Field(default_factory=dict)
    depth: int = 0
    sync: Optional[str] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def key(self) -> ActionKey:
        return (self.concept, self.action)

    @property
    def failed(self) -> bool:
        return "error" in self.output


@dataclass(frozen=True)
class ActionPattern:
    """Template for an invocation: an action plus input/output records.

    ``input`` is a mapping whose values may be symbols or literals. In a
    ``then`` clause it may also be a single symbol bound to a whole mapping.
    ``output`` is only meaningful in ``when`` clauses.
    """

    action: Union["InstrumentedAction", str]
    input: Any = field(default_factory=dict)
    output: Optional[Mapping[str, Any]] = None


@dataclass
class SyncDeclaration:
    when: List[ActionPattern]
    then: List[ActionPattern]
    where: Optional[WhereClause] = None


@dataclass(frozen=True)
class SyncRule:
    """A registered synchronization. Patterns reference resolved actions."""

    name: str
    when: Tuple[ActionPattern, ...]
    then: Tuple[ActionPattern, ...]
    where: Optional[WhereClause] = None
    # Records with a lower seq predate the rule and are never matched.
    registered_seq: int = 0

    def triggers(self) -> List[ActionKey]:
        return [pattern.action.key for pattern in self.when]  # type: ignore[union-attr]


def actions(*entries: Tuple[Any, ...]) -> List[ActionPattern]:
    """Build a pattern list from ``(action, input[, output])`` tuples.

    Example:
        when=actions(
            (API.request, {"method": "POST", "path": "/quizzes", "title": title}, {"request": request}),
        )
    """
    patterns: List[ActionPattern] = []
    for entry in entries:
        if isinstance(entry, ActionPattern):
            patterns.append(entry)
            continue
        if not isinstance(entry, tuple) or not 1 <= len(entry) <= 3:
            raise TypeError(f"Expected (action, input[, output]) tuple, got {entry!r}")
        action = entry[0]
        inputs = entry[1] if len(entry) > 1 else {}
        output = entry[2] if len(entry) > 2 else None
        patterns.append(ActionPattern(action=action, input=inputs, output=output))
    return patterns
