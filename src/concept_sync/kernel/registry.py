from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .errors import RegistrationError
from .schema import ActionKey, ActionKind


ActionFn = Callable[..., Any]


@dataclass
class ActionRecord:
    concept: str
    name: str
    kind: ActionKind
    handler: ActionFn
    description: Optional[str] = None

    @property
    def key(self) -> ActionKey:
        return (self.concept, self.name)


@dataclass
class ConceptRecord:
    name: str
    instance: Any
    actions: Dict[str, ActionRecord]


def _describe(handler: ActionFn) -> Optional[str]:
    doc = inspect.getdoc(handler)
    if not doc:
        return None
    return doc.strip().splitlines()[0]


def discover_actions(concept_name: str, concept: Any) -> Dict[str, ActionRecord]:
    """Collect a concept's actions and queries.

    A mapping of name -> callable is taken as-is. For objects, public methods
    are actions and single-underscore methods are queries; dunders and
    non-callables are skipped.
    """
    if isinstance(concept, Mapping):
        members = [(name, fn) for name, fn in concept.items() if callable(fn)]
    else:
        members = []
        for name in dir(type(concept)):
            if name.startswith("__"):
                continue
            attr = getattr(type(concept), name, None)
            if not (inspect.isfunction(attr) or inspect.ismethoddescriptor(attr)):
                continue
            members.append((name, getattr(concept, name)))

    found: Dict[str, ActionRecord] = {}
    for name, handler in members:
        kind = ActionKind.QUERY if name.startswith("_") else ActionKind.ACTION
        found[name] = ActionRecord(
            concept=concept_name,
            name=name,
            kind=kind,
            handler=handler,
            description=_describe(handler),
        )
    return found


class ConceptRegistry:
    """Startup-time directory of concepts. Registration is one-shot."""

    def __init__(self) -> None:
        self._registry: Dict[str, ConceptRecord] = {}

    def register(self, name: str, concept: Any) -> ConceptRecord:
        if name in self._registry:
            raise RegistrationError(f"Concept {name} is already registered")
        record = ConceptRecord(
            name=name,
            instance=concept,
            actions=discover_actions(name, concept),
        )
        self._registry[name] = record
        return record

    def get(self, name: str) -> ConceptRecord:
        return self._registry[name]

    def find_action(self, concept: str, action: str) -> Optional[ActionRecord]:
        record = self._registry.get(concept)
        if record is None:
            return None
        return record.actions.get(action)

    def all_actions(self) -> List[ActionRecord]:
        return [
            action
            for concept in self._registry.values()
            for action in concept.actions.values()
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __iter__(self) -> Iterator[str]:
        return iter(self._registry)
