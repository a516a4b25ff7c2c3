"""
SyncEngine: the single entry point.

Concepts are instrumented once, synchronizations registered once, and from then
on every caller (HTTP handlers, scripts, tests, the CLI) talks to the
instrumented façades or to ``dispatch()``.

Architecture:
    caller ──> InstrumentedAction ──> concept action
                     │
                     └──> Matcher ──> then actions (instrumented, cascading)

Example:
    engine = SyncEngine()
    API, Campaign = engine.instrument({"API": APIConcept(), "Campaign": CampaignConcept()}).values()
    engine.register({"CreateCampaign": create_campaign(API, Campaign)})
    await API.request(method="POST", path="/api/campaigns", body={"name": "X"})
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .cascade import next_sequence
from .config import EngineConfig
from .errors import RegistrationError, SyncError
from .instrument import InstrumentedAction, InstrumentedConcept, Instrumenter
from .matcher import Matcher
from .registry import ConceptRegistry
from .schema import ActionKind, ActionPattern, SyncDeclaration, SyncRule
from .trace import OutputSink, Tracer
from .vars import Symbol


SyncSource = Union[SyncDeclaration, Mapping[str, Any], Callable[[], Any]]


@dataclass
class Capability:
    """A discoverable action or query."""
    id: str
    kind: ActionKind
    description: str


@dataclass
class DispatchResult:
    """Result of a dispatch operation."""
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = {"ok": self.ok, "data": self.data}
        if not self.ok:
            result["error_kind"] = self.error_kind
            result["error_message"] = self.error_message
        return result


class SyncEngine:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        output_sink: Optional[OutputSink] = None,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.tracer = Tracer(self.config.trace, output_sink)
        self.registry = ConceptRegistry()
        self.matcher = Matcher(self.tracer)
        self._instrumenter = Instrumenter(self.matcher, self.tracer, self.config.max_depth)
        self._facades: Dict[str, InstrumentedConcept] = {}

    def instrument(self, concepts: Mapping[str, Any]) -> Dict[str, InstrumentedConcept]:
        """Register concepts and return their instrumented façades, same names."""
        facades: Dict[str, InstrumentedConcept] = {}
        for name, concept in concepts.items():
            record = self.registry.register(name, concept)
            facades[name] = self._instrumenter.wrap(record)
        self._facades.update(facades)
        return facades

    def __getitem__(self, name: str) -> InstrumentedConcept:
        return self._facades[name]

    # ------------------------------------------------------------------
    # Synchronization registration
    # ------------------------------------------------------------------

    def register(self, syncs: Mapping[str, SyncSource]) -> None:
        """
        Register synchronizations by unique name.

        Each value is a SyncDeclaration, a mapping with ``when``/``where``/
        ``then`` keys, or a zero-argument callable returning either. Rules only
        see invocations that happen after they are registered.
        """
        for name, source in syncs.items():
            declaration = self._declaration(name, source)
            rule = SyncRule(
                name=name,
                when=tuple(self._resolve_pattern(name, p, trigger=True) for p in declaration.when),
                then=tuple(self._resolve_pattern(name, p, trigger=False) for p in declaration.then),
                where=declaration.where,
                registered_seq=next_sequence(),
            )
            self.matcher.add(rule)

    def _declaration(self, name: str, source: SyncSource) -> SyncDeclaration:
        if callable(source) and not isinstance(source, (SyncDeclaration, Mapping)):
            source = source()
        if isinstance(source, Mapping):
            unknown = set(source) - {"when", "where", "then"}
            if unknown:
                raise RegistrationError(f"Synchronization {name} has unknown keys: {sorted(unknown)}")
            source = SyncDeclaration(
                when=list(source.get("when") or []),
                then=list(source.get("then") or []),
                where=source.get("where"),
            )
        if not isinstance(source, SyncDeclaration):
            raise RegistrationError(f"Synchronization {name} is not a declaration: {source!r}")
        if not source.when:
            raise RegistrationError(f"Synchronization {name} has an empty when clause")
        if source.where is not None and not callable(source.where):
            raise RegistrationError(f"Synchronization {name} has a non-callable where clause")
        return source

    def _resolve_pattern(self, sync: str, pattern: Any, trigger: bool) -> ActionPattern:
        if isinstance(pattern, tuple):
            pattern = ActionPattern(*pattern)
        if not isinstance(pattern, ActionPattern):
            raise RegistrationError(f"Synchronization {sync} has a malformed pattern: {pattern!r}")

        action = pattern.action
        if isinstance(action, str):
            resolved = self.resolve_intent(action)
            if resolved is None:
                raise RegistrationError(f"Synchronization {sync} references unknown action {action}")
            action = resolved
        if not isinstance(action, InstrumentedAction) or action.concept not in self.registry:
            raise RegistrationError(
                f"Synchronization {sync} references {action!r}, which is not an instrumented action"
            )

        if trigger:
            if action.kind == ActionKind.QUERY:
                raise RegistrationError(
                    f"Synchronization {sync}: query {action!r} cannot appear in a when clause"
                )
            if not isinstance(pattern.input, (Mapping, Symbol)):
                raise RegistrationError(
                    f"Synchronization {sync}: when input for {action!r} must be a record or a symbol"
                )
            if pattern.output is not None and not isinstance(pattern.output, Mapping):
                raise RegistrationError(f"Synchronization {sync}: when output for {action!r} must be a record")

        return ActionPattern(action=action, input=pattern.input, output=pattern.output)

    # ------------------------------------------------------------------
    # Discovery and dispatch
    # ------------------------------------------------------------------

    def list_capabilities(self) -> List[Capability]:
        """Return every instrumented action and query, actions first."""
        capabilities = [
            Capability(
                id=f"{record.concept}.{record.name}",
                kind=record.kind,
                description=record.description or f"{record.kind.value.title()} {record.concept}.{record.name}",
            )
            for record in self.registry.all_actions()
        ]
        capabilities.sort(key=lambda cap: cap.kind != ActionKind.ACTION)
        return capabilities

    def resolve_intent(self, intent: str) -> Optional[InstrumentedAction]:
        """
        Resolve an intent string to an instrumented action.

        Accepts "Concept.action" and "Concept/action" (a leading slash is
        ignored, so "/Campaign/create" works too).
        """
        normalized = intent.strip().lstrip("/").replace("/", ".")
        if "." not in normalized:
            return None
        concept_name, action_name = normalized.split(".", 1)
        facade = self._facades.get(concept_name)
        if facade is None:
            return None
        return facade.actions.get(action_name)

    async def dispatch(self, intent: str, inputs: Optional[Dict[str, Any]] = None) -> DispatchResult:
        """
        Resolve intent to an action and invoke it through instrumentation.

        Returns:
            DispatchResult. Domain error records become error_kind
            "domain_error"; engine failures carry their own kind; anything
            the action itself raises becomes "execution_error".
        """
        action = self.resolve_intent(intent)
        if action is None:
            return DispatchResult(
                ok=False,
                error_kind="intent_not_found",
                error_message=f"Could not resolve intent: {intent}",
            )

        try:
            result = await action(inputs or {})
        except SyncError as exc:
            return DispatchResult(
                ok=False,
                data=exc.details,
                error_kind=exc.kind,
                error_message=exc.message,
            )
        except Exception as e:
            return DispatchResult(
                ok=False,
                error_kind="execution_error",
                error_message=f"{type(e).__name__}: {e}",
            )

        if action.kind == ActionKind.QUERY:
            return DispatchResult(ok=True, data={"results": list(result or [])})
        if isinstance(result, Mapping) and "error" in result:
            return DispatchResult(
                ok=False,
                data=dict(result),
                error_kind="domain_error",
                error_message=str(result["error"]),
            )
        if result is None:
            return DispatchResult(ok=True)
        if isinstance(result, Mapping):
            return DispatchResult(ok=True, data=dict(result))
        return DispatchResult(ok=True, data={"result": result})


def create_engine(
    concepts: Mapping[str, Any],
    syncs: Optional[Callable[[Dict[str, InstrumentedConcept]], Mapping[str, SyncSource]]] = None,
    config: Optional[EngineConfig] = None,
    output_sink: Optional[OutputSink] = None,
) -> SyncEngine:
    """
    Build an engine, instrument ``concepts`` and register synchronizations.

    ``syncs`` receives the instrumented façades (rules must reference
    instrumented actions) and returns the name -> declaration mapping.
    """
    engine = SyncEngine(config=config, output_sink=output_sink)
    facades = engine.instrument(concepts)
    if syncs is not None:
        engine.register(syncs(facades))
    return engine
