"""
Kernel: the machinery of the synchronization engine.

This module contains the execution infrastructure:
- vars: Logic variables (symbols) for patterns
- frames: Binding environments and unification
- schema: Invocation records, patterns and rules
- registry: Concept registry
- cascade: Per-call history and re-entrancy guard
- matcher: Relational join and rule firing
- instrument: Transparent action wrappers
- engine: High-level orchestration

The kernel is distinct from lib/ (reusable concepts).
Kernel = machinery. Lib = concepts.
"""
from .config import EngineConfig, TraceLevel
from .errors import (
    CascadeHaltedError,
    CycleDetectedError,
    RegistrationError,
    SyncError,
    UnresolvedSymbolError,
    WhereClauseError,
)
from .vars import Symbol, fresh_symbol, variables
from .frames import Frame, Frames, match_value, resolve
from .schema import ActionKind, ActionPattern, InvocationRecord, SyncDeclaration, SyncRule, actions
from .registry import ConceptRegistry
from .cascade import Cascade, current_cascade
from .matcher import Matcher
from .instrument import InstrumentedAction, InstrumentedConcept
from .engine import Capability, DispatchResult, SyncEngine, create_engine

__all__ = [
    # Config
    "EngineConfig",
    "TraceLevel",
    # Errors
    "SyncError",
    "RegistrationError",
    "UnresolvedSymbolError",
    "WhereClauseError",
    "CycleDetectedError",
    "CascadeHaltedError",
    # Vars
    "Symbol",
    "fresh_symbol",
    "variables",
    # Frames
    "Frame",
    "Frames",
    "match_value",
    "resolve",
    # Schema
    "ActionKind",
    "ActionPattern",
    "InvocationRecord",
    "SyncDeclaration",
    "SyncRule",
    "actions",
    # Registry
    "ConceptRegistry",
    # Cascade
    "Cascade",
    "current_cascade",
    # Matcher
    "Matcher",
    # Instrumentation
    "InstrumentedAction",
    "InstrumentedConcept",
    # Engine
    "Capability",
    "DispatchResult",
    "SyncEngine",
    "create_engine",
]
