"""
Engine errors.

Domain failures never raise: concept actions return ``{"error": ...}`` records
and the engine passes them through. Everything in this module signals a defect
in rule authoring or a runaway cascade, and is meant to stop the offending
registration or cascade at the point of first occurrence.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for engine-level failures."""

    kind = "sync_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class RegistrationError(SyncError):
    """A concept or synchronization could not be registered."""

    kind = "registration_error"


class UnresolvedSymbolError(SyncError):
    """A ``then`` input references a symbol the frame never bound."""

    kind = "unresolved_symbol"


class WhereClauseError(SyncError):
    """A ``where`` clause raised while filtering frames."""

    kind = "where_error"


class CycleDetectedError(SyncError):
    """The cascade exceeded its depth bound."""

    kind = "cycle_detected"


class CascadeHaltedError(SyncError):
    """Dispatch was attempted inside a cascade that has already been halted."""

    kind = "cascade_halted"
