from __future__ import annotations

import os
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

MAX_DEPTH_ENV = "CONCEPT_SYNC_MAX_DEPTH"
TRACE_ENV = "CONCEPT_SYNC_TRACE"


class TraceLevel(str, Enum):
    OFF = "off"
    TRACE = "trace"
    VERBOSE = "verbose"


class EngineConfig(BaseModel):
    """Engine settings.

    max_depth bounds how many nested ``then`` hops a single cascade may take
    before it is halted with CycleDetectedError.
    """

    max_depth: int = Field(default=50, ge=1)
    trace: TraceLevel = TraceLevel.OFF

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "EngineConfig":
        """
        Resolve configuration using hierarchy:
        1. Explicit overrides
        2. Environment variables CONCEPT_SYNC_MAX_DEPTH / CONCEPT_SYNC_TRACE
        3. Defaults
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        env_depth = env.get(MAX_DEPTH_ENV)
        if env_depth:
            values["max_depth"] = int(env_depth)

        env_trace = env.get(TRACE_ENV)
        if env_trace:
            values["trace"] = env_trace.strip().lower()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
