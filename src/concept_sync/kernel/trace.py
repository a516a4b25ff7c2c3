"""
Tracing: the engine's voice.

The kernel never writes to stdout directly. Every trace line flows through an
injectable output sink, so the CLI can pass ``print`` and tests can pass a
collector.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .config import TraceLevel
from .schema import InvocationRecord

if TYPE_CHECKING:
    from .frames import Frame


OutputSink = Callable[[str], None]


def _fmt(values: Dict[str, Any]) -> str:
    return ", ".join(f"{k}={v!r}" for k, v in values.items())


class Tracer:
    def __init__(
        self,
        level: TraceLevel = TraceLevel.OFF,
        output_sink: Optional[OutputSink] = None,
    ) -> None:
        self.level = level
        self._sink = output_sink

    @property
    def enabled(self) -> bool:
        return self.level != TraceLevel.OFF

    @property
    def verbose(self) -> bool:
        return self.level == TraceLevel.VERBOSE

    def emit(self, content: str) -> None:
        """Send output to the configured sink, or stdout as fallback."""
        if self._sink:
            self._sink(content)
        else:
            print(content)

    def invocation(self, record: InvocationRecord) -> None:
        if not self.enabled:
            return
        indent = "  " * record.depth
        origin = f" <- {record.sync}" if record.sync else ""
        self.emit(
            f"[sync] {indent}{record.concept}.{record.action}({_fmt(record.input)})"
            f" => {record.output!r}{origin}"
        )

    def fired(self, rule_name: str, frame: "Frame", depth: int) -> None:
        if not self.enabled:
            return
        indent = "  " * depth
        if self.verbose:
            self.emit(f"[sync] {indent}fire {rule_name} with {frame!r}")
        else:
            self.emit(f"[sync] {indent}fire {rule_name}")

    def failure(self, error: Exception) -> None:
        if self.enabled:
            self.emit(f"[sync] halted: {error}")
