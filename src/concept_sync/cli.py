"""
Command-line membrane for a synchronization engine.

Usage:
    concept-sync capabilities --app mypkg.app:build
    concept-sync invoke Concept.action --app mypkg.app:build [--input '{"key": "value"}'] [--trace verbose]

``--app`` names a SyncEngine instance or a zero-argument factory returning
one, as ``module:attribute``. CONCEPT_SYNC_APP is used when the flag is absent.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from importlib import import_module
from typing import Any, Dict, List, Optional

from .kernel.config import TraceLevel
from .kernel.engine import SyncEngine

APP_ENV = "CONCEPT_SYNC_APP"


# =============================================================================
# App Resolution
# =============================================================================

def load_app(ref: str) -> SyncEngine:
    """Import ``module:attribute`` and return the engine it names."""
    if ":" not in ref:
        raise ValueError(f"App reference must look like module:attribute, got {ref!r}")
    module_name, attr = ref.split(":", 1)
    target: Any = getattr(import_module(module_name), attr)
    if not isinstance(target, SyncEngine) and callable(target):
        target = target()
    if not isinstance(target, SyncEngine):
        raise TypeError(f"{ref} did not produce a SyncEngine")
    return target


def resolve_app(explicit: Optional[str]) -> str:
    """
    Resolve the app reference using hierarchy:
    1. Explicit flag
    2. Environment variable CONCEPT_SYNC_APP
    """
    ref = explicit or os.environ.get(APP_ENV)
    if not ref:
        raise ValueError(f"No app given: pass --app or set {APP_ENV}")
    return ref


# =============================================================================
# Commands
# =============================================================================

def cmd_capabilities(args: argparse.Namespace) -> int:
    engine = load_app(resolve_app(args.app))
    for cap in engine.list_capabilities():
        print(f"{cap.id:<40} {cap.kind.value:<7} {cap.description}")
    return 0


def cmd_invoke(args: argparse.Namespace) -> int:
    engine = load_app(resolve_app(args.app))
    if args.trace:
        engine.tracer.level = TraceLevel(args.trace)

    inputs: Dict[str, Any] = {}
    if args.input:
        inputs = json.loads(args.input)
        if not isinstance(inputs, dict):
            print("--input must be a JSON object", file=sys.stderr)
            return 2

    result = asyncio.run(engine.dispatch(args.intent, inputs))
    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="concept-sync",
        description="Invoke instrumented concept actions",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    caps = sub.add_parser("capabilities", help="List actions and queries")
    caps.add_argument("--app", help="module:attribute naming a SyncEngine or factory")
    caps.set_defaults(func=cmd_capabilities)

    invoke = sub.add_parser("invoke", help="Dispatch one action")
    invoke.add_argument("intent", help="Concept.action")
    invoke.add_argument("--app", help="module:attribute naming a SyncEngine or factory")
    invoke.add_argument("--input", help="JSON object of input fields")
    invoke.add_argument(
        "--trace",
        choices=[level.value for level in TraceLevel],
        help="Trace level for this invocation",
    )
    invoke.set_defaults(func=cmd_invoke)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (ValueError, TypeError, ImportError, AttributeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
