"""
Logic variables for synchronization patterns.

A Symbol is a placeholder meaning "whatever value occupies this slot". It
carries no value of its own; frames bind symbols to values during matching.
Symbols compare by identity, so minting the same hint twice gives two
unrelated variables. Mint once per rule and reuse the reference.
"""
from __future__ import annotations

import itertools
from typing import Tuple

_counter = itertools.count(1)


class Symbol:
    """An opaque, globally unique pattern variable."""

    __slots__ = ("hint", "ordinal")

    def __init__(self, hint: str, ordinal: int) -> None:
        self.hint = hint
        self.ordinal = ordinal

    def __repr__(self) -> str:
        return f"${self.hint or '_'}#{self.ordinal}"

    # Equality is identity: __eq__ and __hash__ come from object.

    def __copy__(self) -> "Symbol":
        return self

    def __deepcopy__(self, memo: dict) -> "Symbol":
        return self


def fresh_symbol(hint: str = "") -> Symbol:
    """Mint a new symbol. Never cached: two calls never return equal symbols."""
    return Symbol(hint, next(_counter))


def variables(*hints: str) -> Tuple[Symbol, ...]:
    """Mint one fresh symbol per hint.

    Example:
        request, body = variables("request", "body")
    """
    return tuple(fresh_symbol(hint) for hint in hints)


def is_symbol(value: object) -> bool:
    return isinstance(value, Symbol)
