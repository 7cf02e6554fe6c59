# solver/alphabet.py
"""Canonical row alphabet for a symbol multiset."""

from typing import Dict, List, Tuple

from models import Row, SymbolCounts


def generate_row_alphabet(counts: SymbolCounts, width: int) -> Tuple[Row, ...]:
    """
    Every distinct row (sorted symbols, 1..``width`` of them) that the counts
    can supply on their own.

    Each branch draws from its own copy of the budget, so a row may repeat a
    symbol up to its full quantity; rows are not constrained against each
    other here.  Order is the order in which rows are first reached by the
    depth-first walk (symbols tried in key order).
    """
    for sym, n in counts.items():
        if int(n) < 0:
            raise ValueError(f"negative count for {sym!r}: {n}")
    width = int(width)
    symbols = [sym for sym, n in counts.items() if int(n) > 0]
    if width <= 0 or not symbols:
        return ()

    # dict keeps first-seen order; keys are the sorted symbol tuples
    seen: Dict[Tuple[str, ...], Row] = {}

    def _walk(current: List[str], budget: Dict[str, int]) -> None:
        if current:
            key = tuple(sorted(current))
            if key not in seen:
                seen[key] = Row(key, width)
        if len(current) >= width:
            return
        for sym in symbols:
            if budget[sym] > 0:
                nxt = dict(budget)
                nxt[sym] -= 1
                current.append(sym)
                _walk(current, nxt)
                current.pop()

    _walk([], {sym: int(counts[sym]) for sym in symbols})
    return tuple(seen.values())


__all__ = ["generate_row_alphabet"]
