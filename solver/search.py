# solver/search.py
"""
Exhaustive backtracking over row sequences that use up a symbol multiset.

The walk keeps one mutable ``remaining`` map and one partial table, pushing a
row when descending and popping it on the way back.  Frames live on an
explicit stack so depth (one level per row, at most the total symbol count)
is not tied to the interpreter recursion limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence

from models import Row, SymbolCounts, Table


@dataclass
class SearchStats:
    nodes: int = 0       # rows pushed
    tables: int = 0      # accepted leaves
    pruned: int = 0      # states where no row fits but symbols remain
    max_depth: int = 0


def _any_row_fits(alphabet: Sequence[Row], remaining: Dict[str, int]) -> bool:
    for row in alphabet:
        if row.fits(remaining):
            return True
    return False


def iter_tables(
    alphabet: Sequence[Row],
    counts: SymbolCounts,
    stats: Optional[SearchStats] = None,
) -> Iterator[Table]:
    """
    Yield every table (tuple of rows, order significant) whose symbol usage
    equals ``counts`` exactly, in pre-order depth-first order over the
    alphabet.

    An all-zero multiset is accepted at the root and yields one empty table.
    Each yielded tuple is a snapshot; the search state itself is never
    exposed.
    """
    if stats is None:
        stats = SearchStats()
    alphabet = tuple(alphabet)
    remaining: Dict[str, int] = {sym: int(n) for sym, n in counts.items()}
    left = sum(remaining.values())

    if left == 0:
        stats.tables += 1
        yield ()
        return
    if not _any_row_fits(alphabet, remaining):
        stats.pruned += 1
        return

    table: List[Row] = []
    # cursor[d] is the next alphabet index to try at depth d
    cursor: List[int] = [0]
    n_rows = len(alphabet)

    def _push(row: Row) -> None:
        nonlocal left
        for sym, n in row.usage:
            remaining[sym] -= n
        left -= len(row.symbols)
        table.append(row)

    def _pop() -> None:
        nonlocal left
        row = table.pop()
        for sym, n in row.usage:
            remaining[sym] += n
        left += len(row.symbols)

    while cursor:
        idx = cursor[-1]
        descended = False
        while idx < n_rows:
            row = alphabet[idx]
            idx += 1
            if not row.fits(remaining):
                continue
            cursor[-1] = idx
            _push(row)
            stats.nodes += 1
            if len(table) > stats.max_depth:
                stats.max_depth = len(table)
            if left == 0:
                stats.tables += 1
                yield tuple(table)
                _pop()
                continue
            if not _any_row_fits(alphabet, remaining):
                stats.pruned += 1
                _pop()
                continue
            cursor.append(0)
            descended = True
            break
        if descended:
            continue
        cursor.pop()
        if table:
            _pop()


__all__ = ["SearchStats", "iter_tables"]
