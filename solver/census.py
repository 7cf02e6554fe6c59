# solver/census.py
"""
Independent table count via CP-SAT.

A table is an ordered arrangement of a row multiset, so the number of tables
equals the sum, over every non-negative integer vector ``n`` with
``sum_r n[r] * usage_r == counts``, of the multinomial ``(sum n)! / prod n[r]!``.
CP-SAT enumerates the vectors; the search in :mod:`solver.search` must emit
exactly that many tables.
"""

import math
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import Row, SymbolCounts


@dataclass
class CensusResult:
    ok: bool
    tables: int = 0
    multisets: int = 0
    reason: Optional[str] = None
    elapsed_sec: float = 0.0


def _multinomial(parts: Sequence[int]) -> int:
    out = math.factorial(sum(parts))
    for k in parts:
        out //= math.factorial(k)
    return out


class _MultisetCollector(_cp.CpSolverSolutionCallback):
    def __init__(self, variables: List[_cp.IntVar]):
        super().__init__()
        self._vars = variables
        self.tables = 0
        self.multisets = 0

    def on_solution_callback(self) -> None:
        parts = [int(self.Value(v)) for v in self._vars]
        self.multisets += 1
        self.tables += _multinomial([p for p in parts if p])


def count_tables(
    counts: SymbolCounts,
    alphabet: Sequence[Row],
    max_seconds: Optional[float] = None,
) -> CensusResult:
    t0 = time.time()
    total = sum(int(n) for n in counts.values())
    if total == 0:
        return CensusResult(True, tables=1, multisets=1)
    if not alphabet:
        return CensusResult(True, tables=0, multisets=0, reason="empty alphabet")

    m = _cp.CpModel()
    n_vars: List[_cp.IntVar] = []
    for i, row in enumerate(alphabet):
        usage = dict(row.usage)
        cap = min(int(counts.get(sym, 0)) // k for sym, k in usage.items())
        n_vars.append(m.NewIntVar(0, max(0, cap), f"n_{i}"))

    uses: Dict[str, List] = {sym: [] for sym in counts}
    for var, row in zip(n_vars, alphabet):
        for sym, k in row.usage:
            if sym not in uses:
                return CensusResult(False, reason=f"row uses unknown symbol {sym!r}")
            uses[sym].append(k * var)
    for sym, n in counts.items():
        terms = uses[sym]
        if terms:
            m.Add(sum(terms) == int(n))
        elif int(n) != 0:
            return CensusResult(True, tables=0, multisets=0, reason=f"no row supplies {sym!r}")

    seconds = CFG.CENSUS_MAX_SECONDS if max_seconds is None else max_seconds
    solver = _cp.CpSolver()
    solver.parameters.max_time_in_seconds = float(seconds)
    solver.parameters.max_memory_in_mb = int(getattr(CFG, "MAX_MEMORY_MB", 2048))
    # full enumeration only runs on a single worker
    solver.parameters.num_search_workers = 1
    solver.parameters.enumerate_all_solutions = True
    solver.parameters.log_search_progress = False

    collector = _MultisetCollector(n_vars)
    res = solver.Solve(m, collector)
    elapsed = time.time() - t0

    if res == _cp.OPTIMAL:
        return CensusResult(True, collector.tables, collector.multisets, None, elapsed)
    if res == _cp.INFEASIBLE:
        return CensusResult(True, 0, 0, "Proven infeasible", elapsed)
    if res == _cp.MODEL_INVALID:
        return CensusResult(False, reason="Model invalid (configuration error)", elapsed_sec=elapsed)
    return CensusResult(
        False,
        collector.tables,
        collector.multisets,
        "Stopped before enumeration finished (timebox)",
        elapsed,
    )


__all__ = ["CensusResult", "count_tables"]
