# Orchestrator: counts -> row alphabet -> streamed table search -> summary
from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config import CFG
from demand_parser import fmt_counts, parse_counts
from io_files import EmissionCounter, TableSink, TableWriteError, resolve_tables_path
from models import RunMeta, SymbolCounts
from progress import (
    log_event, log_error, reset, start_timer, set_status, set_phase,
    set_run_config, set_alphabet_size, set_tables_found, set_done,
)
from solver.alphabet import generate_row_alphabet
from solver.census import CensusResult, count_tables
from solver.search import SearchStats, iter_tables

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

EXIT_OK = 0
EXIT_WRITE_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_CENSUS_MISMATCH = 3


@dataclass
class RunResult:
    ok: bool
    tables: int
    failed: int
    alphabet_size: int
    output_path: str
    elapsed_sec: float
    reason: Optional[str] = None
    census: Optional[CensusResult] = None
    stats: Optional[SearchStats] = None
    exit_code: int = EXIT_OK

    def summary(self) -> Dict[str, Any]:
        meta = RunMeta(self.elapsed_sec, self.output_path)
        return meta.template_vars(
            ok=self.ok,
            tables=self.tables,
            failed=self.failed,
            alphabet_size=self.alphabet_size,
            reason=self.reason,
            census_tables=None if self.census is None else self.census.tables,
        )


def _coerce_counts(maybe: Any) -> SymbolCounts:
    if isinstance(maybe, dict) and all(isinstance(v, int) and not isinstance(v, bool) for v in maybe.values()):
        for sym, n in maybe.items():
            if n < 0:
                raise ValueError(f"Bad counts: negative count for {sym!r}")
        return {str(k): int(v) for k, v in maybe.items()}
    ok, counts, err = parse_counts(maybe)
    if not ok:
        raise ValueError(f"Bad counts: {err}")
    return counts


def run_enumeration(
    counts: Any,
    width: Optional[int] = None,
    output_path: Optional[str] = None,
    *,
    log_every: Optional[int] = None,
    on_write_error: Optional[str] = None,
    empty_policy: Optional[str] = None,
    verify: Optional[bool] = None,
    base_dir: str = BASE_DIR,
) -> RunResult:
    """
    Enumerate every table for ``counts`` and stream it to ``output_path``.

    Unset options fall back to :class:`config.CFG`.  Bad input raises
    ``ValueError`` before the output file is touched; write failures end
    the run with ``ok=False`` but the output array is always closed.
    """
    t0 = time.time()
    counts = _coerce_counts(counts)
    width = CFG.ROW_WIDTH if width is None else int(width)
    if width < 0:
        raise ValueError(f"Bad width: {width}")
    every = CFG.LOG_EVERY_N_TABLES if log_every is None else int(log_every)
    policy = (CFG.EMPTY_POLICY if empty_policy is None else empty_policy).strip().lower()
    if policy not in ("one_table", "reject"):
        raise ValueError(f"unknown empty-multiset policy: {policy!r}")
    do_verify = CFG.VERIFY_COUNT if verify is None else bool(verify)

    if sum(counts.values()) == 0 and policy == "reject":
        raise ValueError("Bad counts: every quantity is zero")

    path = resolve_tables_path(counts, base_dir, output_path)

    reset()
    start_timer()
    set_status("Running")
    set_run_config(fmt_counts(counts), width, path)
    log_event(
        "Run setup",
        counts=fmt_counts(counts),
        width=width,
        log_every=every,
        on_write_error=on_write_error or CFG.ON_WRITE_ERROR,
        output=path,
    )

    set_phase("alphabet")
    alphabet = generate_row_alphabet(counts, width)
    set_alphabet_size(len(alphabet))
    log_event("Unique rows generated", rows=len(alphabet))

    set_phase("search")
    stats = SearchStats()
    counter = EmissionCounter(every=every, started=t0)
    reason: Optional[str] = None
    ok = True
    exit_code = EXIT_OK
    try:
        with TableSink(path, counter, on_error=on_write_error) as sink:
            for table in iter_tables(alphabet, counts, stats):
                sink.append(table)
    except TableWriteError as e:
        ok = False
        exit_code = EXIT_WRITE_FAILED
        reason = str(e)
        log_error("Search aborted", error=e, tables=counter.emitted)

    set_tables_found(counter.emitted, counter.failed)
    log_event(
        "Search finished",
        tables=counter.emitted,
        failed=counter.failed or None,
        nodes=stats.nodes,
        pruned=stats.pruned,
        max_depth=stats.max_depth,
    )
    if ok and counter.failed:
        reason = f"{counter.failed} table(s) skipped after encode errors"

    census: Optional[CensusResult] = None
    if ok and do_verify:
        set_phase("census")
        census = count_tables(counts, alphabet)
        if not census.ok:
            log_error("Census incomplete", reason=census.reason)
        elif census.tables != counter.emitted + counter.failed:
            ok = False
            exit_code = EXIT_CENSUS_MISMATCH
            reason = f"census expected {census.tables} tables, search produced {counter.emitted + counter.failed}"
            log_error("Census mismatch", expected=census.tables, found=counter.emitted)
        else:
            log_event("Census agrees", tables=census.tables, multisets=census.multisets)

    elapsed = time.time() - t0
    set_done(ok, reason=reason)
    return RunResult(
        ok=ok,
        tables=counter.emitted,
        failed=counter.failed,
        alphabet_size=len(alphabet),
        output_path=path,
        elapsed_sec=elapsed,
        reason=reason,
        census=census,
        stats=stats,
        exit_code=exit_code,
    )


__all__ = [
    "EXIT_BAD_INPUT",
    "EXIT_CENSUS_MISMATCH",
    "EXIT_OK",
    "EXIT_WRITE_FAILED",
    "RunResult",
    "run_enumeration",
]
