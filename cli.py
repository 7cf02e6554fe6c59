"""Command-line entry point: enumerate tables and stream them to a JSON file."""

from __future__ import annotations

import argparse

from config import CFG
from demand_parser import parse_counts_text
from progress import enable_console, log_event, log_error
from solver.orchestrator import EXIT_BAD_INPUT, run_enumeration


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Enumerate every table of fixed-width rows that uses up a symbol multiset exactly."
    )
    ap.add_argument("--counts", default=CFG.SYMBOL_COUNTS, help="Symbol counts, e.g. A=3,B=3,C=0")
    ap.add_argument("--width", type=int, default=CFG.ROW_WIDTH, help="Row width cap")
    ap.add_argument("--out", default=None, help="Output JSON path (default derived from the counts)")
    ap.add_argument("--log-every", type=int, default=CFG.LOG_EVERY_N_TABLES, help="Tables per progress line")
    ap.add_argument("--on-write-error", choices=("abort", "skip"), default=CFG.ON_WRITE_ERROR)
    ap.add_argument("--empty-policy", choices=("one_table", "reject"), default=CFG.EMPTY_POLICY)
    ap.add_argument("--verify", action=argparse.BooleanOptionalAction, default=CFG.VERIFY_COUNT,
                    help="Cross-check the table count with CP-SAT after the search")
    ap.add_argument("--quiet", action="store_true", help="Log to the run log file only")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.quiet:
        enable_console()

    ok, counts, err = parse_counts_text(args.counts)
    if not ok:
        log_error("Bad counts", error=err)
        return EXIT_BAD_INPUT

    log_event("Generating tables", counts=args.counts, width=args.width)
    try:
        result = run_enumeration(
            counts,
            args.width,
            args.out,
            log_every=args.log_every,
            on_write_error=args.on_write_error,
            empty_policy=args.empty_policy,
            verify=args.verify,
        )
    except ValueError as e:
        log_error("Bad input", error=e)
        return EXIT_BAD_INPUT

    summary = result.summary()
    log_event(
        "Finished",
        tables=summary["tables"],
        time=summary["elapsed_str"],
        output=summary["output_path"],
    )
    return result.exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
