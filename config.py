# config.py
import os

# ======= Symbol multiset / row shape =======
# Comma separated SYMBOL=COUNT pairs; key order is the branching order.
SYMBOL_COUNTS = os.getenv("TE_SYMBOL_COUNTS", "A=3,B=3,C=3,D=3,E=3,F=0")
ROW_WIDTH     = int(os.getenv("TE_ROW_WIDTH", "5"))

# ======= Progress cadence =======
LOG_EVERY_N_TABLES = int(os.getenv("TE_LOG_EVERY_N_TABLES", "10000"))

# ======= Failure / edge-case policies =======
# "abort" stops the run on the first table that cannot be serialised,
# "skip" logs it and keeps searching.  Transport errors always abort.
ON_WRITE_ERROR = os.getenv("TE_ON_WRITE_ERROR", "abort").strip().lower()
# "one_table" writes [[]] for an all-zero multiset, "reject" refuses the run.
EMPTY_POLICY   = os.getenv("TE_EMPTY_POLICY", "one_table").strip().lower()

# ======= CP-SAT census (post-run cross-check) =======
VERIFY_COUNT        = int(os.getenv("TE_VERIFY_COUNT", "0")) != 0
CENSUS_MAX_SECONDS  = float(os.getenv("TE_CENSUS_MAX_SECONDS", "30"))
MAX_MEMORY_MB       = int(os.getenv("TE_MAX_MEMORY_MB", "2048"))

# ======= Output names =======
# Empty means "derive from the counts", e.g. 3-3-3-3-3-0.json
OUTPUT_FILE = os.getenv("TE_OUTPUT_FILE", "")


class CFG:
    SYMBOL_COUNTS = SYMBOL_COUNTS
    ROW_WIDTH     = ROW_WIDTH

    LOG_EVERY_N_TABLES = LOG_EVERY_N_TABLES

    ON_WRITE_ERROR = ON_WRITE_ERROR
    EMPTY_POLICY   = EMPTY_POLICY

    VERIFY_COUNT       = VERIFY_COUNT
    CENSUS_MAX_SECONDS = CENSUS_MAX_SECONDS
    MAX_MEMORY_MB      = MAX_MEMORY_MB

    OUTPUT_FILE = OUTPUT_FILE


__all__ = ["CFG"]
