"""Helpers for writing enumerated tables to disk."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, IO, Iterable, Optional

from config import CFG
from models import Row, table_cells
from progress import log_event, log_error, set_tables_found


class TableWriteError(RuntimeError):
    """Raised when a table cannot be written and the run must stop."""


def _resolve_output_path(base_dir: str, configured_name: str, fallback: str) -> str:
    """Return the absolute path where an output artifact should be written."""

    name = (configured_name or "").strip() or fallback
    if os.path.isabs(name):
        return name
    return os.path.join(base_dir, name)


def default_output_name(counts: Dict[str, int]) -> str:
    """``{A:3, B:3, C:0}`` -> ``3-3-0.json``."""

    if not counts:
        return "empty.json"
    return "-".join(str(int(n)) for n in counts.values()) + ".json"


def resolve_tables_path(counts: Dict[str, int], base_dir: str, configured: Optional[str] = None) -> str:
    name = CFG.OUTPUT_FILE if configured is None else configured
    return _resolve_output_path(base_dir, name, default_output_name(counts))


@dataclass
class EmissionCounter:
    """Run-scoped tally handed to the sink by whoever owns the run."""

    every: int = 10000
    started: float = field(default_factory=time.time)
    emitted: int = 0
    failed: int = 0

    @property
    def elapsed(self) -> float:
        return max(0.0, time.time() - self.started)

    def record(self) -> None:
        self.emitted += 1
        if self.every > 0 and self.emitted % self.every == 0:
            log_event(
                "Tables found",
                tables=self.emitted,
                elapsed=f"{self.elapsed:.2f}s",
            )
            set_tables_found(self.emitted, self.failed)


def _encode_table(table: Iterable[Row]) -> str:
    return json.dumps(table_cells(table), ensure_ascii=False, separators=(",", ":"))


class TableSink:
    """
    Streams tables into one JSON array: ``[`` on open, one element per
    ``append`` (comma separated), ``]`` on close.  Only the table being
    written is held in memory.

    ``on_error`` decides what a table that fails to *encode* does:
    ``"abort"`` raises :class:`TableWriteError`, ``"skip"`` logs it and
    leaves it out.  Failures writing to the destination always raise.
    """

    def __init__(
        self,
        path: str,
        counter: Optional[EmissionCounter] = None,
        *,
        on_error: Optional[str] = None,
        encoder: Callable[[Iterable[Row]], str] = _encode_table,
    ):
        self.path = path
        self.counter = counter if counter is not None else EmissionCounter(every=CFG.LOG_EVERY_N_TABLES)
        policy = (on_error if on_error is not None else CFG.ON_WRITE_ERROR) or "abort"
        if policy not in ("abort", "skip"):
            raise ValueError(f"unknown write-error policy: {policy!r}")
        self.on_error = policy
        self._encoder = encoder
        self._fh: Optional[IO[str]] = None
        self._first = True
        self.closed = False

    def open(self) -> "TableSink":
        if self._fh is not None:
            raise RuntimeError("sink already open")
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._fh = open(self.path, "w", encoding="utf-8")
            self._fh.write("[")
        except OSError as e:
            self._fh = None
            raise TableWriteError(f"cannot open {self.path}: {e}") from e
        self._first = True
        self.closed = False
        return self

    def append(self, table: Iterable[Row]) -> bool:
        """Write one table; returns ``False`` when it was skipped."""

        if self._fh is None:
            raise RuntimeError("sink is not open")
        try:
            encoded = self._encoder(table)
        except (TypeError, ValueError) as e:
            self.counter.failed += 1
            log_error("Table encode failed", index=self.counter.emitted + self.counter.failed, error=e)
            if self.on_error == "abort":
                raise TableWriteError(f"cannot encode table: {e}") from e
            return False
        try:
            if not self._first:
                self._fh.write(",")
            self._fh.write(encoded)
        except OSError as e:
            self.counter.failed += 1
            log_error("Table write failed", path=self.path, error=e)
            raise TableWriteError(f"cannot write to {self.path}: {e}") from e
        self._first = False
        self.counter.record()
        return True

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.write("]")
            fh.flush()
        except OSError as e:
            log_error("Closing output failed", path=self.path, error=e)
            raise TableWriteError(f"cannot finalize {self.path}: {e}") from e
        finally:
            fh.close()
            self.closed = True

    def __enter__(self) -> "TableSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        # keep the original error; a failing close only gets logged here
        try:
            self.close()
        except TableWriteError:
            pass


__all__ = [
    "EmissionCounter",
    "TableSink",
    "TableWriteError",
    "default_output_name",
    "resolve_tables_path",
]
