import json

import pytest

import io_files
from progress import snapshot
from solver.orchestrator import (
    EXIT_CENSUS_MISMATCH, EXIT_OK, EXIT_WRITE_FAILED, _coerce_counts, run_enumeration,
)


def _load(path):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def test_run_streams_all_tables(tmp_path):
    result = run_enumeration({"A": 1, "B": 1}, 2, "tables.json", log_every=1, base_dir=str(tmp_path))
    assert result.ok
    assert result.exit_code == EXIT_OK
    assert result.tables == 3
    assert result.alphabet_size == 3
    assert result.output_path == str(tmp_path / "tables.json")
    assert _load(result.output_path) == [
        [["A", None], ["B", None]],
        [["A", "B"]],
        [["B", None], ["A", None]],
    ]
    snap = snapshot()
    assert snap["done"] is True
    assert snap["ok"] is True
    assert snap["tables_found"] == 3
    assert snap["alphabet_size"] == 3


def test_default_output_name_derived_from_counts(tmp_path, monkeypatch):
    monkeypatch.setattr(io_files.CFG, "OUTPUT_FILE", "")
    result = run_enumeration({"A": 2, "B": 0}, 1, base_dir=str(tmp_path))
    assert result.output_path == str(tmp_path / "2-0.json")
    assert _load(result.output_path) == [[["A"], ["A"]]]


def test_runs_are_byte_identical(tmp_path):
    counts = {"A": 2, "B": 2, "C": 1}
    first = run_enumeration(counts, 3, "one.json", base_dir=str(tmp_path))
    second = run_enumeration(counts, 3, "two.json", base_dir=str(tmp_path))
    with open(first.output_path, "rb") as a, open(second.output_path, "rb") as b:
        assert a.read() == b.read()
    assert first.tables == second.tables > 0


def test_empty_multiset_writes_one_empty_table(tmp_path):
    result = run_enumeration({"A": 0, "B": 0}, 3, "empty.json", empty_policy="one_table", base_dir=str(tmp_path))
    assert result.ok
    assert result.tables == 1
    assert result.alphabet_size == 0
    assert _load(result.output_path) == [[]]


def test_zero_width_with_symbols_yields_no_tables(tmp_path):
    result = run_enumeration({"A": 1}, 0, "w0.json", base_dir=str(tmp_path))
    assert result.ok
    assert result.tables == 0
    assert _load(result.output_path) == []


def test_empty_multiset_can_be_rejected(tmp_path):
    with pytest.raises(ValueError):
        run_enumeration({"A": 0}, 2, "reject.json", empty_policy="reject", base_dir=str(tmp_path))
    assert not (tmp_path / "reject.json").exists()


@pytest.mark.parametrize("counts,width", [({"A": -1}, 1), ({"A": 1}, -1), ("A=x", 1)])
def test_bad_input_raises_before_output(tmp_path, counts, width):
    with pytest.raises(ValueError):
        run_enumeration(counts, width, "bad.json", base_dir=str(tmp_path))
    assert not (tmp_path / "bad.json").exists()


def test_coerce_counts_accepts_text_and_mappings():
    assert _coerce_counts("A=2,B=1") == {"A": 2, "B": 1}
    assert _coerce_counts({"A": "2", "qty_B": 1}) == {"A": 2, "B": 1}
    assert _coerce_counts({"A": 3}) == {"A": 3}


def _fail_on_long_tables(table):
    table = list(table)
    if len(table) > 1:
        raise TypeError("cannot encode")
    return [row.cells() for row in table]


def test_abort_policy_stops_run_and_closes_output(tmp_path, monkeypatch):
    monkeypatch.setattr(io_files, "table_cells", _fail_on_long_tables)
    result = run_enumeration({"A": 1, "B": 1}, 2, "abort.json", on_write_error="abort", base_dir=str(tmp_path))
    assert not result.ok
    assert result.exit_code == EXIT_WRITE_FAILED
    assert result.tables == 0
    # first table has two rows and fails; the array is still closed
    assert _load(result.output_path) == []
    assert snapshot()["ok"] is False


def test_unwritable_output_directory_fails_run(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    result = run_enumeration({"A": 1}, 1, str(blocker / "out.json"), base_dir=str(tmp_path))
    assert not result.ok
    assert result.exit_code == EXIT_WRITE_FAILED
    assert result.tables == 0
    assert blocker.read_text(encoding="utf-8") == "not a directory"
    snap = snapshot()
    assert snap["done"] is True
    assert snap["ok"] is False
    assert snap["status"] == "Error"


def test_skip_policy_continues_past_failures(tmp_path, monkeypatch):
    monkeypatch.setattr(io_files, "table_cells", _fail_on_long_tables)
    result = run_enumeration({"A": 1, "B": 1}, 2, "skip.json", on_write_error="skip", base_dir=str(tmp_path))
    assert result.ok
    assert result.tables == 1
    assert result.failed == 2
    assert "skipped" in result.reason
    assert _load(result.output_path) == [[["A", "B"]]]


def test_census_cross_check_agrees(tmp_path):
    pytest.importorskip("ortools")
    result = run_enumeration({"A": 2, "B": 1}, 2, "census.json", verify=True, base_dir=str(tmp_path))
    assert result.ok
    assert result.census is not None
    assert result.census.tables == result.tables == 7


def test_census_mismatch_fails_run(tmp_path, monkeypatch):
    pytest.importorskip("ortools")
    from solver import orchestrator
    from solver.census import CensusResult

    monkeypatch.setattr(orchestrator, "count_tables", lambda counts, alphabet: CensusResult(True, tables=99))
    result = run_enumeration({"A": 1}, 1, "mismatch.json", verify=True, base_dir=str(tmp_path))
    assert not result.ok
    assert result.exit_code == EXIT_CENSUS_MISMATCH
    assert "99" in result.reason


def test_summary_exposes_elapsed_string(tmp_path):
    result = run_enumeration({"A": 1}, 1, "s.json", base_dir=str(tmp_path))
    summary = result.summary()
    assert summary["tables"] == 1
    assert summary["ok"] is True
    assert summary["output_path"] == result.output_path
    assert summary["elapsed_str"].endswith("s")
