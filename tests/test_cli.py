import json

from cli import build_parser, main
from solver.orchestrator import EXIT_BAD_INPUT, EXIT_OK, EXIT_WRITE_FAILED


def test_cli_writes_tables(tmp_path):
    out = tmp_path / "cli.json"
    code = main(["--counts", "A=1,B=1", "--width", "2", "--out", str(out), "--quiet"])
    assert code == EXIT_OK
    assert json.loads(out.read_text(encoding="utf-8")) == [
        [["A", None], ["B", None]],
        [["A", "B"]],
        [["B", None], ["A", None]],
    ]


def test_cli_bad_counts_exit_code(tmp_path):
    assert main(["--counts", "A=?", "--out", str(tmp_path / "x.json"), "--quiet"]) == EXIT_BAD_INPUT


def test_cli_empty_policy_reject(tmp_path):
    code = main(["--counts", "A=0", "--empty-policy", "reject", "--out", str(tmp_path / "z.json"), "--quiet"])
    assert code == EXIT_BAD_INPUT


def test_parser_defaults_follow_config():
    args = build_parser().parse_args([])
    assert args.width >= 0
    assert args.on_write_error in ("abort", "skip")
    assert args.out is None


def test_verify_flag_can_be_switched_off():
    ap = build_parser()
    assert ap.parse_args(["--verify"]).verify is True
    assert ap.parse_args(["--no-verify"]).verify is False


def test_cli_unwritable_output_reports_write_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    code = main(["--counts", "A=1", "--width", "1", "--out", str(blocker / "t.json"), "--quiet"])
    assert code == EXIT_WRITE_FAILED


def test_config_exposes_census_memory_cap_only():
    from config import CFG

    assert CFG.MAX_MEMORY_MB > 0
    assert not hasattr(CFG, "WORKERS")
