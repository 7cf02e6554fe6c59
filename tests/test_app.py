import json

import pytest

flask = pytest.importorskip("flask")

import app as app_module


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "BASE_DIR", str(tmp_path))
    monkeypatch.setattr(app_module.CFG, "OUTPUT_FILE", "")
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


def test_solve_json_payload_streams_tables(client, tmp_path):
    resp = client.post("/solve", json={"counts": {"A": 1, "B": 1}, "width": 2})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["tables"] == 3
    out = tmp_path / "1-1.json"
    assert body["output_path"] == str(out)
    assert len(json.loads(out.read_text(encoding="utf-8"))) == 3


def test_solve_form_payload_with_counts_text(client, tmp_path):
    resp = client.post("/solve", data={"counts": "A=2", "width": "1"})
    assert resp.status_code == 200
    assert resp.get_json()["tables"] == 1
    assert (tmp_path / "2.json").exists()


def test_solve_ignores_client_output_path(client, tmp_path):
    victim = tmp_path / "elsewhere" / "victim.txt"
    victim.parent.mkdir()
    victim.write_text("important", encoding="utf-8")
    resp = client.post("/solve", json={"counts": {"A": 1}, "width": 1, "out": str(victim)})
    assert resp.status_code == 200
    assert victim.read_text(encoding="utf-8") == "important"
    assert resp.get_json()["output_path"] == str(tmp_path / "1.json")


def test_solve_ignores_output_path_next_to_top_level_counts(client, tmp_path):
    resp = client.post("/solve", json={"A": 1, "width": 1, "out": "/etc/passwd"})
    assert resp.status_code == 200
    assert resp.get_json()["output_path"] == str(tmp_path / "1.json")


def test_solve_rejects_bad_counts(client):
    resp = client.post("/solve", json={"counts": "A=oops"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["reason"].startswith("Bad counts")


def test_solve_rejects_bad_width(client):
    resp = client.post("/solve", json={"counts": "A=1", "width": "wide"})
    assert resp.status_code == 400


def test_progress_is_not_cached(client):
    client.post("/solve", json={"counts": "A=1", "width": 1})
    resp = client.get("/progress")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store, max-age=0"
    snap = resp.get_json()
    assert snap["done"] is True
    assert snap["tables_found"] == 1


def test_download_serves_last_output(client):
    client.post("/solve", json={"counts": "A=1", "width": 1})
    resp = client.get("/download/tables")
    assert resp.status_code == 200
    assert json.loads(resp.data) == [[["A"]]]
    resp.close()


def test_index_reports_configuration(client):
    body = client.get("/").get_json()
    assert "counts" in body
    assert "width" in body
