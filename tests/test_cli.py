"""
CLI Tests
"""

import json

from breakdown.cli import main, EXIT_INPUT_SHAPE

from .fixtures import document


def write_document(tmp_path, payload):
    path = tmp_path / "input.json"
    path.write_text(json.dumps(payload))
    return str(path)


def test_writes_records_to_output_file(tmp_path):
    source = write_document(tmp_path, document())
    target = tmp_path / "out.json"

    assert main([source, "--output", str(target), "--summary", "--workers", "1"]) == 0

    payload = json.loads(target.read_text())
    assert payload["failed_contexts"] == []
    assert len(payload["records"]) == 9
    assert {s["cause"] for s in payload["summary"]} == {"Running", "A", "B", "io", "irq", "C"}


def test_prints_to_stdout_without_summary(tmp_path, capsys):
    source = write_document(tmp_path, document())

    assert main([source]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert "summary" not in payload
    assert payload["records"][0]["cause"] == "Running"


def test_no_fill_gaps_flag(tmp_path, capsys):
    source = write_document(tmp_path, {
        "root_spans": [{"id": 1, "context": "T1", "ts": 0, "dur": 100}],
        "states": [{"id": 2, "context": "T1", "ts": 0, "dur": 40, "state": "R"}],
    })

    assert main([source, "--no-fill-gaps"]) == 0

    records = json.loads(capsys.readouterr().out)["records"]
    assert [(r["start"], r["duration"]) for r in records] == [(0, 40)]


def test_shape_error_exits_with_status_two(tmp_path, capsys):
    source = write_document(tmp_path, {
        "root_spans": [{"id": 1, "context": "T1", "ts": 0}],
    })

    assert main([source]) == EXIT_INPUT_SHAPE
    assert "duration" in capsys.readouterr().err


def test_malformed_json_exits_with_status_two(tmp_path, capsys):
    path = tmp_path / "input.json"
    path.write_text("{not json")

    assert main([str(path)]) == EXIT_INPUT_SHAPE
    assert "not valid JSON" in capsys.readouterr().err
