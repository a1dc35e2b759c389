import json

import pytest

from neuroflow.cli import main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NEUROFLOW_STEP_LATENCY", raising=False)
    monkeypatch.delenv("NEUROFLOW_DIMENSIONALITY", raising=False)


def test_cli_writes_trace_for_each_time_step(tmp_path, capsys):
    output = tmp_path / "trace.json"
    exit_code = main(
        [
            "--architecture", "LSTM",
            "--dimensionality", "1",
            "--input", "2",
            "--hidden", "0",
            "--cell", "0",
            "--steps", "2",
            "--output-path", str(output),
        ]
    )

    assert exit_code == 0
    artifact = json.loads(output.read_text(encoding="utf-8"))
    first, second = artifact["steps"]
    assert first["result"]["final_hidden"] == pytest.approx([0.609], abs=1e-3)
    assert second["params"]["hidden_prev"] == first["result"]["final_hidden"]
    assert second["params"]["cell_prev"] == first["result"]["final_cell"]
    assert [item["node"] for item in first["reveals"]][-1] == "hidden"
    assert len(first["reveals"]) == len(artifact["graph"]["nodes"])
    assert "t=0" in capsys.readouterr().out


def test_cli_tolerates_malformed_numbers(tmp_path):
    output = tmp_path / "trace.json"
    main(["--input", "1,oops", "--bias1", "x", "--output-path", str(output)])
    artifact = json.loads(output.read_text(encoding="utf-8"))
    step = artifact["steps"][0]
    assert step["params"]["input_x"] == [1.0, 0.0]
    assert step["params"]["bias1"] == 0.0
