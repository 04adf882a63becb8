import json

import pytest

import lcms_track
from lcms_tracker.injection_log import InjectionLog

GRADIENT = [
    {"time": 0, "percent_a": 95, "percent_b": 5, "flow_rate": 0.3},
    {"time": 10, "percent_a": 5, "percent_b": 95, "flow_rate": 0.3},
]


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    data = tmp_path / "lcms_data"
    data.mkdir()
    (data / "methods.json").write_text(
        json.dumps([{"id": "m1", "name": "HILIC polar", "gradient_steps": GRADIENT}])
    )
    return tmp_path


def run_cli(*args):
    return lcms_track.main(list(args))


def last_json_line(output):
    lines = [line for line in output.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


def test_solvent_for_method(workspace, capsys):
    assert run_cli("solvent", "--method_id", "m1", "--batch_size", "4") == 0

    usage = last_json_line(capsys.readouterr().out)
    assert usage == {"solvent_a_ml": 6.0, "solvent_b_ml": 6.0, "total_volume_ml": 12.0}


def test_solvent_from_gradient_file_with_plot(workspace, capsys):
    gradient_file = workspace / "gradient.json"
    gradient_file.write_text(json.dumps(GRADIENT))

    code = run_cli(
        "solvent", "--gradient_file", str(gradient_file), "--batch_size", "1", "--plot", "g.png"
    )

    assert code == 0
    assert last_json_line(capsys.readouterr().out)["total_volume_ml"] == 3.0
    assert (workspace / "g.png").exists()


def test_solvent_without_gradient_data(workspace, capsys):
    gradient_file = workspace / "gradient.json"
    gradient_file.write_text("[]")

    assert run_cli("solvent", "--gradient_file", str(gradient_file), "--batch_size", "3") == 0
    assert "No gradient data available" in capsys.readouterr().out


def test_solvent_unknown_method(workspace, capsys):
    assert run_cli("solvent", "--method_id", "nope", "--batch_size", "3") == 1
    assert "Unknown method" in capsys.readouterr().err


def test_add_batch_list_and_delete(workspace, capsys):
    args = ["add-batch", "--method_id", "m1", "--column_id", "c1", "--batch_size", "3"]
    assert run_cli(*args, "--injection_date", "2024-04-01T09:00:00") == 0

    log = InjectionLog("lcms_data/injections.csv")
    records = log.load()
    assert [r.method_name for r in records] == ["HILIC polar"] * 3

    assert run_cli("delete", "--injection_id", records[0].id) == 0
    assert [r.batch_size for r in log.load()] == [2, 2]

    capsys.readouterr()
    assert run_cli("batches") == 0
    out = capsys.readouterr().out
    assert "#2-3" in out
    assert "Success" in out


def test_delete_unknown_injection(workspace, capsys):
    assert run_cli("delete", "--injection_id", "missing") == 1
    assert "missing" in capsys.readouterr().err


def test_guard_status(workspace, capsys):
    run_cli("add-batch", "--method_id", "m1", "--column_id", "c1", "--batch_size", "5")
    guard_file = workspace / "guards.json"
    guard_file.write_text(
        json.dumps(
            [
                {
                    "id": "g1",
                    "column_id": "c1",
                    "installed_date": "2024-01-01",
                    "installation_injection_count": 0,
                    "part_number": "High Capacity Guard",
                },
                {"id": "g9", "column_id": "c2", "installed_date": "2024-01-01"},
            ]
        )
    )
    capsys.readouterr()

    assert run_cli("guard-status", "--column_id", "c1", "--guard_file", str(guard_file)) == 0
    out = capsys.readouterr().out
    assert "Guard column status: Good" in out
    assert "Injections remaining: 1495 (lifetime 1500)" in out


def test_export(workspace, capsys):
    run_cli("add-batch", "--method_id", "m1", "--column_id", "c1", "--batch_size", "2")

    assert run_cli("export", "--output", "out/batches.csv") == 0
    report = (workspace / "out" / "batches.csv").read_text().splitlines()
    assert len(report) == 2
    assert "3.0" in report[1] or "3.00" in report[1]
