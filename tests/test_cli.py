import json

import pytest

from navspace.__main__ import main

CORRIDOR = {
    "kind": "mesh",
    "vertices": [[0, 0, 0], [1, 0, 0], [2, 0, 0], [0, 1, 0], [1, 1, 0], [2, 1, 0]],
    "triangles": [[0, 1, 3], [1, 4, 3], [1, 2, 4], [2, 5, 4]],
}


@pytest.fixture
def write_geometry(tmp_path):
    def write(payload, name="geometry.json"):
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    return write


def test_json_report_written_to_file(write_geometry, tmp_path):
    geometry = write_geometry(CORRIDOR)
    out = tmp_path / "out" / "result.json"

    code = main(["--geometry", geometry, "--start", "0.2,0.5", "--goal", "1.8,0.5,0", "--json", "--out", str(out)])

    assert code == 0
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["reason"] == "ok"
    assert report["nodes"] == [0, 1, 2, 3]
    assert report["length"] == pytest.approx(1.6)
    assert len(report["waypoints"]) == 2


def test_human_report(write_geometry, capsys):
    geometry = write_geometry(CORRIDOR)

    code = main(["--geometry", geometry, "--start", "0.2,0.5", "--goal", "1.8,0.5", "--mode", "midpoints"])

    assert code == 0
    out = capsys.readouterr().out
    assert "reason: ok" in out
    assert "waypoints:" in out


def test_unreachable_is_reported(write_geometry, capsys):
    geometry = write_geometry({"kind": "grid", "mask": [[1, 0, 1]]})

    code = main(["--geometry", geometry, "--start", "0.5,0.5", "--goal", "2.5,0.5", "--json"])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["reason"] == "unreachable"
    assert report["cost"] is None


def test_budget_reason_is_reported(write_geometry, capsys):
    geometry = write_geometry({"kind": "grid", "cells": [[x, 0] for x in range(6)]})

    code = main(["--geometry", geometry, "--start", "0.5,0.5", "--goal", "5.5,0.5", "--json", "--max-expansions", "1"])

    assert code == 0
    assert json.loads(capsys.readouterr().out)["reason"] == "max-expansions"


@pytest.mark.parametrize(
    "payload",
    [
        {"kind": "hexgrid"},
        {"kind": "mesh", "vertices": [[0, 0, 0]]},
        {"kind": "grid", "cells": [[1]]},
        {"kind": "mesh", "vertices": [[0, 0, 0], [1, 0, 0], [2, 0, 0]], "triangles": [[0, 1, 2]]},
    ],
)
def test_bad_geometry_exits_with_2(write_geometry, payload, capsys):
    geometry = write_geometry(payload)

    code = main(["--geometry", geometry, "--start", "0,0", "--goal", "1,0"])

    assert code == 2
    assert "Error:" in capsys.readouterr().err


def test_missing_file_exits_with_2(tmp_path):
    assert main(["--geometry", str(tmp_path / "missing.json"), "--start", "0,0", "--goal", "1,0"]) == 2


def test_bad_point_is_a_usage_error(write_geometry):
    with pytest.raises(SystemExit) as info:
        main(["--geometry", write_geometry(CORRIDOR), "--start", "0", "--goal", "1,0"])
    assert info.value.code == 2
