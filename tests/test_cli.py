import json

import pytest

from tsp_lab import cli


def test_list(capsys):
    assert cli.main(["list"]) == 0
    out = capsys.readouterr().out
    assert "simulated_annealing" in out
    assert "EdgeRecombinationCrossover" in out


def test_solve_json(capsys):
    code = cli.main(["solve", "--algorithm", "two_opt", "--cities", "12", "--seed", "1", "--json"])
    assert code == 0
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["solver"] == "2-opt"
    assert sorted(payload["tour"]) == list(range(12))


def test_solve_with_progress(capsys):
    code = cli.main(
        ["solve", "--algorithm", "ant_colony", "--cities", "8", "--seed", "2", "--iterations", "3", "--progress"]
    )
    assert code == 0
    assert "iteration" in capsys.readouterr().out


def test_unknown_algorithm(capsys):
    assert cli.main(["solve", "--algorithm", "nope"]) == 2
    assert "nope" in capsys.readouterr().err


def test_benchmark(capsys):
    code = cli.main(
        [
            "benchmark",
            "--algorithms", "nearest_neighbor", "genetic",
            "--cities", "10",
            "--runs", "2",
            "--iterations", "5",
            "--seed", "3",
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Nearest Neighbor" in out and "Genetic Algorithm" in out


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])


def _write_instance(path, name, coords):
    lines = [f"NAME : {name}", "TYPE : TSP", f"DIMENSION : {len(coords)}", "EDGE_WEIGHT_TYPE : EUC_2D",
             "NODE_COORD_SECTION"]
    lines += [f"{i + 1} {x} {y}" for i, (x, y) in enumerate(coords)]
    lines.append("EOF")
    path.write_text("\n".join(lines) + "\n")


def test_benchmark_tsplib_directory(tmp_path, capsys):
    _write_instance(tmp_path / "box.tsp", "box", [(0, 0), (10, 0), (10, 10), (0, 10)])
    _write_instance(tmp_path / "big.tsp", "big", [(i, i * i % 7) for i in range(12)])
    code = cli.main(
        ["benchmark", "--tsplib-dir", str(tmp_path), "--max-nodes", "5", "--algorithms", "two_opt", "--runs", "1"]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "box" in out and "2-opt" in out
    assert "big " not in out


def test_benchmark_empty_directory(tmp_path, capsys):
    assert cli.main(["benchmark", "--tsplib-dir", str(tmp_path)]) == 2
    assert "no TSPLIB instances" in capsys.readouterr().err
