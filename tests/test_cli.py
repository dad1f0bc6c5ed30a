"""
Tests for the traceid-cluster command line.

Each test drives ``main()`` with explicit argv, stdin and stdout and parses
the JSON written to stdout.
"""

import argparse
import io
import json
import os

import pytest

from traceid_cluster.cli import main, parse_weights, read_items


E2E_ITEMS = "req:a:x-111#v1\nreq:a:y-222#v1\nreq:b:z-333#v2\n"


@pytest.fixture(autouse=True)
def clean_environment(tmp_path, monkeypatch):
    """Keep the caller's TRACEID_* variables and .env out of the tests."""
    for key in list(os.environ):
        if key.startswith("TRACEID_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr("traceid_cluster.config.ENV_PATH", tmp_path / "absent.env")


def _run(argv, stdin_text=""):
    stdout = io.StringIO()
    code = main(argv, stdin=io.StringIO(stdin_text), stdout=stdout)
    payload = json.loads(stdout.getvalue()) if code == 0 else None
    return code, payload


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def test_read_items_skips_blank_lines():
    stream = io.StringIO("a\n\n  b  \n\na\n")
    assert read_items(stream) == ["a", "b", "a"]


def test_read_items_unique_keeps_first_occurrence():
    stream = io.StringIO("b\na\nb\nc\na\n")
    assert read_items(stream, unique=True) == ["b", "a", "c"]


def test_parse_weights():
    assert parse_weights("level=0.2, scope=0.8") == {"level": 0.2, "scope": 0.8}
    assert parse_weights("semantic=1,") == {"semantic": 1.0}


@pytest.mark.parametrize("text", ["level", "level=high"])
def test_parse_weights_rejects_malformed(text):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_weights(text)


# ------------------------------------------------------------------
# cluster
# ------------------------------------------------------------------


def test_cluster_from_stdin():
    code, payload = _run(["cluster", "--threshold", "0.5"], E2E_ITEMS)

    assert code == 0
    assert payload["algorithm"] == "hierarchical"
    assert payload["distance_calculator"] == "structural"
    assert payload["n_clusters"] == 2
    assert sorted(c["size"] for c in payload["clusters"]) == [1, 2]
    assert "layout" not in payload


def test_cluster_from_file_with_unique(tmp_path):
    path = tmp_path / "ids.txt"
    path.write_text("req:a:x-111#v1\n\nreq:a:x-111#v1\nreq:a:y-222#v1\n")

    code, payload = _run(["cluster", str(path), "--unique", "--threshold", "0.5"])

    assert code == 0
    assert payload["n_items"] == 2
    assert payload["n_clusters"] == 1


def test_cluster_with_layout_and_graph():
    code, payload = _run(
        [
            "cluster",
            "--threshold", "0.5",
            "--layout",
            "--dimensions", "2",
            "--graph-threshold", "0.5",
        ],
        E2E_ITEMS,
    )

    assert code == 0
    assert [len(row) for row in payload["layout"]["coordinates"]] == [2, 2, 2]
    assert len(payload["graph"]["nodes"]) == 3
    assert len(payload["graph"]["links"]) == 1
    assert payload["graph"]["nodes"][0]["fz"] == 0.0


def test_cluster_with_structural_weights():
    code, payload = _run(
        ["cluster", "--weights", "scope=1", "--threshold", "0.5"], E2E_ITEMS
    )
    assert code == 0
    assert sorted(c["size"] for c in payload["clusters"]) == [1, 2]


def test_cluster_with_dbscan():
    code, payload = _run(
        ["cluster", "--algorithm", "dbscan", "--epsilon", "0.5", "--min-points", "2"],
        E2E_ITEMS,
    )
    assert code == 0
    assert payload["algorithm"] == "dbscan"
    # the density cluster first, then the noise pool
    assert [c["size"] for c in payload["clusters"]] == [2, 1]


def test_cluster_reports_near_duplicates():
    code, payload = _run(
        ["cluster", "--threshold", "0.5", "--near-duplicate-threshold", "0.5"],
        E2E_ITEMS,
    )

    assert code == 0
    near = payload["near_duplicates"]
    assert near["threshold"] == 0.5
    assert [(p["first"], p["second"]) for p in near["pairs"]] == [
        ("req:a:x-111#v1", "req:a:y-222#v1")
    ]
    assert near["pairs"][0]["pattern"] == "same-scope-same-level"


def test_cluster_defaults_come_from_environment(monkeypatch):
    monkeypatch.setenv("TRACEID_THRESHOLD", "0.8")
    code, payload = _run(["cluster"], E2E_ITEMS)
    assert code == 0
    assert payload["n_clusters"] == 1


# ------------------------------------------------------------------
# search / layout / sweep
# ------------------------------------------------------------------


def test_search_ranks_by_distance():
    code, payload = _run(
        ["search", "abc", "--distance", "levenshtein", "--top", "2"], "abd\nxyz\nabc\n"
    )

    assert code == 0
    assert payload["query"] == "abc"
    assert [m["item"] for m in payload["items"]] == ["abc", "abd"]


def test_search_query_before_input_file(tmp_path):
    path = tmp_path / "ids.txt"
    path.write_text("abd\nxyz\n")

    code, payload = _run(["search", "xyz", str(path), "--distance", "levenshtein"])

    assert code == 0
    assert payload["items"][0]["item"] == "xyz"


def test_search_keyword_component():
    code, payload = _run(
        ["search", "B", "--keyword", "--component", "scope"], E2E_ITEMS
    )
    assert code == 0
    assert payload == {
        "query": "B",
        "component": "scope",
        "items": ["req:b:z-333#v2"],
    }


def test_layout():
    code, payload = _run(["layout", "--dimensions", "2"], E2E_ITEMS)

    assert code == 0
    assert payload["items"] == E2E_ITEMS.split()
    assert len(payload["coordinates"]) == 3
    assert len(payload["eigenvalues"]) == 2


def test_sweep():
    code, payload = _run(["sweep", "--values", "0.3", "0.5"], E2E_ITEMS)

    assert code == 0
    assert payload["parameter"] == "threshold"
    assert payload["by_value"]["0.3"]["n_clusters"] == 3
    assert payload["by_value"]["0.5"]["n_clusters"] == 2
    assert payload["best_value"] == 0.5


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------


def test_invalid_parameter_exits_with_status_2(capsys):
    code, _ = _run(["cluster", "--algorithm", "dbscan", "--epsilon", "0"], E2E_ITEMS)
    assert code == 2
    assert "epsilon" in capsys.readouterr().err


def test_missing_input_file_exits_with_status_2(tmp_path, capsys):
    code, _ = _run(["cluster", str(tmp_path / "nope.txt")])
    assert code == 2
    assert "error" in capsys.readouterr().err


def test_invalid_environment_exits_with_status_2(monkeypatch, capsys):
    monkeypatch.setenv("TRACEID_K", "many")
    code, _ = _run(["cluster"], E2E_ITEMS)
    assert code == 2
    assert "TRACEID_K" in capsys.readouterr().err


def test_invalid_log_level_exits_with_status_2(capsys):
    code, _ = _run(["cluster", "--log-level", "CHATTY"], E2E_ITEMS)
    assert code == 2
    assert "Unknown log level" in capsys.readouterr().err


def test_malformed_weights_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        _run(["cluster", "--weights", "level"], E2E_ITEMS)
    assert exc.value.code == 2


def test_unknown_distance_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        _run(["cluster", "--distance", "hamming"], E2E_ITEMS)
    assert exc.value.code == 2


@pytest.mark.parametrize(
    "argv",
    [
        ["search", "abc", "--distance", "levenshtein"],
        ["search", "b", "--keyword"],
        ["layout", "--dimensions", "2"],
    ],
)
def test_clustering_parameters_do_not_affect_other_commands(monkeypatch, argv):
    monkeypatch.setenv("TRACEID_ALGORITHM", "dbscan")
    monkeypatch.setenv("TRACEID_EPSILON", "0")
    monkeypatch.setenv("TRACEID_MIN_POINTS", "0")

    code, payload = _run(argv, E2E_ITEMS)

    assert code == 0
    assert payload is not None


def test_cluster_still_rejects_bad_environment_parameters(monkeypatch, capsys):
    monkeypatch.setenv("TRACEID_ALGORITHM", "dbscan")
    monkeypatch.setenv("TRACEID_EPSILON", "0")
    code, _ = _run(["cluster"], E2E_ITEMS)
    assert code == 2
    assert "epsilon" in capsys.readouterr().err
