import gzip
import json

import pytest
from click.testing import CliRunner

from pgtools.cli import cli


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()

    def _run(*args: str):
        return runner.invoke(cli, ["--config-dir", str(tmp_path), *args])

    return _run


@pytest.fixture
def indexed(run, scenario_gfa):
    result = run("index", "-i", str(scenario_gfa))
    assert result.exit_code == 0, result.output
    return scenario_gfa


def test_index_writes_default_path(run, scenario_gfa):
    result = run("index", "-i", str(scenario_gfa))
    assert result.exit_code == 0, result.output
    assert scenario_gfa.with_name("graph.gfa.pgi").exists()
    assert "Segment index: 2 entries" in result.output


def test_index_missing_input(run, tmp_path):
    result = run("index", "-i", str(tmp_path / "nope.gfa"))
    assert result.exit_code != 0
    assert "Cannot read" in result.output


def test_index_bad_type(run, scenario_gfa):
    result = run("index", "-i", str(scenario_gfa), "-t", "everything")
    assert result.exit_code == 2


def test_index_undefined_segment_fails_then_warns(run, write_gfa):
    gfa = write_gfa("S\ta\tACGT\nP\tp\ta+,ghost+\t*\n")
    result = run("index", "-i", str(gfa))
    assert result.exit_code == 1
    assert "ghost" in result.output
    result = run("index", "-i", str(gfa), "--undefined", "warn")
    assert result.exit_code == 0, result.output
    assert "ghost" in result.output


def test_query_position(run, indexed):
    result = run("query", "-i", str(indexed), "position", "-p", "P1", "--pos", "100")
    assert result.exit_code == 0, result.output
    assert "Segment: S2+" in result.output
    assert "Offset in segment: 0" in result.output


def test_query_position_miss(run, indexed):
    result = run("query", "-i", str(indexed), "position", "-p", "P1", "--pos", "150")
    assert result.exit_code == 0
    assert "Position 150 not found in path 'P1'" in result.output


def test_query_segment_and_path(run, indexed):
    result = run("query", "-i", str(indexed), "segment", "-n", "S2")
    assert "Sequence length: 50 bp" in result.output
    result = run("query", "-i", str(indexed), "segment", "-n", "S9")
    assert "Segment 'S9' not found in index" in result.output
    result = run("query", "-i", str(indexed), "path", "-n", "P1")
    assert "Total length: 150 bp" in result.output
    assert "S1+,S2+" in result.output


def test_query_range_and_lists(run, indexed):
    result = run("query", "-i", str(indexed), "range", "-p", "P1", "--start", "90", "--end", "110")
    assert "(2)" in result.output
    result = run("query", "-i", str(indexed), "list-segments")
    assert "Indexed segments (2)" in result.output
    result = run("query", "-i", str(indexed), "list-paths")
    assert "Indexed paths (1)" in result.output


def test_query_without_index(run, scenario_gfa):
    result = run("query", "-i", str(scenario_gfa), "list-segments")
    assert result.exit_code == 1


def test_query_missing_sub_index(run, scenario_gfa):
    run("index", "-i", str(scenario_gfa), "-t", "segment")
    result = run("query", "-i", str(scenario_gfa), "position", "-p", "P1", "--pos", "1")
    assert result.exit_code == 1
    assert "position index not built" in result.output


def test_query_reports_stale(run, indexed):
    with indexed.open("a") as f:
        f.write("S\tS3\tAC\n")
    result = run("query", "-i", str(indexed), "segment", "-n", "S1")
    assert result.exit_code == 0
    assert "changed since the index was built" in result.output


def test_index_info(run, indexed):
    idx = indexed.with_name("graph.gfa.pgi")
    result = run("index-info", "-x", str(idx), "-i", str(indexed))
    assert result.exit_code == 0, result.output
    assert "Source: up to date" in result.output


def test_validate_exit_codes(run, simple_gfa, write_gfa):
    assert run("validate", "-i", str(simple_gfa)).exit_code == 0
    bad = write_gfa("S\ta\tA\nL\ta\t+\tb\t+\t0M\n", name="bad.gfa")
    result = run("validate", "-i", str(bad))
    assert result.exit_code == 1
    assert "undefined segment: b" in result.output


def test_stats_json_to_file(run, simple_gfa, tmp_path):
    out = tmp_path / "stats.json"
    result = run("stats", "-i", str(simple_gfa), "-f", "json", "-o", str(out))
    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text())["segment_count"] == 3


def test_init(run, tmp_path):
    result = run("init", "--dir", str(tmp_path))
    assert "Created" in result.output
    assert (tmp_path / "pgtools.toml").exists()
    result = run("init", "--dir", str(tmp_path))
    assert "already exists" in result.output


@pytest.fixture
def gz_gfa(tmp_path):
    path = tmp_path / "g.gfa.gz"
    with gzip.open(path, "wt") as f:
        f.write("S\ts1\tACGTN\nS\ts2\tGG\nL\ts1\t+\ts2\t+\t0M\n")
    return path


def test_stats_on_gzip(run, gz_gfa):
    result = run("stats", "-i", str(gz_gfa), "-f", "json")
    assert result.exit_code == 0, result.output
    assert '"n_bases": 1' in result.output
    assert '"segment_count": 2' in result.output


def test_validate_on_gzip(run, gz_gfa):
    result = run("validate", "-i", str(gz_gfa))
    assert result.exit_code == 0, result.output
    assert "Validation passed" in result.output


def test_index_rejects_gzip(run, gz_gfa):
    result = run("index", "-i", str(gz_gfa))
    assert result.exit_code == 1
    assert "compressed input cannot be indexed" in result.output


def test_stats_output_write_failure(run, simple_gfa, tmp_path):
    result = run("stats", "-i", str(simple_gfa), "-o", str(tmp_path / "missing" / "out.txt"))
    assert result.exit_code == 1
    assert "I/O error on" in result.output
