import errno
import gzip
import logging
import threading

import pytest

from pgtools.builder import build_index
from pgtools.errors import CompressedInputError, IndexMismatchError, IndexNotBuiltError, PgToolsIOError
from pgtools.graph import GfaGraph
from pgtools.models import IndexType, Orientation, Segment, Walk
from pgtools.query import IndexedReader
from pgtools.serialize import load_index, save_index


@pytest.fixture
def reader(scenario_gfa, tmp_path):
    idx_path = save_index(build_index(scenario_gfa), tmp_path / "graph.gfa.pgi")
    with IndexedReader.open(scenario_gfa, idx_path) as r:
        yield r


def test_scenario_position_queries(reader):
    assert reader.query_position("P1", 100).segment_name == "S2"
    assert reader.query_position("P1", 99).segment_name == "S1"
    assert reader.query_position("P1", 0).segment_name == "S1"
    assert reader.query_position("P1", 149).segment_name == "S2"
    assert reader.query_position("P1", 150) is None
    assert reader.query_position("P1", -1) is None
    assert reader.query_position("nope", 5) is None


def test_every_coordinate_hits_exactly_one_entry(write_gfa, tmp_path):
    gfa = write_gfa(
        "S\ta\tACG\nS\tb\t*\tLN:i:0\nS\tc\tTTTTT\nS\td\tG\n"
        "P\tp\ta+,b+,c-,d+,a-\t*\n"
    )
    idx = build_index(gfa, IndexType.POSITION)
    entries = idx.positions["p"]
    total = entries[-1].end
    with IndexedReader(idx, gfa) as r:
        for c in range(total):
            hit = r.query_position("p", c)
            covering = [e for e in entries if e.start <= c < e.end]
            assert covering == [hit]
        assert r.query_position("p", total) is None


def test_get_segment_matches_parsed_record(scenario_gfa, reader):
    graph = GfaGraph.from_file(scenario_gfa)
    for name in reader.list_segments():
        assert reader.get_segment(name) == graph.segment(name)


def test_get_segment_fields(reader):
    seg = reader.get_segment("S2")
    assert isinstance(seg, Segment)
    assert seg.sequence is None
    assert seg.sequence_length == 50
    assert reader.get_sequence("S1") == "A" * 100
    assert reader.get_segment("missing") is None
    assert reader.get_sequence("missing") is None


def test_get_path(scenario_gfa, reader):
    p = reader.get_path("P1")
    assert [str(s) for s in p.steps] == ["S1+", "S2+"]
    assert p == GfaGraph.from_file(scenario_gfa).path("P1")
    assert reader.get_path("missing") is None


def test_get_walk(write_gfa):
    gfa = write_gfa("S\ts1\tAAAA\nW\tHG1\t1\tchr1\t0\t8\t>s1<s1\n")
    with IndexedReader(build_index(gfa), gfa) as r:
        walk = r.get_path("HG1#1#chr1")
        assert isinstance(walk, Walk)
        assert walk.steps[1].orientation is Orientation.REVERSE
        assert r.query_position("HG1#1#chr1", 5).step_index == 1


def test_metadata_lookups(reader):
    assert reader.segment_info("S1").sequence_length == 100
    assert reader.path_info("P1").total_length == 150
    assert reader.path_info("nope") is None


def test_list_in_file_order(reader):
    assert list(reader.list_segments()) == ["S1", "S2"]
    assert list(reader.list_paths()) == ["P1"]


def test_query_range(reader):
    assert [e.segment_name for e in reader.query_range("P1", 0, 150)] == ["S1", "S2"]
    assert [e.segment_name for e in reader.query_range("P1", 99, 101)] == ["S1", "S2"]
    assert [e.segment_name for e in reader.query_range("P1", 100, 120)] == ["S2"]
    assert [e.segment_name for e in reader.query_range("P1", -50, 100)] == ["S1"]
    assert reader.query_range("P1", 150, 200) == []
    assert reader.query_range("P1", 10, 10) == []
    assert reader.query_range("nope", 0, 10) == []


def test_missing_sub_index_raises(scenario_gfa):
    idx = build_index(scenario_gfa, IndexType.SEGMENT)
    with IndexedReader(idx, scenario_gfa) as r:
        assert r.get_segment("S1") is not None
        with pytest.raises(IndexNotBuiltError):
            r.query_position("P1", 0)
        with pytest.raises(IndexNotBuiltError):
            r.get_path("P1")


def test_stale_index_is_advisory(scenario_gfa, tmp_path, caplog):
    idx_path = save_index(build_index(scenario_gfa), tmp_path / "g.pgi")
    with scenario_gfa.open("a") as f:
        f.write("S\tS3\tACGT\n")
    with caplog.at_level(logging.WARNING):
        r = IndexedReader.open(scenario_gfa, idx_path)
    with r:
        assert r.stale
        assert "StaleIndex" in caplog.text
        # appended data leaves the indexed offsets intact
        assert r.get_segment("S1").sequence_length == 100
        assert r.get_path("P1") is not None


def test_fresh_index_is_not_stale(reader):
    assert not reader.stale


def test_rewritten_source_raises_mismatch(scenario_gfa, tmp_path):
    idx = load_index(save_index(build_index(scenario_gfa), tmp_path / "g.pgi"))
    scenario_gfa.write_text("S\tX\tACGT\n" + scenario_gfa.read_text())
    with IndexedReader(idx, scenario_gfa) as r, pytest.raises(IndexMismatchError):
        r.get_segment("S2")


def test_shared_reader_across_threads(reader):
    errors = []

    def work():
        for _ in range(200):
            if reader.get_segment("S2").sequence_length != 50 or reader.get_segment("S1").name != "S1":
                errors.append("bad read")

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []


def test_list_paths_from_position_index_only(write_gfa):
    gfa = write_gfa("S\ts1\tAC\nP\tb\ts1+\t*\nP\ta\ts1-\t*\n")
    idx = build_index(gfa, IndexType.POSITION)
    with IndexedReader(idx, gfa) as r:
        assert list(r.list_paths()) == ["b", "a"]
        with pytest.raises(IndexNotBuiltError):
            r.path_info("a")


def test_compressed_source_rejected(scenario_gfa, tmp_path):
    gz = tmp_path / "graph.gfa.gz"
    gz.write_bytes(gzip.compress(scenario_gfa.read_bytes()))
    with pytest.raises(CompressedInputError):
        IndexedReader(build_index(scenario_gfa), gz)


class _BrokenHandle:
    def seek(self, offset):
        return offset

    def read(self, n):
        raise OSError(errno.EIO, "Input/output error")

    def close(self):
        pass


def test_read_failure_is_io_error(reader):
    reader._handle.close()
    reader._handle = _BrokenHandle()
    with pytest.raises(PgToolsIOError) as info:
        reader.get_segment("S1")
    assert "Input/output error" in str(info.value)
