import bz2
import gzip

import pytest

from pgtools.errors import GfaParseError, MalformedStepError, MissingLengthError, PgToolsIOError
from pgtools.models import Header, Link, Orientation, Path, Segment, Skipped, Step, Walk
from pgtools.parser import is_compressed, iter_lines, parse_line


def test_parse_header():
    rec = parse_line("H\tVN:Z:1.0\tXX:i:3\n")
    assert isinstance(rec, Header)
    assert rec.version == "1.0"
    assert rec.tags["XX"].as_int() == 3


def test_parse_segment_with_sequence():
    rec = parse_line("S\tnode1\tACGTACGT", offset=10, length=16)
    assert isinstance(rec, Segment)
    assert rec.name == "node1"
    assert rec.sequence == "ACGTACGT"
    assert rec.sequence_length == 8
    assert (rec.byte_offset, rec.byte_length) == (10, 16)


def test_parse_segment_length_from_ln_tag():
    rec = parse_line("S\ts2\t*\tLN:i:50\tRC:i:7")
    assert isinstance(rec, Segment)
    assert rec.sequence is None
    assert rec.sequence_length == 50
    assert rec.tags["RC"].value == "7"


def test_segment_without_sequence_or_length():
    with pytest.raises(MissingLengthError) as info:
        parse_line("S\ts2\t*", line_number=4)
    assert info.value.line_number == 4
    assert "line 4" in str(info.value)


def test_segment_bad_ln_tag():
    with pytest.raises(GfaParseError):
        parse_line("S\ts2\t*\tLN:i:abc")


def test_segment_too_few_fields():
    with pytest.raises(GfaParseError):
        parse_line("S\ts1")


def test_default_length_is_utf8_bytes_without_terminator():
    rec = parse_line("S\ts1\tAC\r\n")
    assert rec.byte_length == len(b"S\ts1\tAC")


def test_parse_link():
    rec = parse_line("L\ts1\t+\ts2\t-\t2M")
    assert isinstance(rec, Link)
    assert rec.from_segment == "s1"
    assert rec.from_orientation is Orientation.FORWARD
    assert rec.to_segment == "s2"
    assert rec.to_orientation is Orientation.REVERSE
    assert rec.overlap == "2M"


def test_link_bad_orientation():
    with pytest.raises(GfaParseError):
        parse_line("L\ts1\tx\ts2\t+\t0M")


def test_parse_path():
    rec = parse_line("P\tmypath\ts1+,s2-,s3+\t*")
    assert isinstance(rec, Path)
    assert rec.name == "mypath"
    assert rec.steps == [
        Step("s1", Orientation.FORWARD),
        Step("s2", Orientation.REVERSE),
        Step("s3", Orientation.FORWARD),
    ]
    assert rec.overlaps is None


def test_path_overlaps_kept():
    rec = parse_line("P\tp\ts1+,s2+\t4M")
    assert rec.overlaps == ["4M"]


@pytest.mark.parametrize("steps", ["s1+,s2", "s1+,+", "s1*"])
def test_path_malformed_step(steps):
    with pytest.raises(MalformedStepError):
        parse_line(f"P\tp\t{steps}\t*")


def test_parse_walk():
    rec = parse_line("W\tHG002\t1\tchr1\t0\t24\t>s1<s2>s3")
    assert isinstance(rec, Walk)
    assert rec.name == "HG002#1#chr1"
    assert (rec.seq_start, rec.seq_end) == (0, 24)
    assert [str(s) for s in rec.steps] == ["s1+", "s2-", "s3+"]


def test_walk_star_coordinates():
    rec = parse_line("W\tsample\t0\tctg\t*\t*\t>a")
    assert rec.seq_start is None and rec.seq_end is None


def test_walk_malformed():
    with pytest.raises(MalformedStepError):
        parse_line("W\tsample\t0\tctg\t0\t8\ts1>s2")


@pytest.mark.parametrize("line, kind", [
    ("", ""),
    ("   \n", ""),
    ("# comment", "#"),
    ("C\ta\t+\tb\t+\t0\t*", "C"),
    ("E\t*\ts1+\ts2+\t0\t4\t0\t4\t*", "E"),
])
def test_skipped_lines(line, kind):
    rec = parse_line(line)
    assert isinstance(rec, Skipped)
    assert rec.record_type == kind


def test_iter_lines_tracks_byte_offsets(write_gfa):
    path = write_gfa("H\tVN:Z:1.0\r\nS\ts1\tAC\n\nS\ts2\tGGG")
    lines = list(iter_lines(path))
    assert [(ln.line_number, ln.offset, ln.length) for ln in lines] == [
        (1, 0, 10),
        (2, 12, 7),
        (3, 20, 0),
        (4, 21, 8),
    ]
    assert lines[1].record_type == b"S"
    assert lines[2].record_type == b""
    raw = path.read_bytes()
    for ln in lines:
        assert raw[ln.offset:ln.offset + ln.length] == ln.data


def test_iter_lines_reports_progress(write_gfa):
    path = write_gfa("S\ts1\tAC\nS\ts2\tGG\n")
    seen = []
    list(iter_lines(path, progress=seen.append))
    assert sum(seen) == path.stat().st_size


@pytest.mark.parametrize("name, opener", [
    ("graph.gfa.gz", gzip.open),
    ("graph.gfa.bz2", bz2.open),
])
def test_iter_lines_reads_compressed(tmp_path, name, opener):
    path = tmp_path / name
    with opener(path, "wb") as f:
        f.write(b"S\ts1\tAC\nS\ts2\tGGG\n")
    assert is_compressed(path)
    lines = list(iter_lines(path))
    assert [ln.data for ln in lines] == [b"S\ts1\tAC", b"S\ts2\tGGG"]
    assert [ln.offset for ln in lines] == [0, 8]


def test_truncated_gzip_is_io_error(tmp_path):
    path = tmp_path / "graph.gfa.gz"
    with gzip.open(path, "wb") as f:
        f.write(b"S\ts1\tACGT\n" * 1000)
    path.write_bytes(path.read_bytes()[:-12])
    with pytest.raises(PgToolsIOError):
        list(iter_lines(path))


def test_iter_lines_missing_file(tmp_path):
    with pytest.raises(PgToolsIOError):
        list(iter_lines(tmp_path / "nope.gfa.gz"))
