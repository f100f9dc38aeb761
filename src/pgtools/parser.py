"""GFA line parser.

parse_line() turns one line into a typed record:

    H  header          -> Header
    S  segment         -> Segment     (sequence '*' needs LN:i:<n>)
    L  link            -> Link
    P  path            -> Path        (steps: s1+,s2-,...)
    W  walk            -> Walk        (steps: >s1<s2...)
    anything else      -> Skipped     (blank, '#' comment, C/E/F/G/O/U, ...)

iter_lines() streams a file in binary mode and keeps the byte cursor, so each
RawLine knows exactly which bytes it came from. The index builder stores those
offsets; the query engine later reads them back and hands the text to
parse_line() again. .gz and .bz2 files are decompressed on the fly for the
graph model, but cannot be indexed.
"""

from __future__ import annotations

import bz2
import gzip
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, NamedTuple

from pgtools.errors import GfaParseError, MalformedStepError, MissingLengthError, PgToolsIOError
from pgtools.models import (
    Header,
    Link,
    Orientation,
    Path,
    Record,
    Segment,
    Skipped,
    Step,
    Tag,
    Tags,
    Walk,
)

if TYPE_CHECKING:
    import os
    from collections.abc import Callable, Iterator

_WALK_RE = re.compile(r"(?:[><][^><]+)+")
_WALK_STEP_RE = re.compile(r"([><])([^><]+)")
_TAG_RE = re.compile(r"^([A-Za-z][A-Za-z0-9]):([AifZJHB]):(.*)$")


class _Ctx(NamedTuple):
    line_number: int | None
    offset: int
    length: int
    raw: str

    def fail(self, message: str, exc: type[GfaParseError] = GfaParseError) -> GfaParseError:
        return exc(message, line_number=self.line_number, byte_offset=self.offset, raw=self.raw)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_line(
    text: str,
    offset: int = 0,
    length: int | None = None,
    line_number: int | None = None,
) -> Record:
    """Parse one GFA line. Raises GfaParseError on malformed H/S/L/P/W records."""
    line = text.rstrip("\r\n")
    if length is None:
        length = len(line.encode("utf-8"))
    if not line.strip():
        return Skipped("")
    if line.startswith("#"):
        return Skipped("#")

    fields = line.split("\t")
    handler = _PARSERS.get(fields[0])
    if handler is None:
        return Skipped(fields[0])
    return handler(fields, _Ctx(line_number, offset, length, line))


def parse_tags(fields: list[str]) -> Tags:
    """Collect TAG:TYPE:VALUE optional fields; anything else is ignored."""
    tags: Tags = {}
    for f in fields:
        m = _TAG_RE.match(f)
        if m:
            tags[m.group(1)] = Tag(m.group(2), m.group(3))
    return tags


@dataclass(frozen=True)
class RawLine:
    """One physical line of a GFA file and where it sits on disk."""

    line_number: int
    offset: int            # byte offset of the first character
    length: int            # bytes, excluding the line terminator
    data: bytes

    @property
    def record_type(self) -> bytes:
        """Leading record-type field (b'S', b'P', ...) or b'' when it isn't one char."""
        if self.data[1:2] in (b"\t", b""):
            return self.data[:1]
        return b""

    @property
    def text(self) -> str:
        try:
            return self.data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise GfaParseError(
                f"invalid UTF-8 ({exc.reason})",
                line_number=self.line_number,
                byte_offset=self.offset,
            ) from exc

    def parse(self) -> Record:
        return parse_line(self.text, self.offset, self.length, self.line_number)


_COMPRESSED_SUFFIXES = (".gz", ".bz2")


def is_compressed(path: str | os.PathLike[str]) -> bool:
    """True for .gz/.bz2 input, judged by file name."""
    return str(path).lower().endswith(_COMPRESSED_SUFFIXES)


def open_input(path: str | os.PathLike[str]) -> BinaryIO:
    """Open a GFA file for binary reading, decompressing .gz and .bz2 input."""
    suffix = str(path).lower().rsplit(".", 1)[-1]
    try:
        if suffix == "gz":
            return gzip.open(path, "rb")
        if suffix == "bz2":
            return bz2.open(path, "rb")
        return open(path, "rb")  # noqa: SIM115
    except OSError as exc:
        raise PgToolsIOError(str(path), exc.strerror or str(exc)) from exc


def iter_lines(
    path: str | os.PathLike[str],
    progress: Callable[[int], None] | None = None,
) -> Iterator[RawLine]:
    """Stream (line_number, offset, length, bytes) for every line of a file.

    Compressed input is decompressed on the fly; offsets then count
    decompressed bytes. progress, if given, is called with the number of
    bytes consumed per line.
    """
    with open_input(path) as handle:
        cursor = 0
        line_number = 0
        while True:
            try:
                raw = handle.readline()
            except (OSError, EOFError) as exc:
                reason = getattr(exc, "strerror", None) or str(exc) or type(exc).__name__
                raise PgToolsIOError(str(path), reason) from exc
            if not raw:
                break
            line_number += 1
            data = raw.rstrip(b"\r\n")
            yield RawLine(line_number=line_number, offset=cursor, length=len(data), data=data)
            cursor += len(raw)
            if progress is not None:
                progress(len(raw))


# ---------------------------------------------------------------------------
# Record parsers
# ---------------------------------------------------------------------------


def _orientation(symbol: str, what: str, ctx: _Ctx) -> Orientation:
    try:
        return Orientation.parse(symbol)
    except ValueError:
        raise ctx.fail(f"invalid {what} orientation: {symbol!r}") from None


def _parse_header(fields: list[str], ctx: _Ctx) -> Header:
    tags = parse_tags(fields[1:])
    vn = tags.pop("VN", None)
    return Header(
        version=vn.value if vn else None,
        tags=tags,
        byte_offset=ctx.offset,
        byte_length=ctx.length,
    )


def _parse_segment(fields: list[str], ctx: _Ctx) -> Segment:
    if len(fields) < 3:
        raise ctx.fail("Segment record requires at least 3 fields")
    name = fields[1]
    if not name:
        raise ctx.fail("Segment record has an empty name")
    tags = parse_tags(fields[3:])
    sequence: str | None = fields[2]

    if sequence in ("*", ""):
        sequence = None
        ln = tags.get("LN")
        if ln is None:
            raise ctx.fail(f"segment '{name}' has no sequence and no LN tag", MissingLengthError)
        try:
            length = ln.as_int()
        except ValueError:
            raise ctx.fail(f"segment '{name}' has a non-integer LN tag: {ln.value!r}") from None
        if length < 0:
            raise ctx.fail(f"segment '{name}' has a negative LN tag: {length}")
    else:
        length = len(sequence)

    return Segment(
        name=name,
        sequence=sequence,
        sequence_length=length,
        tags=tags,
        byte_offset=ctx.offset,
        byte_length=ctx.length,
    )


def _parse_link(fields: list[str], ctx: _Ctx) -> Link:
    if len(fields) < 6:
        raise ctx.fail("Link record requires at least 6 fields")
    return Link(
        from_segment=fields[1],
        from_orientation=_orientation(fields[2], "from", ctx),
        to_segment=fields[3],
        to_orientation=_orientation(fields[4], "to", ctx),
        overlap=fields[5],
        tags=parse_tags(fields[6:]),
        byte_offset=ctx.offset,
        byte_length=ctx.length,
    )


def parse_path_steps(text: str) -> list[Step]:
    """Parse 's1+,s2-,...'. Raises ValueError naming the bad token."""
    steps: list[Step] = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        if len(token) < 2 or token[-1] not in "+-":
            msg = f"Path step missing orientation: {token}"
            raise ValueError(msg)
        steps.append(Step(token[:-1], Orientation.parse(token[-1])))
    return steps


def _parse_path(fields: list[str], ctx: _Ctx) -> Path:
    if len(fields) < 3:
        raise ctx.fail("Path record requires at least 3 fields")
    name = fields[1]
    if not name:
        raise ctx.fail("Path record has an empty name")
    try:
        steps = parse_path_steps(fields[2])
    except ValueError as exc:
        raise ctx.fail(str(exc), MalformedStepError) from None

    overlaps = None
    if len(fields) > 3 and fields[3] not in ("", "*"):
        overlaps = fields[3].split(",")

    return Path(
        name=name,
        steps=steps,
        overlaps=overlaps,
        tags=parse_tags(fields[4:]),
        byte_offset=ctx.offset,
        byte_length=ctx.length,
    )


def parse_walk_steps(text: str) -> list[Step]:
    """Parse '>s1<s2>s3'. Raises ValueError when the string isn't a walk."""
    if text in ("", "*"):
        return []
    if _WALK_RE.fullmatch(text) is None:
        msg = f"Walk steps must be >name or <name tokens: {text}"
        raise ValueError(msg)
    return [
        Step(name, Orientation.FORWARD if arrow == ">" else Orientation.REVERSE)
        for arrow, name in _WALK_STEP_RE.findall(text)
    ]


def _optional_int(value: str, what: str, ctx: _Ctx) -> int | None:
    if value == "*":
        return None
    try:
        return int(value)
    except ValueError:
        raise ctx.fail(f"Walk {what} must be an integer or '*': {value!r}") from None


def _parse_walk(fields: list[str], ctx: _Ctx) -> Walk:
    # W sample haplotype seq_id seq_start seq_end walk
    if len(fields) < 7:
        raise ctx.fail("Walk record requires at least 7 fields")
    try:
        haplotype = int(fields[2])
    except ValueError:
        raise ctx.fail(f"Walk haplotype must be an integer: {fields[2]!r}") from None
    try:
        steps = parse_walk_steps(fields[6])
    except ValueError as exc:
        raise ctx.fail(str(exc), MalformedStepError) from None

    return Walk(
        sample=fields[1],
        haplotype=haplotype,
        sequence_id=fields[3],
        seq_start=_optional_int(fields[4], "start", ctx),
        seq_end=_optional_int(fields[5], "end", ctx),
        steps=steps,
        tags=parse_tags(fields[7:]),
        byte_offset=ctx.offset,
        byte_length=ctx.length,
    )


_PARSERS: dict[str, Callable[[list[str], _Ctx], Record]] = {
    "H": _parse_header,
    "S": _parse_segment,
    "L": _parse_link,
    "P": _parse_path,
    "W": _parse_walk,
}
