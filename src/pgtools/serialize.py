"""Binary index files (.pgi).

Layout (little-endian):

    MAGIC "PGIX" | VERSION u32 | SOURCE_SIZE u64 | SOURCE_MTIME_NS u64 |
    SOURCE_PATH {u16 len, utf-8} | FLAGS u8 (SEGMENT=1, PATH=2, POSITION=4)
    [SEGMENT]  u32 count, count x {u16 len, name, u64 offset, u32 byte_len, u64 seq_len}
    [PATH]     u32 count, count x {u16 len, name, u64 offset, u32 byte_len, u32 steps, u64 total_len}
    [POSITION] u32 paths, per path {u16 len, name, u32 entries,
                                    entries x {u16 len, segment, u8 orient, u64 start, u64 end}}

Writes go to <path>.tmp and are renamed into place, so a reader sees either
the old file or the complete new one. An interrupted write leaves a file that
fails to load (TruncatedIndexError) and must be rebuilt.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path as FsPath
from typing import TYPE_CHECKING

from pgtools.errors import (
    BadMagicError,
    CorruptIndexError,
    PgToolsIOError,
    TruncatedIndexError,
    UnsupportedVersionError,
)
from pgtools.models import (
    INDEX_VERSION,
    Fingerprint,
    GfaIndex,
    IndexType,
    Orientation,
    PathEntry,
    PositionEntry,
    SegmentEntry,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger("pgtools.serialize")

MAGIC = b"PGIX"

_FINGERPRINT = struct.Struct("<QQ")      # source size, source mtime_ns
_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_SEGMENT = struct.Struct("<QIQ")         # byte_offset, byte_len, seq_len
_PATH = struct.Struct("<QIIQ")           # byte_offset, byte_len, step_count, total_len
_POSITION = struct.Struct("<BQQ")        # orientation, start, end

_ORIENT_CODE = {Orientation.FORWARD: 0, Orientation.REVERSE: 1}
_CODE_ORIENT = {v: k for k, v in _ORIENT_CODE.items()}

_MAX_U16 = 0xFFFF
_MAX_U32 = 0xFFFF_FFFF
_MAX_U64 = 0xFFFF_FFFF_FFFF_FFFF


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _check(value: int, limit: int, what: str) -> int:
    if not 0 <= value <= limit:
        msg = f"{what} out of range for index format: {value}"
        raise ValueError(msg)
    return value


def _pack_str(text: str, what: str) -> bytes:
    data = text.encode("utf-8")
    _check(len(data), _MAX_U16, f"{what} length")
    return _U16.pack(len(data)) + data


def _encode_segments(entries: Iterable[SegmentEntry], count: int) -> Iterable[bytes]:
    yield _U32.pack(_check(count, _MAX_U32, "segment count"))
    for e in entries:
        yield _pack_str(e.name, "segment name")
        yield _SEGMENT.pack(
            _check(e.byte_offset, _MAX_U64, "byte offset"),
            _check(e.byte_length, _MAX_U32, "record length"),
            _check(e.sequence_length, _MAX_U64, "sequence length"),
        )


def _encode_paths(entries: Iterable[PathEntry], count: int) -> Iterable[bytes]:
    yield _U32.pack(_check(count, _MAX_U32, "path count"))
    for e in entries:
        yield _pack_str(e.name, "path name")
        yield _PATH.pack(
            _check(e.byte_offset, _MAX_U64, "byte offset"),
            _check(e.byte_length, _MAX_U32, "record length"),
            _check(e.step_count, _MAX_U32, "step count"),
            _check(e.total_length, _MAX_U64, "path length"),
        )


def _encode_positions(positions: dict[str, list[PositionEntry]]) -> Iterable[bytes]:
    yield _U32.pack(_check(len(positions), _MAX_U32, "position path count"))
    for name, entries in positions.items():
        yield _pack_str(name, "path name")
        yield _U32.pack(_check(len(entries), _MAX_U32, "position entry count"))
        for e in entries:
            yield _pack_str(e.segment_name, "segment name")
            yield _POSITION.pack(
                _ORIENT_CODE[e.orientation],
                _check(e.start, _MAX_U64, "start coordinate"),
                _check(e.end, _MAX_U64, "end coordinate"),
            )


def _flags(index: GfaIndex) -> int:
    flags = 0
    if index.segments is not None:
        flags |= IndexType.SEGMENT
    if index.paths is not None:
        flags |= IndexType.PATH
    if index.positions is not None:
        flags |= IndexType.POSITION
    return int(flags)


def dumps_index(index: GfaIndex) -> bytes:
    """Encode an index to bytes. Raises ValueError if a field overflows its width."""
    parts: list[bytes] = [
        MAGIC,
        _U32.pack(INDEX_VERSION),
        _FINGERPRINT.pack(
            _check(index.fingerprint.size, _MAX_U64, "source size"),
            _check(index.fingerprint.mtime_ns, _MAX_U64, "source mtime"),
        ),
        _pack_str(index.source_path, "source path"),
        _U8.pack(_flags(index)),
    ]
    if index.segments is not None:
        parts.extend(_encode_segments(index.segments.values(), len(index.segments)))
    if index.paths is not None:
        parts.extend(_encode_paths(index.paths.values(), len(index.paths)))
    if index.positions is not None:
        parts.extend(_encode_positions(index.positions))
    return b"".join(parts)


def save_index(index: GfaIndex, path: str | os.PathLike[str]) -> FsPath:
    """Atomically write index to path (tmp file + rename). Returns the path."""
    dest = FsPath(path)
    data = dumps_index(index)
    tmp = dest.with_name(dest.name + ".tmp")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(dest)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise PgToolsIOError(str(dest), exc.strerror or str(exc)) from exc
    logger.info("saved %s index (%d bytes) to %s", index.index_type.label(), len(data), dest)
    return dest


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


class _Reader:
    """Bounds-checked cursor over the index bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def take(self, n: int, what: str) -> memoryview:
        if n > self.remaining:
            msg = f"index truncated reading {what}: need {n} bytes at offset {self.pos}, have {self.remaining}"
            raise TruncatedIndexError(msg)
        view = memoryview(self.data)[self.pos:self.pos + n]
        self.pos += n
        return view

    def unpack(self, fmt: struct.Struct, what: str) -> tuple[int, ...]:
        return fmt.unpack(self.take(fmt.size, what))

    def u32(self, what: str) -> int:
        return self.unpack(_U32, what)[0]

    def string(self, what: str) -> str:
        (n,) = self.unpack(_U16, f"{what} length")
        raw = self.take(n, what)
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"invalid UTF-8 in {what} at offset {self.pos - n}"
            raise CorruptIndexError(msg) from exc


def _decode_segments(r: _Reader) -> dict[str, SegmentEntry]:
    out: dict[str, SegmentEntry] = {}
    for _ in range(r.u32("segment count")):
        name = r.string("segment name")
        offset, byte_len, seq_len = r.unpack(_SEGMENT, "segment entry")
        out[name] = SegmentEntry(name, offset, byte_len, seq_len)
    return out


def _decode_paths(r: _Reader) -> dict[str, PathEntry]:
    out: dict[str, PathEntry] = {}
    for _ in range(r.u32("path count")):
        name = r.string("path name")
        offset, byte_len, steps, total = r.unpack(_PATH, "path entry")
        out[name] = PathEntry(name, offset, byte_len, steps, total)
    return out


def _decode_positions(r: _Reader) -> dict[str, list[PositionEntry]]:
    out: dict[str, list[PositionEntry]] = {}
    for _ in range(r.u32("position path count")):
        path_name = r.string("path name")
        entries: list[PositionEntry] = []
        for step_index in range(r.u32("position entry count")):
            segment = r.string("segment name")
            code, start, end = r.unpack(_POSITION, "position entry")
            if code not in _CODE_ORIENT:
                msg = f"invalid orientation code {code} in path '{path_name}'"
                raise CorruptIndexError(msg)
            entries.append(PositionEntry(path_name, segment, _CODE_ORIENT[code], start, end, step_index))
        out[path_name] = entries
    return out


def loads_index(data: bytes) -> GfaIndex:
    """Decode index bytes. Raises an IndexLoadError subclass on bad input."""
    if len(data) < len(MAGIC):
        msg = f"index truncated: {len(data)} bytes is shorter than the header"
        raise TruncatedIndexError(msg)
    if data[:len(MAGIC)] != MAGIC:
        msg = f"not a pgtools index (magic {bytes(data[:len(MAGIC)])!r})"
        raise BadMagicError(msg)

    r = _Reader(data)
    r.take(len(MAGIC), "magic")
    version = r.u32("format version")
    if version == 0 or version > INDEX_VERSION:
        raise UnsupportedVersionError(version, INDEX_VERSION)
    size, mtime_ns = r.unpack(_FINGERPRINT, "source fingerprint")
    source_path = r.string("source path")
    (flags,) = r.unpack(_U8, "index flags")
    if flags & ~int(IndexType.FULL) or not flags:
        msg = f"invalid index flags: {flags:#04x}"
        raise CorruptIndexError(msg)
    index_type = IndexType(flags)

    segments = _decode_segments(r) if IndexType.SEGMENT in index_type else None
    paths = _decode_paths(r) if IndexType.PATH in index_type else None
    positions = _decode_positions(r) if IndexType.POSITION in index_type else None
    if r.remaining:
        msg = f"{r.remaining} unexpected trailing bytes after index data"
        raise CorruptIndexError(msg)

    return GfaIndex(
        source_path=source_path,
        fingerprint=Fingerprint(size=size, mtime_ns=mtime_ns),
        index_type=index_type,
        segments=segments,
        paths=paths,
        positions=positions,
        version=version,
    )


def load_index(path: str | os.PathLike[str]) -> GfaIndex:
    """Read an index file. Never touches the source GFA."""
    p = FsPath(path)
    try:
        data = p.read_bytes()
    except OSError as exc:
        raise PgToolsIOError(str(p), exc.strerror or str(exc)) from exc
    index = loads_index(data)
    logger.info("loaded %s index from %s", index.index_type.label(), p)
    return index


def check_fingerprint(index: GfaIndex, source_path: str | os.PathLike[str]) -> bool:
    """Compare the stored fingerprint with the live source file.

    Returns False (and logs a StaleIndex warning) on mismatch. Advisory only:
    offsets may still be valid when just the mtime moved.
    """
    try:
        live = Fingerprint.of(source_path)
    except OSError as exc:
        raise PgToolsIOError(str(source_path), exc.strerror or str(exc)) from exc
    if live.matches(index.fingerprint):
        return True
    logger.warning(
        "StaleIndex: %s changed since the index was built (size %d -> %d, mtime_ns %d -> %d)",
        source_path, index.fingerprint.size, live.size, index.fingerprint.mtime_ns, live.mtime_ns,
    )
    return False
