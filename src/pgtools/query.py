"""Random access into a GFA file through a loaded index.

    with IndexedReader.open("graph.gfa", "graph.gfa.pgi") as reader:
        seg = reader.get_segment("s1")            # seek + parse one line
        hit = reader.query_position("chr1", 1234) # bisect over PositionEntry

The reader owns one read-only handle on the source file. Seek+read pairs run
under a lock, so a single reader may be shared between threads; the index
itself is never mutated after load.
"""

from __future__ import annotations

import bisect
import logging
import threading
from pathlib import Path as FsPath
from typing import TYPE_CHECKING

from pgtools.errors import (
    CompressedInputError,
    GfaParseError,
    IndexMismatchError,
    IndexNotBuiltError,
    PgToolsIOError,
)
from pgtools.models import Path, Segment, Walk
from pgtools.parser import is_compressed, parse_line
from pgtools.serialize import check_fingerprint, load_index

if TYPE_CHECKING:
    import os
    from collections.abc import Iterator
    from types import TracebackType

    from pgtools.models import GfaIndex, PathEntry, PositionEntry, Record, SegmentEntry

logger = logging.getLogger("pgtools.query")


def _start_key(entry: PositionEntry) -> int:
    return entry.start


class IndexedReader:
    """Query engine over a GfaIndex plus the GFA file it was built from."""

    def __init__(self, index: GfaIndex, source_path: str | os.PathLike[str]) -> None:
        self.index = index
        self.source_path = FsPath(source_path)
        if is_compressed(self.source_path):
            raise CompressedInputError(str(self.source_path))
        self.stale = not check_fingerprint(index, self.source_path)
        try:
            self._handle = self.source_path.open("rb")
        except OSError as exc:
            raise PgToolsIOError(str(self.source_path), exc.strerror or str(exc)) from exc
        self._lock = threading.Lock()

    @classmethod
    def open(cls, source_path: str | os.PathLike[str], index_path: str | os.PathLike[str]) -> IndexedReader:
        return cls(load_index(index_path), source_path)

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> IndexedReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read(self, offset: int, length: int) -> str:
        try:
            with self._lock:
                self._handle.seek(offset)
                data = self._handle.read(length)
        except OSError as exc:
            raise PgToolsIOError(str(self.source_path), exc.strerror or str(exc)) from exc
        logger.debug("read %d bytes at offset %d of %s", len(data), offset, self.source_path)
        if len(data) != length:
            msg = f"{self.source_path}: expected {length} bytes at offset {offset}, got {len(data)} (source changed?)"
            raise IndexMismatchError(msg)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"{self.source_path}: undecodable record at offset {offset} (source changed?)"
            raise IndexMismatchError(msg) from exc

    def _fetch(self, offset: int, length: int) -> Record:
        text = self._read(offset, length)
        try:
            return parse_line(text, offset, length)
        except GfaParseError as exc:
            msg = f"{self.source_path}: record at offset {offset} no longer parses: {exc}"
            raise IndexMismatchError(msg) from exc

    def _segments(self) -> dict[str, SegmentEntry]:
        if self.index.segments is None:
            raise IndexNotBuiltError("segment")
        return self.index.segments

    def _paths(self) -> dict[str, PathEntry]:
        if self.index.paths is None:
            raise IndexNotBuiltError("path")
        return self.index.paths

    def _positions(self) -> dict[str, list[PositionEntry]]:
        if self.index.positions is None:
            raise IndexNotBuiltError("position")
        return self.index.positions

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def segment_info(self, name: str) -> SegmentEntry | None:
        return self._segments().get(name)

    def path_info(self, name: str) -> PathEntry | None:
        return self._paths().get(name)

    def get_segment(self, name: str) -> Segment | None:
        """Re-read and parse the S line of a segment. None if not indexed."""
        entry = self.segment_info(name)
        if entry is None:
            return None
        record = self._fetch(entry.byte_offset, entry.byte_length)
        if not isinstance(record, Segment) or record.name != name:
            msg = f"{self.source_path}: offset {entry.byte_offset} does not hold segment '{name}' (source changed?)"
            raise IndexMismatchError(msg)
        return record

    def get_path(self, name: str) -> Path | Walk | None:
        """Re-read and parse the P or W line of a path. None if not indexed."""
        entry = self.path_info(name)
        if entry is None:
            return None
        record = self._fetch(entry.byte_offset, entry.byte_length)
        if not isinstance(record, (Path, Walk)) or record.name != name:
            msg = f"{self.source_path}: offset {entry.byte_offset} does not hold path '{name}' (source changed?)"
            raise IndexMismatchError(msg)
        return record

    def get_sequence(self, name: str) -> str | None:
        """Sequence of a segment, or None if the segment is unknown or stored as '*'."""
        seg = self.get_segment(name)
        return seg.sequence if seg is not None else None

    def query_position(self, path_name: str, coordinate: int) -> PositionEntry | None:
        """Entry covering coordinate on path_name, using half-open [start, end)."""
        entries = self._positions().get(path_name)
        if not entries or coordinate < 0 or coordinate >= entries[-1].end:
            return None
        # Last entry whose start <= coordinate; zero-length entries sharing that
        # start sort before it, so they are never returned.
        i = bisect.bisect_right(entries, coordinate, key=_start_key) - 1
        if i < 0:
            return None
        entry = entries[i]
        return entry if entry.contains(coordinate) else None

    def query_range(self, path_name: str, start: int, end: int) -> list[PositionEntry]:
        """Entries overlapping [start, end) on path_name; empty list on a miss."""
        entries = self._positions().get(path_name)
        if not entries:
            return []
        start = max(start, 0)
        end = min(end, entries[-1].end)
        if start >= end:
            return []
        lo = bisect.bisect_right(entries, start, key=_start_key) - 1
        hi = bisect.bisect_left(entries, end, key=_start_key)
        return [e for e in entries[max(lo, 0):hi] if e.start < e.end and e.end > start and e.start < end]

    def list_segments(self) -> Iterator[str]:
        yield from self._segments()

    def list_paths(self) -> Iterator[str]:
        if self.index.paths is not None:
            yield from self.index.paths
        else:
            yield from self._positions()
