"""Build byte-offset indices over a GFA file.

Two streaming passes, neither of which keeps sequence strings:

    pass 1  S lines    -> segment lengths (+ SegmentEntry when SEGMENT requested)
    pass 2  P/W lines  -> PathEntry and cumulative PositionEntry lists

Pass 2 only runs when PATH or POSITION is requested. Splitting the passes means
a path may reference a segment defined further down the file.

Steps that reference a segment never defined anywhere in the file are handled
by the undefined_segments policy:

    "error"  raise UndefinedSegmentError (default)
    "warn"   treat the step as length 0, log it, record it in index.warnings

Entry point:
    build_index(source_path, IndexType.FULL)  -> GfaIndex
"""

from __future__ import annotations

import logging
from pathlib import Path as FsPath
from typing import TYPE_CHECKING, Literal

from pgtools.errors import (
    CompressedInputError,
    DuplicateNameError,
    GfaParseError,
    PgToolsIOError,
    UndefinedSegmentError,
)
from pgtools.models import (
    Fingerprint,
    GfaIndex,
    IndexType,
    Path,
    PathEntry,
    PositionEntry,
    Segment,
    SegmentEntry,
    Walk,
)
from pgtools.parser import RawLine, is_compressed, iter_lines

if TYPE_CHECKING:
    import os
    from collections.abc import Callable, Iterator

    from pgtools.models import Record

logger = logging.getLogger("pgtools.builder")

UndefinedPolicy = Literal["error", "warn"]
UNDEFINED_POLICIES = ("error", "warn")


class _Pass:
    """Shared state for one build: parse-error policy and collected warnings."""

    def __init__(
        self,
        source: FsPath,
        *,
        skip_invalid: bool,
        progress: Callable[[int], None] | None,
    ) -> None:
        self.source = source
        self.skip_invalid = skip_invalid
        self.progress = progress
        self.warnings: list[str] = []

    def warn(self, message: str) -> None:
        logger.warning("%s: %s", self.source, message)
        self.warnings.append(message)

    def records(self, kinds: tuple[bytes, ...]) -> Iterator[tuple[RawLine, Record]]:
        """Yield (raw line, parsed record) for lines whose record type is in kinds."""
        for raw in iter_lines(self.source, progress=self.progress):
            if raw.record_type not in kinds:
                continue
            try:
                record = raw.parse()
            except GfaParseError as exc:
                if not self.skip_invalid:
                    raise
                self.warn(f"skipped invalid line: {exc}")
                continue
            yield raw, record


def _collect_segments(state: _Pass, want_entries: bool) -> tuple[dict[str, int], dict[str, SegmentEntry] | None]:
    lengths: dict[str, int] = {}
    entries: dict[str, SegmentEntry] | None = {} if want_entries else None

    for raw, record in state.records((b"S",)):
        assert isinstance(record, Segment)
        if record.name in lengths:
            raise DuplicateNameError(record.name, "segment", raw.line_number)
        lengths[record.name] = record.sequence_length
        if entries is not None:
            entries[record.name] = SegmentEntry(
                name=record.name,
                byte_offset=raw.offset,
                byte_length=raw.length,
                sequence_length=record.sequence_length,
            )

    logger.info("pass 1: %d segments in %s", len(lengths), state.source)
    return lengths, entries


def _step_length(
    state: _Pass,
    lengths: dict[str, int],
    segment: str,
    path_name: str,
    line_number: int,
    policy: UndefinedPolicy,
) -> int:
    length = lengths.get(segment)
    if length is not None:
        return length
    if policy == "error":
        raise UndefinedSegmentError(segment, path_name, line_number)
    state.warn(f"path '{path_name}' references undefined segment '{segment}' (line {line_number}); using length 0")
    return 0


def _collect_paths(
    state: _Pass,
    lengths: dict[str, int],
    *,
    want_paths: bool,
    want_positions: bool,
    policy: UndefinedPolicy,
) -> tuple[dict[str, PathEntry] | None, dict[str, list[PositionEntry]] | None]:
    paths: dict[str, PathEntry] | None = {} if want_paths else None
    positions: dict[str, list[PositionEntry]] | None = {} if want_positions else None
    seen: set[str] = set()

    for raw, record in state.records((b"P", b"W")):
        assert isinstance(record, (Path, Walk))
        name = record.name
        if name in seen:
            raise DuplicateNameError(name, "path", raw.line_number)
        seen.add(name)

        cursor = 0
        entries: list[PositionEntry] = []
        for step_index, step in enumerate(record.steps):
            seg_len = _step_length(state, lengths, step.segment, name, raw.line_number, policy)
            if positions is not None:
                entries.append(PositionEntry(
                    path_name=name,
                    segment_name=step.segment,
                    orientation=step.orientation,
                    start=cursor,
                    end=cursor + seg_len,
                    step_index=step_index,
                ))
            cursor += seg_len

        if paths is not None:
            paths[name] = PathEntry(
                name=name,
                byte_offset=raw.offset,
                byte_length=raw.length,
                step_count=len(record.steps),
                total_length=cursor,
            )
        if positions is not None:
            positions[name] = entries

    logger.info("pass 2: %d paths in %s", len(seen), state.source)
    return paths, positions


def build_index(
    source_path: str | os.PathLike[str],
    index_type: IndexType = IndexType.FULL,
    *,
    undefined_segments: UndefinedPolicy = "error",
    skip_invalid: bool = False,
    progress: Callable[[int], None] | None = None,
) -> GfaIndex:
    """Stream source_path and build the requested indices.

    Raises GfaParseError (unless skip_invalid), DuplicateNameError,
    UndefinedSegmentError (policy "error"), CompressedInputError or
    PgToolsIOError.
    """
    if undefined_segments not in UNDEFINED_POLICIES:
        msg = f"undefined_segments must be one of {UNDEFINED_POLICIES}, got {undefined_segments!r}"
        raise ValueError(msg)
    if not index_type:
        msg = "no index type requested"
        raise ValueError(msg)

    source = FsPath(source_path)
    if is_compressed(source):
        raise CompressedInputError(str(source))
    try:
        fingerprint = Fingerprint.of(source)
    except OSError as exc:
        raise PgToolsIOError(str(source), exc.strerror or str(exc)) from exc

    state = _Pass(source, skip_invalid=skip_invalid, progress=progress)
    lengths, segments = _collect_segments(state, IndexType.SEGMENT in index_type)

    paths = positions = None
    if index_type & (IndexType.PATH | IndexType.POSITION):
        paths, positions = _collect_paths(
            state,
            lengths,
            want_paths=IndexType.PATH in index_type,
            want_positions=IndexType.POSITION in index_type,
            policy=undefined_segments,
        )

    return GfaIndex(
        source_path=str(source),
        fingerprint=fingerprint,
        index_type=index_type,
        segments=segments,
        paths=paths,
        positions=positions,
        warnings=state.warnings,
    )


def passes_for(index_type: IndexType) -> int:
    """Number of streaming passes build_index makes (for progress totals)."""
    return 2 if index_type & (IndexType.PATH | IndexType.POSITION) else 1
