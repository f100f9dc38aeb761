"""Data models: parsed GFA records and index entries."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from pathlib import Path as FsPath

INDEX_VERSION = 1


class Orientation(enum.Enum):
    FORWARD = "+"
    REVERSE = "-"

    @classmethod
    def parse(cls, symbol: str) -> Orientation:
        if symbol == "+":
            return cls.FORWARD
        if symbol == "-":
            return cls.REVERSE
        msg = f"invalid orientation: {symbol!r}"
        raise ValueError(msg)

    def __str__(self) -> str:
        return self.value


class Tag(NamedTuple):
    """Optional field TAG:TYPE:VALUE (the tag name is the dict key)."""

    type: str
    value: str

    def as_int(self) -> int:
        return int(self.value)


Tags = dict[str, Tag]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class Header:
    version: str | None = None
    tags: Tags = field(default_factory=dict)
    byte_offset: int = 0
    byte_length: int = 0


@dataclass
class Segment:
    name: str
    sequence: str | None            # None when the sequence field is '*'
    sequence_length: int
    tags: Tags = field(default_factory=dict)
    byte_offset: int = 0
    byte_length: int = 0


@dataclass
class Link:
    from_segment: str
    from_orientation: Orientation
    to_segment: str
    to_orientation: Orientation
    overlap: str = "*"
    tags: Tags = field(default_factory=dict)
    byte_offset: int = 0
    byte_length: int = 0


@dataclass(frozen=True)
class Step:
    segment: str
    orientation: Orientation

    def __str__(self) -> str:
        return f"{self.segment}{self.orientation}"


@dataclass
class Path:
    name: str
    steps: list[Step] = field(default_factory=list)
    overlaps: list[str] | None = None
    tags: Tags = field(default_factory=dict)
    byte_offset: int = 0
    byte_length: int = 0


@dataclass
class Walk:
    sample: str
    haplotype: int
    sequence_id: str
    seq_start: int | None = None
    seq_end: int | None = None
    steps: list[Step] = field(default_factory=list)
    tags: Tags = field(default_factory=dict)
    byte_offset: int = 0
    byte_length: int = 0

    @property
    def name(self) -> str:
        """Walks live in the path namespace as sample#haplotype#sequence_id."""
        return f"{self.sample}#{self.haplotype}#{self.sequence_id}"


@dataclass
class Skipped:
    """Blank line, comment or record type this library does not handle."""

    record_type: str = ""


Record = Header | Segment | Link | Path | Walk | Skipped


# ---------------------------------------------------------------------------
# Index entries
# ---------------------------------------------------------------------------


class IndexType(enum.IntFlag):
    SEGMENT = 1
    PATH = 2
    POSITION = 4
    FULL = 7

    @classmethod
    def parse(cls, text: str) -> IndexType:
        """Parse 'segment', 'pos', 'full', or a comma-joined mix like 'segment,path'."""
        result = cls(0)
        for part in text.split(","):
            key = part.strip().lower()
            if key not in _INDEX_TYPE_ALIASES:
                msg = f"Unknown index type: {part.strip()}. Valid types: segment, path, position, full"
                raise ValueError(msg)
            result |= _INDEX_TYPE_ALIASES[key]
        return result

    def label(self) -> str:
        if self == IndexType.FULL:
            return "full"
        names = [m.name.lower() for m in (IndexType.SEGMENT, IndexType.PATH, IndexType.POSITION) if m in self]
        return ",".join(names) or "none"


_INDEX_TYPE_ALIASES: dict[str, IndexType] = {
    "segment": IndexType.SEGMENT, "seg": IndexType.SEGMENT, "s": IndexType.SEGMENT,
    "path": IndexType.PATH, "p": IndexType.PATH,
    "position": IndexType.POSITION, "pos": IndexType.POSITION,
    "full": IndexType.FULL, "all": IndexType.FULL, "f": IndexType.FULL,
}


@dataclass(frozen=True)
class SegmentEntry:
    name: str
    byte_offset: int
    byte_length: int
    sequence_length: int


@dataclass(frozen=True)
class PathEntry:
    name: str
    byte_offset: int
    byte_length: int
    step_count: int
    total_length: int


@dataclass(frozen=True)
class PositionEntry:
    path_name: str
    segment_name: str
    orientation: Orientation
    start: int                      # 0-based, inclusive
    end: int                        # exclusive
    step_index: int = 0

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, coordinate: int) -> bool:
        return self.start <= coordinate < self.end


@dataclass(frozen=True)
class Fingerprint:
    """Size and mtime of the source GFA, used to spot stale indices."""

    size: int
    mtime_ns: int = 0

    @classmethod
    def of(cls, path: str | os.PathLike[str] | FsPath) -> Fingerprint:
        st = os.stat(path)
        return cls(size=st.st_size, mtime_ns=st.st_mtime_ns)

    def matches(self, other: Fingerprint) -> bool:
        if self.size != other.size:
            return False
        # mtime 0 means "not recorded"
        return not (self.mtime_ns and other.mtime_ns and self.mtime_ns != other.mtime_ns)


@dataclass
class GfaIndex:
    """Immutable snapshot of the indices built for one GFA file."""

    source_path: str
    fingerprint: Fingerprint
    index_type: IndexType
    segments: dict[str, SegmentEntry] | None = None
    paths: dict[str, PathEntry] | None = None
    positions: dict[str, list[PositionEntry]] | None = None
    version: int = INDEX_VERSION
    warnings: list[str] = field(default_factory=list, compare=False)

    def summary(self) -> str:
        lines = [
            "=== Index Summary ===",
            "",
            f"Source file: {self.source_path}",
            f"Source size: {self.fingerprint.size} bytes",
            f"Version: {self.version}",
            f"Index type: {self.index_type.label()}",
            "",
        ]
        if self.segments is not None:
            lines.append(f"Segment index: {len(self.segments)} entries")
        else:
            lines.append("Segment index: not built")
        if self.paths is not None:
            lines.append(f"Path index: {len(self.paths)} entries")
        else:
            lines.append("Path index: not built")
        if self.positions is not None:
            total = sum(len(v) for v in self.positions.values())
            lines.append(f"Position index: {total} entries across {len(self.positions)} paths")
        else:
            lines.append("Position index: not built")
        return "\n".join(lines) + "\n"
