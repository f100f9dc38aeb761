"""In-memory GFA graph built by folding parsed records.

Used by the stats and validate commands, which need the whole graph. The
index builder and query engine never materialise it. to_networkx() hands the
topology to networkx for graph algorithms.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import networkx as nx

from pgtools.errors import DuplicateNameError
from pgtools.models import Header, Link, Path, Segment, Skipped, Walk
from pgtools.parser import iter_lines, parse_line

if TYPE_CHECKING:
    import os
    from collections.abc import Iterable, Iterator

    from pgtools.models import Record

logger = logging.getLogger("pgtools.graph")


class GfaGraph:
    """Segments, links, paths and walks of one GFA file.

    Paths and walks share one namespace (a walk is named
    sample#haplotype#sequence_id). Segment and path names must be unique.
    """

    def __init__(self) -> None:
        self.header = Header()
        self._segments: dict[str, Segment] = {}
        self._paths: dict[str, Path | Walk] = {}
        self._links: list[Link] = []
        self.comment_lines = 0
        self.other_records = 0         # C, E, F, G, O, U and unknown record types

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: str | os.PathLike[str], *, keep_sequences: bool = True) -> GfaGraph:
        graph = cls()
        for raw in iter_lines(path):
            graph.insert(raw.parse(), line_number=raw.line_number, keep_sequence=keep_sequences)
        logger.info(
            "loaded %s: %d segments, %d links, %d paths",
            path, graph.segment_count(), graph.link_count(), graph.path_count(),
        )
        return graph

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> GfaGraph:
        graph = cls()
        offset = 0
        for line_number, line in enumerate(lines, start=1):
            record = parse_line(line, offset=offset, line_number=line_number)
            graph.insert(record, line_number=line_number)
            offset += len(line.encode("utf-8"))
            if not line.endswith("\n"):
                offset += 1
        return graph

    def insert(self, record: Record, *, line_number: int | None = None, keep_sequence: bool = True) -> None:
        """Add one record. Raises DuplicateNameError for a repeated segment/path name."""
        match record:
            case Segment():
                if record.name in self._segments:
                    raise DuplicateNameError(record.name, "segment", line_number)
                if not keep_sequence:
                    record.sequence = None
                self._segments[record.name] = record
            case Path() | Walk():
                if record.name in self._paths:
                    raise DuplicateNameError(record.name, "path", line_number)
                self._paths[record.name] = record
            case Link():
                self._links.append(record)
            case Header():
                if record.version is not None:
                    self.header.version = record.version
                self.header.tags.update(record.tags)
            case Skipped(record_type="#"):
                self.comment_lines += 1
            case Skipped(record_type=""):
                pass
            case Skipped():
                self.other_records += 1

    # ------------------------------------------------------------------
    # Read-only access
    # ------------------------------------------------------------------

    def segment(self, name: str) -> Segment | None:
        return self._segments.get(name)

    def path(self, name: str) -> Path | Walk | None:
        return self._paths.get(name)

    def has_segment(self, name: str) -> bool:
        return name in self._segments

    def segments(self) -> Iterator[Segment]:
        return iter(self._segments.values())

    def paths(self) -> Iterator[Path | Walk]:
        return iter(self._paths.values())

    def links(self) -> tuple[Link, ...]:
        return tuple(self._links)

    def segment_count(self) -> int:
        return len(self._segments)

    def path_count(self) -> int:
        return len(self._paths)

    def link_count(self) -> int:
        return len(self._links)

    def total_sequence_length(self) -> int:
        return sum(s.sequence_length for s in self._segments.values())

    def path_length(self, name: str) -> int | None:
        """Sum of segment lengths along a path; undefined segments count as 0."""
        p = self._paths.get(name)
        if p is None:
            return None
        total = 0
        for step in p.steps:
            seg = self._segments.get(step.segment)
            if seg is not None:
                total += seg.sequence_length
        return total

    def to_networkx(self) -> nx.MultiGraph:
        """Undirected multigraph: one node per segment, one edge per link.

        Nodes carry a 'length' attribute; edges carry the link orientations and
        overlap. Links naming an undefined segment are left out.
        """
        g = nx.MultiGraph()
        # nodes first so unconnected segments are kept
        for seg in self._segments.values():
            g.add_node(seg.name, length=seg.sequence_length)
        for link in self._links:
            if link.from_segment not in self._segments or link.to_segment not in self._segments:
                continue
            g.add_edge(
                link.from_segment,
                link.to_segment,
                from_orientation=str(link.from_orientation),
                to_orientation=str(link.to_orientation),
                overlap=link.overlap,
            )
        return g
