"""Summary statistics over a GfaGraph (the `pgtools stats` command)."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

import networkx as nx

if TYPE_CHECKING:
    from pgtools.graph import GfaGraph

# (min inclusive, max exclusive, label)
_LENGTH_BINS: list[tuple[int, float, str]] = [
    (0, 100, "0-100"),
    (100, 500, "100-500"),
    (500, 1_000, "500-1K"),
    (1_000, 5_000, "1K-5K"),
    (5_000, 10_000, "5K-10K"),
    (10_000, 50_000, "10K-50K"),
    (50_000, 100_000, "50K-100K"),
    (100_000, 500_000, "100K-500K"),
    (500_000, 1_000_000, "500K-1M"),
    (1_000_000, float("inf"), ">1M"),
]


def compute_n50(lengths: list[int]) -> int:
    """Length L such that segments of length >= L hold at least half the total."""
    if not lengths:
        return 0
    half = sum(lengths) / 2
    running = 0
    for length in sorted(lengths, reverse=True):
        running += length
        if running >= half:
            return length
    return 0


def compute_n_bases(graph: GfaGraph) -> int:
    """Count of N/n bases over segments that carry a sequence."""
    return sum(seg.sequence.upper().count("N") for seg in graph.segments() if seg.sequence)


def compute_gc_content(graph: GfaGraph) -> float:
    """GC percentage over A/C/G/T bases of segments that carry a sequence."""
    gc = total = 0
    for seg in graph.segments():
        if not seg.sequence:
            continue
        counts = Counter(seg.sequence.upper())
        gc += counts["G"] + counts["C"]
        total += counts["G"] + counts["C"] + counts["A"] + counts["T"]
    return gc / total * 100.0 if total else 0.0


def compute_connected_components(graph: GfaGraph) -> int:
    """Undirected components over links; isolated segments count as one each."""
    return nx.number_connected_components(graph.to_networkx())


def compute_length_histogram(lengths: list[int]) -> list[tuple[str, int]]:
    counts = [0] * len(_LENGTH_BINS)
    for length in lengths:
        for i, (lo, hi, _) in enumerate(_LENGTH_BINS):
            if lo <= length < hi:
                counts[i] += 1
                break
    return [(label, counts[i]) for i, (_, _, label) in enumerate(_LENGTH_BINS)]


def compute_degree_distributions(graph: GfaGraph) -> tuple[dict[int, int], dict[int, int]]:
    in_deg: Counter[str] = Counter({seg.name: 0 for seg in graph.segments()})
    out_deg: Counter[str] = Counter({seg.name: 0 for seg in graph.segments()})
    for link in graph.links():
        out_deg[link.from_segment] += 1
        in_deg[link.to_segment] += 1
    return dict(sorted(Counter(in_deg.values()).items())), dict(sorted(Counter(out_deg.values()).items()))


@dataclass
class GfaStats:
    segment_count: int = 0
    link_count: int = 0
    path_count: int = 0
    total_sequence_length: int = 0
    average_segment_length: float = 0.0
    min_segment_length: int = 0
    max_segment_length: int = 0
    n50: int = 0
    gc_content: float = 0.0
    n_bases: int = 0
    connected_components: int = 0
    comment_lines: int = 0
    other_records: int = 0
    average_path_length: float = 0.0       # in steps
    total_path_sequence_length: int = 0
    segment_length_histogram: list[tuple[str, int]] = field(default_factory=list)
    in_degree_distribution: dict[int, int] = field(default_factory=dict)
    out_degree_distribution: dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_graph(cls, graph: GfaGraph) -> GfaStats:
        lengths = [seg.sequence_length for seg in graph.segments()]
        paths = list(graph.paths())
        in_dist, out_dist = compute_degree_distributions(graph)
        return cls(
            segment_count=graph.segment_count(),
            link_count=graph.link_count(),
            path_count=graph.path_count(),
            total_sequence_length=sum(lengths),
            average_segment_length=sum(lengths) / len(lengths) if lengths else 0.0,
            min_segment_length=min(lengths, default=0),
            max_segment_length=max(lengths, default=0),
            n50=compute_n50(lengths),
            gc_content=compute_gc_content(graph),
            n_bases=compute_n_bases(graph),
            connected_components=compute_connected_components(graph),
            comment_lines=graph.comment_lines,
            other_records=graph.other_records,
            average_path_length=sum(len(p.steps) for p in paths) / len(paths) if paths else 0.0,
            total_path_sequence_length=sum(graph.path_length(p.name) or 0 for p in paths),
            segment_length_histogram=compute_length_histogram(lengths),
            in_degree_distribution=in_dist,
            out_degree_distribution=out_dist,
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["segment_length_histogram"] = dict(self.segment_length_histogram)
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def format_summary(self) -> str:
        out = [
            "=== GFA Graph Statistics ===",
            "",
            f"Segments (nodes):        {self.segment_count:>12}",
            f"Links (edges):           {self.link_count:>12}",
            f"Paths:                   {self.path_count:>12}",
            f"Connected components:    {self.connected_components:>12}",
            f"Other records:           {self.other_records:>12}",
            f"Comment lines:           {self.comment_lines:>12}",
            "",
            "--- Sequence Statistics ---",
            f"Total sequence length:   {self.total_sequence_length:>12} bp",
            f"Average segment length:  {self.average_segment_length:>12.2f} bp",
            f"Min segment length:      {self.min_segment_length:>12} bp",
            f"Max segment length:      {self.max_segment_length:>12} bp",
            f"N50:                     {self.n50:>12} bp",
            f"GC content:              {self.gc_content:>12.2f}%",
            f"N bases:                 {self.n_bases:>12}",
            "",
        ]
        if self.path_count:
            out += [
                "--- Path Statistics ---",
                f"Average path length:     {self.average_path_length:>12.2f} segments",
                f"Total path seq length:   {self.total_path_sequence_length:>12} bp",
                "",
            ]
        out.append("--- Segment Length Distribution ---")
        out += [f"{label:>15}: {count:>8}" for label, count in self.segment_length_histogram if count]
        return "\n".join(out) + "\n"
