"""pgtools: random access into GFA pangenome graphs through byte-offset indices.

Layout next to a GFA file:
    graph.gfa
    graph.gfa.pgi         # binary index: segment / path / position sub-indices

Typical use:
    idx = build_index("graph.gfa", IndexType.FULL)   # two streaming passes
    save_index(idx, "graph.gfa.pgi")
    with IndexedReader.open("graph.gfa", "graph.gfa.pgi") as reader:
        reader.get_segment("s1")
        reader.query_position("chr1", 1234)

The index stores offsets only; sequences stay in the GFA and are re-read on
demand. An index is a snapshot: rebuild it when the GFA changes.
"""

from pgtools.builder import build_index
from pgtools.config import PgToolsConfig, init_config, load_config
from pgtools.errors import PgToolsError
from pgtools.graph import GfaGraph
from pgtools.models import GfaIndex, IndexType, Orientation, PositionEntry
from pgtools.parser import parse_line
from pgtools.query import IndexedReader
from pgtools.serialize import load_index, save_index

__all__ = [
    "GfaGraph",
    "GfaIndex",
    "IndexType",
    "IndexedReader",
    "Orientation",
    "PgToolsConfig",
    "PgToolsError",
    "PositionEntry",
    "build_index",
    "init_config",
    "load_config",
    "load_index",
    "parse_line",
    "save_index",
]
