from __future__ import annotations

from pathlib import Path

import pytest

SIMPLE_GFA = (
    "H\tVN:Z:1.0\n"
    "S\ts1\tACGTACGT\n"
    "S\ts2\tGGGGGGGG\n"
    "S\ts3\tTTTTTTTT\n"
    "L\ts1\t+\ts2\t+\t0M\n"
    "L\ts2\t+\ts3\t+\t0M\n"
    "P\tpath1\ts1+,s2+,s3+\t*\n"
)

# S1 len 100, S2 len 50 (given by LN), P1 = S1+,S2+
SCENARIO_GFA = (
    "H\tVN:Z:1.0\n"
    "S\tS1\t" + "A" * 100 + "\n"
    "S\tS2\t*\tLN:i:50\n"
    "L\tS1\t+\tS2\t+\t*\n"
    "P\tP1\tS1+,S2+\t*\n"
)


@pytest.fixture
def write_gfa(tmp_path: Path):
    def _write(content: str, name: str = "graph.gfa") -> Path:
        path = tmp_path / name
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def simple_gfa(write_gfa) -> Path:
    return write_gfa(SIMPLE_GFA)


@pytest.fixture
def scenario_gfa(write_gfa) -> Path:
    return write_gfa(SCENARIO_GFA)
