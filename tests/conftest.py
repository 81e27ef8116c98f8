import pytest
import numpy as np
from typing import Dict, List

from src.bamcov.core.models import ChromosomeInfo


class FakeTrackReader:
    """
    In-memory track: dense per-position depths per chromosome, served in fixed windows.
    """

    def __init__(self, depths: Dict[str, List[int]], name: str = "fake", chunk_size: int = 4):
        self.name = name
        self.chunk_size = chunk_size
        self._depths = {chrom: np.asarray(values, dtype=np.int64) for chrom, values in depths.items()}

    def chromosome_table(self):
        return [ChromosomeInfo(chrom, int(values.size)) for chrom, values in self._depths.items()]

    def blocks(self, chrom, begin, end):
        values = self._depths[chrom]
        for start in range(begin, end, self.chunk_size):
            stop = min(start + self.chunk_size, end)
            yield start, values[start:stop]

    def view(self, chrom, begin, end):
        for start, values in self.blocks(chrom, begin, end):
            for offset, value in enumerate(values.tolist()):
                yield start + offset, value


def write_bedgraph(path, depths: Dict[str, List[int]]):
    """
    Write dense depths as a run-length bedGraph, one line per constant interval.
    """
    lines = []
    for chrom, values in depths.items():
        start = 0
        for pos in range(1, len(values) + 1):
            if pos == len(values) or values[pos] != values[start]:
                lines.append(f"{chrom}\t{start}\t{pos}\t{values[start]}")
                start = pos
    path.write_text("\n".join(lines) + "\n")
    return path


def write_bed(path, rows):
    path.write_text("".join(f"{chrom}\t{start}\t{end}\n" for chrom, start, end in rows))
    return path


# 0,0,0,5,5,5,5,0,0,0 on chr1 plus a flat chr2
EXAMPLE_DEPTHS = {
    "chr1": [0, 0, 0, 5, 5, 5, 5, 0, 0, 0],
    "chr2": [2, 2, 2, 2, 2, 2],
}


@pytest.fixture
def example_reader():
    return FakeTrackReader(EXAMPLE_DEPTHS)


@pytest.fixture
def example_bedgraph(tmp_path):
    return write_bedgraph(tmp_path / "sample.per-base.bed", EXAMPLE_DEPTHS)
