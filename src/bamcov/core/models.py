"""
Data models for BamCov.
Defines chromosome and region coordinates, the run-length encoded depth stream,
its running totals and the configuration of a coverage run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import numpy as np

from src.bamcov.core.errors import EmptyCoverageError

DEFAULT_THRESHOLDS: Tuple[int, ...] = (1, 10, 20, 30, 50)
MAX_NARROW_DEPTH = int(np.iinfo(np.uint16).max)


class ExecutionStrategy(Enum):
    """
    How the scan and the statistics reduction are scheduled.
    """
    SEQUENTIAL = "sequential"
    REDUCE = "reduce"
    PARTITIONED = "partitioned"


class PercentileMethod(Enum):
    SORT = "sort"
    SELECT = "select"


class CombinePolicy(Enum):
    """
    How the values of several tracks at one position are turned into runs.
    INDEPENDENT emits one run per track, the others fold the tracks into one signal.
    """
    INDEPENDENT = "independent"
    SUM = "sum"
    MIN = "min"
    MAX = "max"


class DepthPolicy(Enum):
    """
    What to do with raw track values that do not fit an unsigned 16-bit depth.
    """
    WIDEN = "widen"
    SATURATE = "saturate"
    REJECT = "reject"


@dataclass(frozen=True)
class ChromosomeInfo:
    name: str
    size: int


@dataclass(frozen=True, order=True)
class Region:
    """
    Half-open interval [start, end) on the chromosome at chrom_index of the track's table.
    Ordering follows (chrom_index, start, end).
    """
    chrom_index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class DepthRun:
    length: int
    value: int


@dataclass
class RunningTotals:
    """
    Cumulative sums kept alongside the run stream.
    """
    all_length: int = 0
    total_depth: int = 0
    depth_x1: int = 0

    def add_runs(self, lengths: np.ndarray, values: np.ndarray):
        self.all_length += int(lengths.sum())
        self.total_depth += int((lengths * values).sum())
        self.depth_x1 += int(lengths[values >= 1].sum())

    def merge(self, other: "RunningTotals"):
        self.all_length += other.all_length
        self.total_depth += other.total_depth
        self.depth_x1 += other.depth_x1

    @property
    def mean(self) -> float:
        if self.all_length == 0:
            raise EmptyCoverageError("No positions were scanned, mean depth is undefined")
        return self.total_depth / self.all_length


class RunCollection:
    """
    Append-only run-length encoded depth stream with its running totals.

    Runs are kept as a list of numpy chunks (one per flush) so that merging
    partial collections from workers is a plain list concatenation.
    """

    def __init__(self):
        self._length_chunks: List[np.ndarray] = []
        self._value_chunks: List[np.ndarray] = []
        self.totals = RunningTotals()

    def add_runs(self, lengths, values):
        """
        Append runs given as parallel sequences of lengths and depth values.

        :param lengths: Run lengths, each at least 1.
        :param values: Depth value of each run.
        """
        lengths = np.asarray(lengths, dtype=np.int64)
        values = np.asarray(values, dtype=np.int64)
        if lengths.shape != values.shape:
            raise ValueError("Run lengths and values must have the same shape")
        if lengths.size == 0:
            return
        if lengths.min() < 1:
            raise ValueError("Every run must cover at least one position")

        self._length_chunks.append(lengths)
        self._value_chunks.append(values)
        self.totals.add_runs(lengths, values)

    def add_run(self, length: int, value: int):
        self.add_runs([length], [value])

    def extend(self, other: "RunCollection"):
        """
        Merge another collection into this one: concatenation of runs plus summed totals.
        """
        self._length_chunks.extend(other._length_chunks)
        self._value_chunks.extend(other._value_chunks)
        self.totals.merge(other.totals)

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        :return: Tuple (lengths, values) as contiguous int64 arrays.
        """
        if not self._length_chunks:
            empty = np.zeros(0, dtype=np.int64)
            return empty, empty.copy()
        if len(self._length_chunks) > 1:
            self._length_chunks = [np.concatenate(self._length_chunks)]
            self._value_chunks = [np.concatenate(self._value_chunks)]
        return self._length_chunks[0], self._value_chunks[0]

    def __len__(self) -> int:
        return sum(chunk.size for chunk in self._length_chunks)

    def __iter__(self) -> Iterator[DepthRun]:
        for lengths, values in zip(self._length_chunks, self._value_chunks):
            for length, value in zip(lengths.tolist(), values.tolist()):
                yield DepthRun(length=length, value=value)


@dataclass
class RunConfig:
    """
    Everything needed to turn a depth source and a region list into a report.
    """
    source_path: str
    region_specs: Optional[List[str]] = None
    thresholds: Tuple[int, ...] = DEFAULT_THRESHOLDS
    threads: int = 1
    strategy: ExecutionStrategy = ExecutionStrategy.SEQUENTIAL
    percentile_method: PercentileMethod = PercentileMethod.SELECT
    combine: CombinePolicy = CombinePolicy.INDEPENDENT
    depth_policy: DepthPolicy = DepthPolicy.WIDEN
    track: Optional[str] = None
    track_pattern: str = ".*"
