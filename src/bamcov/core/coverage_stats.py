"""
Coverage statistics for BamCov.
Reduces the run stream and its running totals into the reported metrics:
coverage ratio, per-threshold coverage, mean depth, CV, Fold80 and the
fraction of positions above 20% of the mean.
"""

import logging
import math
import multiprocessing
from dataclasses import dataclass, field
from functools import partial, reduce
from typing import Dict, Sequence, Tuple

import numpy as np

from src.bamcov.core.errors import EmptyCoverageError
from src.bamcov.core.models import PercentileMethod, RunCollection
from src.bamcov.core.selection import select_depth
from src.bamcov.utils.logging import worker_configurer

logger = logging.getLogger(__name__)

FOLD80_FRACTION_NUMERATOR = 2
FOLD80_FRACTION_DENOMINATOR = 10
MEAN_FRACTION = 0.2


@dataclass
class RunSums:
    """
    Associative partial sums over a slice of the run stream.
    RunSums.zero() is the identity for +.
    """
    thresholds: Tuple[int, ...]
    threshold_bases: Tuple[int, ...] = ()
    squared_deviation: float = 0.0
    above_mean_fraction: int = 0

    @classmethod
    def zero(cls, thresholds: Sequence[int]) -> "RunSums":
        thresholds = tuple(thresholds)
        return cls(thresholds=thresholds, threshold_bases=(0,) * len(thresholds))

    def __add__(self, other: "RunSums") -> "RunSums":
        if self.thresholds != other.thresholds:
            raise ValueError("Cannot add run sums computed for different thresholds")
        return RunSums(
            thresholds=self.thresholds,
            threshold_bases=tuple(a + b for a, b in zip(self.threshold_bases, other.threshold_bases)),
            squared_deviation=self.squared_deviation + other.squared_deviation,
            above_mean_fraction=self.above_mean_fraction + other.above_mean_fraction
        )


def summarise_runs(lengths: np.ndarray, values: np.ndarray, thresholds: Sequence[int], mean: float) -> RunSums:
    """
    Compute the partial sums for one slice of runs.

    :param lengths: Run lengths.
    :param values: Run depth values.
    :param thresholds: Depth thresholds to count positions at or above.
    :param mean: Mean depth over the whole stream.
    :return: RunSums for this slice.
    """
    thresholds = tuple(thresholds)
    if lengths.size == 0:
        return RunSums.zero(thresholds)

    deviation = values.astype(np.float64) - mean

    return RunSums(
        thresholds=thresholds,
        threshold_bases=tuple(int(lengths[values >= t].sum()) for t in thresholds),
        squared_deviation=float((deviation * deviation * lengths).sum()),
        above_mean_fraction=int(lengths[values > mean * MEAN_FRACTION].sum())
    )


def _summarise_slice(arrays: Tuple[np.ndarray, np.ndarray], thresholds, mean) -> RunSums:
    return summarise_runs(arrays[0], arrays[1], thresholds, mean)


def summarise_runs_parallel(
    lengths: np.ndarray,
    values: np.ndarray,
    thresholds: Sequence[int],
    mean: float,
    threads: int,
    log_queue=None
) -> RunSums:
    """
    Data-parallel version of summarise_runs: the runs are split into contiguous
    slices, summarised in a process pool and folded with RunSums.zero() as identity.

    Integer sums are identical to the sequential pass; the squared deviation may
    differ by floating point reassociation only.
    """
    if threads <= 1 or lengths.size < threads:
        return summarise_runs(lengths, values, thresholds, mean)

    slices = list(zip(np.array_split(lengths, threads), np.array_split(values, threads)))
    summarise_w_args = partial(_summarise_slice, thresholds=tuple(thresholds), mean=mean)

    pool_kwargs = {}
    if log_queue is not None:
        pool_kwargs = {'initializer': worker_configurer, 'initargs': (log_queue,)}

    logger.info(f"Reducing {lengths.size} runs with {threads} workers")
    with multiprocessing.Pool(threads, **pool_kwargs) as pool:
        partials = pool.map(summarise_w_args, slices)

    return reduce(lambda a, b: a + b, partials, RunSums.zero(thresholds))


@dataclass
class CoverageReport:
    """
    One report row.
    """
    total_bases: int
    covered_bases: int
    total_depth: int
    cov_ratio: float
    mean_depth: float
    threshold_coverage: Dict[int, float] = field(default_factory=dict)
    variance: float = 0.0
    std_deviation: float = 0.0
    cv: float = math.nan
    fold80_depth: int = 0
    fold80: float = math.nan
    above_20pct_mean: float = 0.0


def fold80_rank(depth_x1: int) -> int:
    """
    Number of positions from the top at which the Fold80 depth is read: 20% of covered positions.
    """
    return depth_x1 * FOLD80_FRACTION_NUMERATOR // FOLD80_FRACTION_DENOMINATOR


def compute_report(
    collection: RunCollection,
    thresholds: Sequence[int],
    percentile_method: PercentileMethod = PercentileMethod.SELECT,
    threads: int = 1,
    parallel_reduce: bool = False,
    log_queue=None
) -> CoverageReport:
    """
    Reduce a run collection into the coverage report.

    :param collection: Runs and running totals from the scan.
    :param thresholds: Depth thresholds for the Depth>=tX columns.
    :param percentile_method: SelectionEngine implementation used for Fold80.
    :param threads: Worker count for the parallel reduction.
    :param parallel_reduce: Compute the sums in a process pool.
    :param log_queue: Logging queue handed to pool workers.
    :return: The CoverageReport.
    :raises EmptyCoverageError: If no positions were scanned.
    """
    totals = collection.totals
    if totals.all_length == 0:
        raise EmptyCoverageError("No positions were scanned (no regions resolved or all regions empty)")

    mean = totals.mean
    all_length = totals.all_length
    lengths, values = collection.arrays()

    if parallel_reduce:
        sums = summarise_runs_parallel(lengths, values, thresholds, mean, threads, log_queue)
    else:
        sums = summarise_runs(lengths, values, thresholds, mean)

    variance = sums.squared_deviation / all_length
    std_deviation = math.sqrt(variance)

    fold80_depth = select_depth(lengths, values, fold80_rank(totals.depth_x1), percentile_method)

    if mean > 0:
        cv = std_deviation / mean
        fold80 = fold80_depth / mean
    else:
        logger.warning("Mean depth is 0, Fold80 and CV are undefined")
        cv = math.nan
        fold80 = math.nan

    report = CoverageReport(
        total_bases=all_length,
        covered_bases=totals.depth_x1,
        total_depth=totals.total_depth,
        cov_ratio=100.0 * totals.depth_x1 / all_length,
        mean_depth=mean,
        threshold_coverage={t: 100.0 * n / all_length for t, n in zip(sums.thresholds, sums.threshold_bases)},
        variance=variance,
        std_deviation=std_deviation,
        cv=cv,
        fold80_depth=fold80_depth,
        fold80=fold80,
        above_20pct_mean=100.0 * sums.above_mean_fraction / all_length
    )
    logger.debug(f"Coverage report: {report}")

    return report
