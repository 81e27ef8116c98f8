import math
import pytest
import numpy as np
from src.bamcov.core.coverage_stats import (
    RunSums,
    compute_report,
    fold80_rank,
    summarise_runs,
    summarise_runs_parallel,
)
from src.bamcov.core.errors import EmptyCoverageError
from src.bamcov.core.models import PercentileMethod, RunCollection


def example_collection():
    # 0,0,0,5,5,5,5,0,0,0
    collection = RunCollection()
    collection.add_runs([3, 4, 3], [0, 5, 0])
    return collection


@pytest.mark.parametrize("method", [PercentileMethod.SORT, PercentileMethod.SELECT])
def test_compute_report_example(method):
    report = compute_report(example_collection(), (1, 5, 10), method)

    assert report.total_bases == 10
    assert report.covered_bases == 4
    assert report.cov_ratio == pytest.approx(40.0)
    assert report.mean_depth == pytest.approx(2.0)
    assert report.threshold_coverage == {1: pytest.approx(40.0), 5: pytest.approx(40.0), 10: pytest.approx(0.0)}
    # 6 positions at (0-2)^2 and 4 at (5-2)^2: (24 + 36) / 10
    assert report.variance == pytest.approx(6.0)
    assert report.cv == pytest.approx(math.sqrt(6.0) / 2.0)
    # k = 4 * 2 // 10 = 0, the top depth 5; 5 / 2
    assert report.fold80_depth == 5
    assert report.fold80 == pytest.approx(2.5)
    # 20% of mean is 0.4, 4 positions above it
    assert report.above_20pct_mean == pytest.approx(40.0)


def test_compute_report_fold80_rank():
    assert fold80_rank(4) == 0
    assert fold80_rank(10) == 2
    assert fold80_rank(99) == 19

    # 10 covered positions: 2 at depth 30, 8 at depth 10, 5 uncovered
    collection = RunCollection()
    collection.add_runs([2, 8, 5], [30, 10, 0])
    report = compute_report(collection, (1,), PercentileMethod.SORT)

    # k = 2, the 2nd position from the top is still at depth 30
    assert report.fold80_depth == 30
    assert report.mean_depth == pytest.approx(140 / 15)
    assert report.fold80 == pytest.approx(30 / (140 / 15))


def test_compute_report_zero_mean(caplog):
    collection = RunCollection()
    collection.add_run(10, 0)

    report = compute_report(collection, (1,))

    assert report.cov_ratio == 0.0
    assert report.mean_depth == 0.0
    assert math.isnan(report.cv)
    assert math.isnan(report.fold80)
    assert "Mean depth is 0" in caplog.text


def test_compute_report_empty_raises():
    with pytest.raises(EmptyCoverageError):
        compute_report(RunCollection(), (1,))


def test_empty_coverage_is_zero_division():
    # callers catching the arithmetic error still see an empty scan
    with pytest.raises(ZeroDivisionError):
        compute_report(RunCollection(), (1,))


def test_run_sums_identity_and_addition():
    lengths = np.array([3, 4, 3, 2])
    values = np.array([0, 5, 1, 9])
    whole = summarise_runs(lengths, values, (1, 5), 3.0)

    left = summarise_runs(lengths[:2], values[:2], (1, 5), 3.0)
    right = summarise_runs(lengths[2:], values[2:], (1, 5), 3.0)
    zero = RunSums.zero((1, 5))

    assert zero + whole == whole
    assert (left + right).threshold_bases == whole.threshold_bases
    assert (left + right).above_mean_fraction == whole.above_mean_fraction
    assert (left + right).squared_deviation == pytest.approx(whole.squared_deviation)
    assert whole.threshold_bases == (9, 6)


def test_run_sums_threshold_mismatch():
    with pytest.raises(ValueError):
        RunSums.zero((1,)) + RunSums.zero((1, 10))


def test_parallel_reduce_matches_sequential():
    rng = np.random.default_rng(3)
    lengths = rng.integers(1, 20, size=1000)
    values = rng.integers(0, 60, size=1000)
    mean = float((lengths * values).sum() / lengths.sum())

    sequential = summarise_runs(lengths, values, (1, 10, 30), mean)
    parallel = summarise_runs_parallel(lengths, values, (1, 10, 30), mean, threads=3)

    assert parallel.threshold_bases == sequential.threshold_bases
    assert parallel.above_mean_fraction == sequential.above_mean_fraction
    assert parallel.squared_deviation == pytest.approx(sequential.squared_deviation)


def test_compute_report_parallel_reduce():
    sequential = compute_report(example_collection(), (1, 10))
    parallel = compute_report(example_collection(), (1, 10), threads=2, parallel_reduce=True)

    assert parallel.threshold_coverage == sequential.threshold_coverage
    assert parallel.variance == pytest.approx(sequential.variance)
    assert parallel.fold80 == pytest.approx(sequential.fold80)


def test_report_bounds_and_monotonic_thresholds():
    rng = np.random.default_rng(11)
    collection = RunCollection()
    collection.add_runs(rng.integers(1, 30, size=200), rng.integers(0, 80, size=200))
    thresholds = (0, 1, 5, 10, 20, 40, 79, 80)

    report = compute_report(collection, thresholds)
    coverage = [report.threshold_coverage[t] for t in thresholds]

    assert 0 <= report.covered_bases <= report.total_bases
    assert all(0.0 <= c <= 100.0 for c in coverage)
    assert coverage == sorted(coverage, reverse=True)
    assert coverage[0] == pytest.approx(100.0)
    assert report.mean_depth * report.total_bases == pytest.approx(report.total_depth)
