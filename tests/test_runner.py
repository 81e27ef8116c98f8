import pytest
from conftest import EXAMPLE_DEPTHS, FakeTrackReader, write_bedgraph
from src.bamcov.core.models import (
    CombinePolicy,
    ExecutionStrategy,
    PercentileMethod,
    Region,
    RunConfig,
)
from src.bamcov.core.runner import (
    collect_runs,
    partition_regions,
    run_coverage,
    run_partitioned,
    scan_regions,
)


def test_partition_regions_ceil_chunks():
    regions = [Region(0, i, i + 1) for i in range(7)]

    chunks = partition_regions(regions, 3)

    # ceil(7 / 3) = 3 regions per chunk
    assert [len(c) for c in chunks] == [3, 3, 1]
    assert [r for c in chunks for r in c] == regions


def test_partition_regions_more_workers_than_regions():
    regions = [Region(0, 0, 1), Region(0, 1, 2)]
    assert partition_regions(regions, 8) == [[Region(0, 0, 1)], [Region(0, 1, 2)]]
    assert partition_regions([], 4) == []


def test_partition_regions_invalid_workers():
    with pytest.raises(ValueError):
        partition_regions([Region(0, 0, 1)], 0)


def test_scan_regions_multiple_regions(example_reader):
    regions = [Region(0, 0, 5), Region(0, 5, 10), Region(1, 0, 6)]

    collection = scan_regions([example_reader], regions)

    # chr1 split at 5: [0,0,0,5,5] + [5,5,0,0,0]; chr2 flat
    assert [(r.length, r.value) for r in collection] == [(3, 0), (2, 5), (2, 5), (3, 0), (6, 2)]
    assert collection.totals.all_length == 16
    assert collection.totals.total_depth == 32
    assert collection.totals.depth_x1 == 10


def test_scan_regions_overlapping_regions_count_twice(example_reader):
    collection = scan_regions([example_reader], [Region(1, 0, 6), Region(1, 0, 6)])
    assert collection.totals.all_length == 12


def test_scan_regions_combined_tracks():
    readers = [FakeTrackReader({"chr1": [1, 2, 3]}, "a"), FakeTrackReader({"chr1": [3, 2, 1]}, "b")]

    collection = scan_regions(readers, [Region(0, 0, 3)], combine=CombinePolicy.SUM)

    assert [(r.length, r.value) for r in collection] == [(3, 4)]


def test_run_partitioned_matches_sequential(example_bedgraph):
    config = RunConfig(source_path=str(example_bedgraph), region_specs=["chr1:0-4", "chr1:4-10", "chr2"])

    sequential, regions = collect_runs(config)
    partitioned = run_partitioned(str(example_bedgraph), [example_bedgraph.name], regions, workers=2)

    assert partitioned.totals == sequential.totals
    assert sorted((r.length, r.value) for r in partitioned) == sorted((r.length, r.value) for r in sequential)


@pytest.mark.parametrize("strategy, threads", [
    (ExecutionStrategy.SEQUENTIAL, 1),
    (ExecutionStrategy.REDUCE, 2),
    (ExecutionStrategy.PARTITIONED, 2),
    (ExecutionStrategy.PARTITIONED, 1),
])
def test_run_coverage_strategies_agree(tmp_path, strategy, threads):
    depths = dict(EXAMPLE_DEPTHS, chr3=[0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 0])
    bedgraph = write_bedgraph(tmp_path / "depth.bedgraph", depths)
    specs = ["chr1:0-10", "chr2:0-3", "chr3:2-12", "chr2:3-6", "chrUn:0-5"]

    baseline = run_coverage(RunConfig(source_path=str(bedgraph), region_specs=specs,
                                      percentile_method=PercentileMethod.SORT))
    report = run_coverage(RunConfig(source_path=str(bedgraph), region_specs=specs,
                                    threads=threads, strategy=strategy))

    assert report.total_bases == baseline.total_bases == 26
    assert report.covered_bases == baseline.covered_bases
    assert report.threshold_coverage == baseline.threshold_coverage
    assert report.mean_depth == pytest.approx(baseline.mean_depth)
    assert report.cv == pytest.approx(baseline.cv)
    assert report.fold80 == pytest.approx(baseline.fold80)
    assert report.above_20pct_mean == pytest.approx(baseline.above_20pct_mean)


def test_run_coverage_whole_file(example_bedgraph):
    report = run_coverage(RunConfig(source_path=str(example_bedgraph)))

    # chr1 (10) + chr2 (6) positions, 4 at depth 5 and 6 at depth 2
    assert report.total_bases == 16
    assert report.covered_bases == 10
    assert report.mean_depth == pytest.approx(32 / 16)
