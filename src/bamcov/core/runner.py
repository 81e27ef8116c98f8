"""
Execution strategies for BamCov.
Runs region resolution and the change-point scan either in the calling process
or statically partitioned across worker processes, then hands the merged run
stream to the statistics layer.
"""

import logging
import math
import multiprocessing
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from src.bamcov.core.coverage_stats import CoverageReport, compute_report
from src.bamcov.core.models import (
    CombinePolicy,
    DepthPolicy,
    ExecutionStrategy,
    Region,
    RunCollection,
    RunConfig,
)
from src.bamcov.core.regions import resolve_regions
from src.bamcov.core.scanning import scan_region
from src.bamcov.parsers.track_source import TrackReader, open_depth_source, open_track_readers
from src.bamcov.utils.logging import worker_configurer

logger = logging.getLogger(__name__)


def scan_regions(
    readers: Sequence[TrackReader],
    regions: Sequence[Region],
    combine: CombinePolicy = CombinePolicy.INDEPENDENT,
    depth_policy: DepthPolicy = DepthPolicy.WIDEN,
    collection: Optional[RunCollection] = None
) -> RunCollection:
    """
    Scan every region with the given readers into one collection.

    :param readers: Open track readers sharing one chromosome table.
    :param regions: Resolved regions, indices into the first reader's table.
    :param combine: Per-position combinator for multiple tracks.
    :param depth_policy: Narrowing behaviour for raw track values.
    :param collection: Collection to append to, a new one when omitted.
    :return: The collection holding runs and totals of all regions.
    """
    collection = collection if collection is not None else RunCollection()
    chromosomes = readers[0].chromosome_table()

    for region in regions:
        chrom = chromosomes[region.chrom_index].name
        cursors = [reader.blocks(chrom, region.start, region.end) for reader in readers]
        scan_region(cursors, region, collection, combine, depth_policy)

    return collection


def partition_regions(regions: Sequence[Region], workers: int) -> List[List[Region]]:
    """
    Split the region list into at most `workers` contiguous chunks of near-equal size.
    Empty chunks are dropped.
    """
    if workers < 1:
        raise ValueError(f"Worker count must be at least 1, got {workers}")
    if not regions:
        return []

    chunk_size = math.ceil(len(regions) / workers)
    return [list(regions[i:i + chunk_size]) for i in range(0, len(regions), chunk_size)]


@dataclass
class PartitionTask:
    """
    Work unit for one worker. Only paths and names cross the process boundary;
    each worker opens its own readers.
    """
    source_path: str
    track_names: List[str]
    regions: List[Region]
    combine: CombinePolicy
    depth_policy: DepthPolicy


def scan_partition(task: PartitionTask) -> RunCollection:
    """
    Worker entry point: open private readers and scan one chunk of regions into a local collection.
    """
    container = open_depth_source(task.source_path)
    readers = [container.open_track(name) for name in task.track_names]
    collection = scan_regions(readers, task.regions, task.combine, task.depth_policy)
    logger.debug(
        f"Worker finished {len(task.regions)} region(s): {collection.totals.all_length} positions, "
        f"{len(collection)} runs"
    )
    return collection


def run_partitioned(
    source_path: str,
    track_names: List[str],
    regions: Sequence[Region],
    workers: int,
    combine: CombinePolicy = CombinePolicy.INDEPENDENT,
    depth_policy: DepthPolicy = DepthPolicy.WIDEN,
    log_queue=None
) -> RunCollection:
    """
    Scan the regions with a static partition across worker processes.

    Each worker accumulates a local RunCollection; the parent folds them with one
    merge per worker (run list concatenation plus the sum of the running totals).
    The order of runs in the merged collection depends on worker completion order.

    :return: The merged RunCollection.
    """
    chunks = partition_regions(regions, workers)
    merged = RunCollection()
    if not chunks:
        return merged

    tasks = [
        PartitionTask(str(source_path), list(track_names), chunk, combine, depth_policy)
        for chunk in chunks
    ]

    pool_kwargs = {}
    if log_queue is not None:
        pool_kwargs = {'initializer': worker_configurer, 'initargs': (log_queue,)}

    logger.info(f"Scanning {len(regions)} region(s) in {len(chunks)} partition(s)")
    with multiprocessing.Pool(len(chunks), **pool_kwargs) as pool:
        for partial_collection in pool.imap_unordered(scan_partition, tasks):
            merged.extend(partial_collection)

    return merged


def collect_runs(config: RunConfig, log_queue=None) -> Tuple[RunCollection, List[Region]]:
    """
    Open the depth source, resolve the regions and scan them with the configured strategy.

    :param config: Run configuration.
    :param log_queue: Logging queue handed to pool workers.
    :return: Tuple (collection, resolved regions).
    """
    readers = open_track_readers(config.source_path, config.track, config.track_pattern)
    chromosomes = readers[0].chromosome_table()
    regions = resolve_regions(config.region_specs, chromosomes)
    logger.info(f"Resolved {len(regions)} region(s) over {len(chromosomes)} chromosome(s)")

    if config.strategy == ExecutionStrategy.PARTITIONED and config.threads > 1:
        collection = run_partitioned(
            config.source_path,
            [reader.name for reader in readers],
            regions,
            config.threads,
            config.combine,
            config.depth_policy,
            log_queue
        )
    else:
        collection = scan_regions(readers, regions, config.combine, config.depth_policy)

    logger.info(
        f"Scanned {collection.totals.all_length} positions into {len(collection)} runs"
    )

    return collection, regions


def run_coverage(config: RunConfig, log_queue=None) -> CoverageReport:
    """
    Full pipeline: scan according to the configured strategy and compute the report.
    """
    collection, _ = collect_runs(config, log_queue)
    return compute_report(
        collection,
        config.thresholds,
        config.percentile_method,
        threads=config.threads,
        parallel_reduce=config.strategy == ExecutionStrategy.REDUCE,
        log_queue=log_queue
    )
