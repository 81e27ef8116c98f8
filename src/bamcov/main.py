"""
Main entry point for the BamCov command-line tool.
Computes depth-of-coverage statistics (coverage at thresholds, mean depth,
Fold80, CV) over the regions of a BED file from a D4 depth file.
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from src.bamcov.core.models import (
    DEFAULT_THRESHOLDS,
    CombinePolicy,
    DepthPolicy,
    ExecutionStrategy,
    PercentileMethod,
    RunConfig,
)
from src.bamcov.core.runner import run_coverage
from src.bamcov.parsers.bed_parser import parse_bed
from src.bamcov.parsers.threshold_parser import parse_thresholds
from src.bamcov.reporting.report_generator import write_report
from src.bamcov.utils.logging import setup_logging

__version__ = "0.1.0"


def validate_file_exists(filepath: str, description: str = "File") -> None:
    """Validate that a file exists and is readable."""
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"{description} not found: {filepath}")
    if not os.access(filepath, os.R_OK):
        raise PermissionError(f"{description} is not readable: {filepath}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bamcov",
        description="BamCov: bases covered calculation for WGS, exome or targeted sequencing from a depth file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Mandatory
    parser.add_argument("-d", "--d4-format", dest="d4_file", required=True,
                        help="D4 depth file (https://github.com/38/d4-format) or a per-base bedGraph")
    parser.add_argument("-r", "--region", dest="region_file", required=True,
                        help="BED file of the regions to summarise")

    # Optional
    parser.add_argument("-t", "--threshold", dest="thresholds", type=parse_thresholds,
                        default=DEFAULT_THRESHOLDS,
                        help="Comma separated depth thresholds, e.g. 10,20,30")
    parser.add_argument("-o", "--output", help="Write the table to this file instead of stdout")
    parser.add_argument("--track", help="Name of the track to read (default: all tracks matching --track-pattern)")
    parser.add_argument("--track-pattern", default=".*", help="Regex selecting tracks by name")

    # Configurable
    parser.add_argument("-p", "--threads", type=int, default=1, help="Number of worker processes")
    parser.add_argument("--strategy", choices=[s.value for s in ExecutionStrategy],
                        help="Execution strategy (default: sequential for one worker, partitioned otherwise)")
    parser.add_argument("--percentile-method", choices=[m.value for m in PercentileMethod],
                        default=PercentileMethod.SELECT.value,
                        help="Order statistic algorithm used for Fold80")
    parser.add_argument("--combine", choices=[c.value for c in CombinePolicy],
                        default=CombinePolicy.INDEPENDENT.value,
                        help="How values of several tracks at one position are combined")
    parser.add_argument("--depth-policy", choices=[p.value for p in DepthPolicy],
                        default=DepthPolicy.WIDEN.value,
                        help="Handling of depth values outside the unsigned 16-bit range")

    parser.add_argument("--log-file", help="Write a DEBUG level log to this file")
    parser.add_argument("--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def build_config(args: argparse.Namespace, region_specs: List[str]) -> RunConfig:
    if args.threads < 1:
        raise ValueError(f"--threads must be at least 1, got {args.threads}")

    if args.strategy is not None:
        strategy = ExecutionStrategy(args.strategy)
    elif args.threads > 1:
        strategy = ExecutionStrategy.PARTITIONED
    else:
        strategy = ExecutionStrategy.SEQUENTIAL

    return RunConfig(
        source_path=args.d4_file,
        region_specs=region_specs,
        thresholds=tuple(args.thresholds),
        threads=args.threads,
        strategy=strategy,
        percentile_method=PercentileMethod(args.percentile_method),
        combine=CombinePolicy(args.combine),
        depth_policy=DepthPolicy(args.depth_policy),
        track=args.track,
        track_pattern=args.track_pattern
    )


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    log_queue, log_listener = setup_logging(Path(args.log_file) if args.log_file else None, args.verbose)

    logger = logging.getLogger(__name__)
    try:
        start_time = time.time()
        logger.info("Starting BamCov...")

        validate_file_exists(args.d4_file, "Depth file")
        validate_file_exists(args.region_file, "Region file")

        region_specs = parse_bed(args.region_file)
        config = build_config(args, region_specs)
        logger.info(
            f"Strategy: {config.strategy.value}, threads: {config.threads}, "
            f"thresholds: {','.join(str(t) for t in config.thresholds)}"
        )

        report = run_coverage(config, log_queue)
        write_report(report, handle=sys.stdout, output_path=args.output)

        print(f"Total execution time: {time.time() - start_time:.3f}s")
        logger.info("BamCov complete.")
    except Exception as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        log_listener.stop()


if __name__ == "__main__":
    main()
