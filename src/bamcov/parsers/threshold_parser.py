"""
Depth threshold list parser for BamCov.
"""

import argparse
from typing import Tuple


def parse_thresholds(value: str) -> Tuple[int, ...]:
    """
    Parse a comma separated list of depth thresholds, e.g. "10,20,30".
    Duplicates are removed and the thresholds sorted ascending.

    :param value: Comma separated integers.
    :return: Sorted tuple of distinct thresholds.
    :raises argparse.ArgumentTypeError: If any entry is not a non-negative integer.
    """
    thresholds = set()
    for item in value.split(','):
        item = item.strip()
        if not item:
            continue
        try:
            threshold = int(item)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Threshold must be a non-negative integer, got {item!r}") from None
        if threshold < 0:
            raise argparse.ArgumentTypeError(f"Threshold must be a non-negative integer, got {item!r}")
        thresholds.add(threshold)

    if not thresholds:
        raise argparse.ArgumentTypeError(f"No thresholds given in {value!r}")

    return tuple(sorted(thresholds))
