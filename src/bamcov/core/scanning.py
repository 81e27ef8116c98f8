"""
Change-point scan for BamCov.
Walks one or more depth tracks over a region in lock-step and converts the dense
per-position signal into run-length encoded DepthRun records.
"""

import logging
from itertools import zip_longest
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from src.bamcov.core.errors import CursorDesyncError, DepthOutOfRange
from src.bamcov.core.models import (
    MAX_NARROW_DEPTH,
    CombinePolicy,
    DepthPolicy,
    Region,
    RunCollection,
)

logger = logging.getLogger(__name__)

Block = Tuple[int, np.ndarray]


def apply_depth_policy(values: np.ndarray, policy: DepthPolicy) -> np.ndarray:
    """
    Narrow raw signed track values to depths according to the policy.

    :param values: Raw values for a window of one track.
    :param policy: WIDEN keeps any non-negative value, SATURATE clips into the
                   unsigned 16-bit range, REJECT refuses anything outside it.
    :return: int64 array of depths.
    :raises DepthOutOfRange: On negative values (WIDEN, REJECT) or values above 65535 (REJECT).
    """
    values = np.asarray(values, dtype=np.int64)
    if values.size == 0:
        return values

    if policy == DepthPolicy.SATURATE:
        return np.clip(values, 0, MAX_NARROW_DEPTH)

    low = int(values.min())
    if low < 0:
        raise DepthOutOfRange(f"Negative depth value {low} reported by track")

    if policy == DepthPolicy.REJECT:
        high = int(values.max())
        if high > MAX_NARROW_DEPTH:
            raise DepthOutOfRange(f"Depth value {high} does not fit in 16 bits")

    return values


def combine_tracks(matrix: np.ndarray, policy: CombinePolicy) -> np.ndarray:
    """
    Fold a (tracks x positions) matrix into the signal used for change detection.

    :return: The matrix unchanged for INDEPENDENT, otherwise a (1 x positions) matrix.
    """
    if policy == CombinePolicy.INDEPENDENT or matrix.shape[0] == 1:
        return matrix
    if policy == CombinePolicy.SUM:
        return matrix.sum(axis=0, keepdims=True)
    if policy == CombinePolicy.MIN:
        return matrix.min(axis=0, keepdims=True)
    if policy == CombinePolicy.MAX:
        return matrix.max(axis=0, keepdims=True)
    raise ValueError(f"Unsupported combine policy: {policy}")


def emit_runs(collection: RunCollection, lengths: np.ndarray, values: np.ndarray):
    """
    Append closed runs to the collection, one DepthRun per track row for every run.

    :param lengths: Length of each closed run.
    :param values: (tracks x runs) matrix of the value vector of each run.
    """
    tracks = values.shape[0]
    collection.add_runs(np.repeat(lengths, tracks), values.T.reshape(-1))


class TrackScanner:
    """
    Stateful scan of a single region.

    Holds the value vector of the run in progress and its length; everything else
    is emitted into the collection as soon as a change point closes a run, so memory
    is bounded by the number of runs and one window per track.
    """

    def __init__(self, region: Region, collection: RunCollection,
                 combine: CombinePolicy = CombinePolicy.INDEPENDENT,
                 depth_policy: DepthPolicy = DepthPolicy.WIDEN):
        self.region = region
        self.collection = collection
        self.combine = combine
        self.depth_policy = depth_policy
        self.expected_pos = region.start
        self.current: Optional[np.ndarray] = None
        self.run_length = 0

    def feed(self, windows: Sequence[Block]):
        """
        Consume one window from every track.

        :param windows: One (start, values) window per track, all covering the same positions.
        :raises CursorDesyncError: If a window does not start at the expected position
                                   or the tracks disagree on its length.
        """
        arrays = []
        for start, values in windows:
            if start != self.expected_pos:
                raise CursorDesyncError(
                    f"Track reported position {start}, expected {self.expected_pos}"
                )
            arrays.append(apply_depth_policy(values, self.depth_policy))

        width = arrays[0].size
        if any(array.size != width for array in arrays):
            raise CursorDesyncError(f"Tracks returned windows of different lengths at {self.expected_pos}")
        if width == 0:
            return
        if self.expected_pos + width > self.region.end:
            raise CursorDesyncError(f"Track reported positions past region end {self.region.end}")

        signal = combine_tracks(np.vstack(arrays), self.combine)

        if self.current is None:
            self.current = signal[:, 0].copy()

        # compare every position with its predecessor, the first one with the run in progress
        previous = np.concatenate([self.current[:, None], signal[:, :-1]], axis=1)
        change_points = np.flatnonzero(np.any(signal != previous, axis=0))

        if change_points.size == 0:
            self.run_length += width
        else:
            lengths = np.diff(change_points, prepend=0)
            lengths[0] += self.run_length
            values = np.concatenate([self.current[:, None], signal[:, change_points[:-1]]], axis=1)
            keep = lengths > 0
            emit_runs(self.collection, lengths[keep], values[:, keep])

            self.current = signal[:, change_points[-1]].copy()
            self.run_length = width - int(change_points[-1])

        self.expected_pos += width

    def finish(self):
        """
        Flush the run in progress up to the region end.

        :raises CursorDesyncError: If the tracks stopped before the region end.
        """
        if self.expected_pos != self.region.end:
            raise CursorDesyncError(
                f"Tracks ended at {self.expected_pos}, expected region end {self.region.end}"
            )
        if self.run_length > 0:
            emit_runs(self.collection, np.array([self.run_length]), self.current[:, None])
        self.current = None
        self.run_length = 0


def scan_region(
    cursors: Sequence[Iterable[Block]],
    region: Region,
    collection: RunCollection,
    combine: CombinePolicy = CombinePolicy.INDEPENDENT,
    depth_policy: DepthPolicy = DepthPolicy.WIDEN
) -> RunCollection:
    """
    Scan one region of k >= 1 synchronised track cursors into the collection.

    :param cursors: One iterator of (start, values) windows per track over [region.start, region.end).
    :param region: The region being scanned.
    :param collection: Accumulator receiving runs and totals.
    :param combine: Per-position combinator for multiple tracks.
    :param depth_policy: Narrowing behaviour for raw track values.
    :return: The same collection, for chaining.
    """
    if not cursors:
        raise ValueError("At least one track cursor is required")
    if region.start >= region.end:
        return collection

    scanner = TrackScanner(region, collection, combine, depth_policy)
    for windows in zip_longest(*cursors):
        if any(window is None for window in windows):
            raise CursorDesyncError(f"Tracks returned a different number of windows for {region}")
        scanner.feed(windows)
    scanner.finish()
    logger.debug(f"Scanned {region.length} positions of region {region}, {len(collection)} runs so far")

    return collection
