"""
Depth source access for BamCov.
Defines the reader interface the scanner relies on and opens the matching
back end (D4 container or bedGraph) for a path.
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Callable, Iterable, Iterator, List, Optional, Protocol, Tuple

import numpy as np

from src.bamcov.core.errors import NoMatchingTrack
from src.bamcov.core.models import ChromosomeInfo

logger = logging.getLogger(__name__)

VIEW_CHUNK_SIZE = 1 << 20
BEDGRAPH_SUFFIXES = ('.bed', '.bed.gz', '.bedgraph', '.bedgraph.gz', '.bg', '.bg.gz')


class TrackReader(Protocol):
    """
    One depth track. blocks() yields (start, values) windows and is what the scanner
    consumes; view() is the per-position (position, value) cursor over the same data.
    """
    name: str

    def chromosome_table(self) -> List[ChromosomeInfo]:
        ...

    def view(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, int]]:
        ...

    def blocks(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, np.ndarray]]:
        ...


class DepthContainer(Protocol):
    def list_tracks(self, predicate: Callable[[str], bool]) -> List[str]:
        ...

    def open_track(self, track: str) -> TrackReader:
        ...


def iter_positions(blocks: Iterable[Tuple[int, np.ndarray]]) -> Iterator[Tuple[int, int]]:
    """
    Expand (start, values) windows into (position, value) pairs.
    """
    for start, values in blocks:
        for offset, value in enumerate(np.asarray(values).tolist()):
            yield start + offset, value


def window_bounds(begin: int, end: int, chunk_size: int = VIEW_CHUNK_SIZE) -> Iterator[Tuple[int, int]]:
    for window_start in range(begin, end, chunk_size):
        yield window_start, min(window_start + chunk_size, end)


def is_bedgraph_path(path: str) -> bool:
    return str(path).lower().endswith(BEDGRAPH_SUFFIXES)


def open_depth_source(path: str) -> DepthContainer:
    """
    Open a depth container, choosing the back end from the file name.

    :param path: Path to a .d4 file or a bedGraph style per-base depth file.
    :return: An object exposing list_tracks() and open_track().
    """
    if is_bedgraph_path(path):
        from src.bamcov.parsers.bedgraph_reader import BedGraphContainer
        return BedGraphContainer(path)

    # pyd4 is only needed for D4 input
    from src.bamcov.parsers.d4_reader import D4Container
    return D4Container(path)


def track_stem_predicate(pattern: str) -> Callable[[str], bool]:
    """
    Build a predicate matching the file name stem of a track path against a regex.
    """
    regex = re.compile(pattern)

    def predicate(track_path: str) -> bool:
        return regex.search(PurePosixPath(track_path).name) is not None

    return predicate


def open_track_readers(path: str, track: Optional[str] = None, pattern: str = ".*") -> List[TrackReader]:
    """
    Open every track of the depth source that should be scanned.

    :param path: Path to the depth source.
    :param track: Explicit track name; when given only that track is opened.
    :param pattern: Regex on the track stem used when no explicit track is given.
    :return: Non-empty list of track readers, in container order.
    :raises NoMatchingTrack: If no track matches.
    """
    container = open_depth_source(path)

    if track is not None:
        track_paths = [track]
    else:
        try:
            track_paths = container.list_tracks(track_stem_predicate(pattern))
        except Exception as e:
            logger.warning(f"Error finding tracks in {path}: {e}")
            raise

    if not track_paths:
        raise NoMatchingTrack(f"No track in {path} matches pattern {pattern!r}")

    readers = [container.open_track(track_path) for track_path in track_paths]
    logger.info(f"Opened {len(readers)} track(s) from {path}: {', '.join(r.name for r in readers)}")

    return readers
