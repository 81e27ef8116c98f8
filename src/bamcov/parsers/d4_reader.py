"""
D4 depth file reader for BamCov.
Thin adapter over pyd4 exposing track listing, the chromosome table and
windowed per-position views.
"""

import logging
from typing import Callable, Iterator, List, Tuple

import numpy as np
from pyd4 import D4File

from src.bamcov.core.errors import CursorDesyncError
from src.bamcov.core.models import ChromosomeInfo
from src.bamcov.parsers.track_source import VIEW_CHUNK_SIZE, iter_positions, window_bounds

logger = logging.getLogger(__name__)

# track names pyd4 uses for the unnamed default track
DEFAULT_TRACK_NAMES = ('', '.', '/')


class D4TrackReader:
    """
    One track of a D4 file.
    """

    def __init__(self, d4_file: D4File, name: str, chunk_size: int = VIEW_CHUNK_SIZE):
        self._file = d4_file
        self.name = name
        self.chunk_size = chunk_size

    def chromosome_table(self) -> List[ChromosomeInfo]:
        return [ChromosomeInfo(name=str(name), size=int(size)) for name, size in self._file.chroms()]

    def blocks(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, np.ndarray]]:
        """
        Yield (start, values) windows covering [begin, end).

        :raises CursorDesyncError: If pyd4 returns a window of the wrong length.
        """
        for window_start, window_end in window_bounds(begin, end, self.chunk_size):
            values = np.asarray(self._file[(chrom, window_start, window_end)])
            if values.size != window_end - window_start:
                raise CursorDesyncError(
                    f"Track {self.name!r} returned {values.size} values for "
                    f"{chrom}:{window_start}-{window_end}"
                )
            yield window_start, values

    def view(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, int]]:
        return iter_positions(self.blocks(chrom, begin, end))


class D4Container:
    """
    A D4 file, possibly holding several tracks.
    """

    def __init__(self, path: str):
        self.path = str(path)
        self._root = D4File(self.path)

    def list_tracks(self, predicate: Callable[[str], bool]) -> List[str]:
        tracks = [str(track) for track in self._root.list_tracks()]
        logger.debug(f"Tracks in {self.path}: {tracks}")
        return [track for track in tracks if predicate(track)]

    def open_track(self, track: str) -> D4TrackReader:
        if track in DEFAULT_TRACK_NAMES:
            return D4TrackReader(self._root, track)
        return D4TrackReader(D4File(f"{self.path}:{track}"), track)
