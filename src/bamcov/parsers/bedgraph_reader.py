"""
bedGraph depth reader for BamCov.
Reads per-base depth intervals (e.g. mosdepth *.per-base.bed.gz) and serves them
through the same windowed view interface as a D4 track.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Tuple

import numpy as np
import pandas as pd

from src.bamcov.core.models import ChromosomeInfo
from src.bamcov.parsers.track_source import VIEW_CHUNK_SIZE, iter_positions, window_bounds

logger = logging.getLogger(__name__)

BEDGRAPH_COLUMNS = ['chrom', 'start', 'end', 'depth']


def parse_bedgraph(bedgraph_path: str) -> pd.DataFrame:
    """
    Parse a 4-column bedGraph file into a DataFrame sorted by chromosome order and start.

    :param bedgraph_path: Path to the (optionally gzipped) bedGraph file.
    :return: A pandas DataFrame with columns chrom, start, end, depth.
    """
    try:
        df = pd.read_csv(
            bedgraph_path, sep='\t', header=None, comment='#', usecols=[0, 1, 2, 3],
            names=BEDGRAPH_COLUMNS,
            dtype={'chrom': str, 'start': np.int64, 'end': np.int64, 'depth': np.int64}
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"bedGraph file {bedgraph_path} is empty.")
        return pd.DataFrame(columns=BEDGRAPH_COLUMNS)
    except Exception as e:
        logger.error(f"Failed to read bedGraph file {bedgraph_path}: {e}")
        raise

    # keep chromosomes in order of first appearance
    df['chrom'] = pd.Categorical(df['chrom'], categories=df['chrom'].unique(), ordered=True)
    df = df.sort_values(by=['chrom', 'start'], kind='stable').reset_index(drop=True)

    return df


class BedGraphTrack:
    """
    Single depth track backed by in-memory bedGraph intervals. Positions not covered
    by any interval read as depth 0.
    """

    def __init__(self, df: pd.DataFrame, name: str, chunk_size: int = VIEW_CHUNK_SIZE):
        self.name = name
        self.chunk_size = chunk_size
        self._chromosomes = [
            ChromosomeInfo(name=str(chrom), size=int(group['end'].max()))
            for chrom, group in df.groupby('chrom', observed=True, sort=True)
        ]
        self._intervals: Dict[str, Tuple[np.ndarray, np.ndarray, np.ndarray]] = {
            str(chrom): (
                group['start'].to_numpy(dtype=np.int64),
                group['end'].to_numpy(dtype=np.int64),
                group['depth'].to_numpy(dtype=np.int64)
            )
            for chrom, group in df.groupby('chrom', observed=True, sort=True)
        }

    def chromosome_table(self) -> List[ChromosomeInfo]:
        return list(self._chromosomes)

    def blocks(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, np.ndarray]]:
        starts, ends, depths = self._intervals.get(
            chrom, (np.zeros(0, np.int64), np.zeros(0, np.int64), np.zeros(0, np.int64))
        )
        for window_start, window_end in window_bounds(begin, end, self.chunk_size):
            values = np.zeros(window_end - window_start, dtype=np.int64)
            first = np.searchsorted(ends, window_start, side='right')
            last = np.searchsorted(starts, window_end, side='left')
            if last > first:
                lo = np.maximum(starts[first:last], window_start) - window_start
                hi = np.minimum(ends[first:last], window_end) - window_start
                widths = np.maximum(hi - lo, 0)
                # offset of each covered position within its own interval
                offsets = np.arange(int(widths.sum())) - np.repeat(np.cumsum(widths) - widths, widths)
                values[np.repeat(lo, widths) + offsets] = np.repeat(depths[first:last], widths)
            yield window_start, values

    def view(self, chrom: str, begin: int, end: int) -> Iterator[Tuple[int, int]]:
        return iter_positions(self.blocks(chrom, begin, end))


class BedGraphContainer:
    """
    A bedGraph file seen as a container with one track named after the file.
    """

    def __init__(self, path: str):
        self.path = str(path)
        self.track_name = Path(self.path).name
        self._df = parse_bedgraph(self.path)
        logger.debug(f"Loaded {len(self._df)} intervals from {self.path}")

    def list_tracks(self, predicate: Callable[[str], bool]) -> List[str]:
        return [self.track_name] if predicate(self.track_name) else []

    def open_track(self, track: str) -> BedGraphTrack:
        if track != self.track_name:
            logger.warning(f"bedGraph file {self.path} has a single track, ignoring track name {track!r}")
        return BedGraphTrack(self._df, self.track_name)
