"""
Region resolution for BamCov.
Parses region specifiers of the form CHR[:[FROM-]TO] and resolves them against
the chromosome table of the depth source into sorted (chrom_index, start, end) regions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from src.bamcov.core.errors import InvalidRegionSpec, UnknownChromosome
from src.bamcov.core.models import ChromosomeInfo, Region

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionSpec:
    """
    A parsed region specifier. A missing start means 0, a missing end means the chromosome size.
    """
    chrom: str
    start: Optional[int] = None
    end: Optional[int] = None


def _parse_coordinate(text: str, spec: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise InvalidRegionSpec(f"Invalid region spec {spec!r}: {text!r} is not a position")
    return int(text)


def parse_region_spec(spec: str) -> RegionSpec:
    """
    Parse a single region specifier.

    Accepted forms: "chr1", "chr1:500" (start defaults to 0) and "chr1:100-200".

    :param spec: Region specifier string.
    :return: The parsed RegionSpec.
    :raises InvalidRegionSpec: If the string does not follow the grammar.
    """
    chrom, separator, coordinates = spec.strip().partition(':')
    if not chrom:
        raise InvalidRegionSpec(f"Invalid region spec {spec!r}: missing chromosome")
    if not separator:
        return RegionSpec(chrom)

    start_text, dash, end_text = coordinates.partition('-')
    if not dash:
        return RegionSpec(chrom, None, _parse_coordinate(start_text, spec))

    start = _parse_coordinate(start_text, spec)
    end = _parse_coordinate(end_text, spec)
    if start > end:
        raise InvalidRegionSpec(f"Invalid region spec {spec!r}: start {start} is after end {end}")

    return RegionSpec(chrom, start, end)


def build_chrom_index(chromosomes: Sequence[ChromosomeInfo]) -> Dict[str, int]:
    """
    Map chromosome name to its index in the table. A repeated name keeps its first index.
    """
    index = {}
    for idx, chrom in enumerate(chromosomes):
        index.setdefault(chrom.name, idx)
    return index


def lookup_chromosome(chrom_index: Dict[str, int], name: str) -> int:
    try:
        return chrom_index[name]
    except KeyError:
        raise UnknownChromosome(name) from None


def resolve_region(spec: RegionSpec, chromosomes: Sequence[ChromosomeInfo],
                   chrom_index: Dict[str, int]) -> Region:
    """
    Turn a parsed spec into a Region, clamping coordinates to the chromosome size.

    :raises UnknownChromosome: If the chromosome is not in the table.
    """
    idx = lookup_chromosome(chrom_index, spec.chrom)
    size = chromosomes[idx].size

    start = spec.start if spec.start is not None else 0
    end = spec.end if spec.end is not None else size

    if end > size:
        logger.warning(
            f"Region {spec.chrom}:{start}-{end} extends past the end of {spec.chrom} ({size}), clamping"
        )
        end = size
        start = min(start, end)

    return Region(idx, start, end)


def resolve_regions(
    specs: Optional[Iterable[str]],
    chromosomes: Sequence[ChromosomeInfo]
) -> List[Region]:
    """
    Resolve region specifiers into a sorted list of regions.

    With no specs every chromosome is covered in full, in table order. Specs naming a
    chromosome absent from the table are dropped with a warning. Duplicates and
    overlaps are kept as given.

    :param specs: Region specifier strings, or None for the whole table.
    :param chromosomes: Chromosome table of the depth source.
    :return: Regions sorted by (chrom_index, start, end).
    :raises InvalidRegionSpec: If any spec fails the grammar.
    """
    if specs is None:
        return [Region(idx, 0, chrom.size) for idx, chrom in enumerate(chromosomes)]

    chrom_index = build_chrom_index(chromosomes)
    regions = []
    dropped = 0

    for raw_spec in specs:
        spec = parse_region_spec(raw_spec)
        try:
            regions.append(resolve_region(spec, chromosomes, chrom_index))
        except UnknownChromosome:
            logger.warning(f"Ignoring chromosome {spec.chrom} which is not defined in the depth file")
            dropped += 1

    if dropped:
        logger.info(f"Dropped {dropped} region(s) on unknown chromosomes")

    regions.sort()
    logger.debug(f"Resolved {len(regions)} region(s)")

    return regions
