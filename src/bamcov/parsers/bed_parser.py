"""
BED region file parser for BamCov.
Converts chrom/begin/end rows into "chrom:begin-end" region specifiers.
"""

import gzip
import logging
from typing import List

from src.bamcov.core.errors import InvalidBedRecord

logger = logging.getLogger(__name__)


def _open_text(path: str):
    if str(path).endswith('.gz'):
        return gzip.open(path, 'rt', encoding='utf-8')
    return open(path, 'r', encoding='utf-8')


def parse_bed(bed_path: str) -> List[str]:
    """
    Parse a BED file into region specifiers, in file order.

    Lines starting with '#' and blank lines are skipped. Every other line must have
    at least three tab-separated fields with integer begin and end; extra fields are ignored.

    :param bed_path: Path to the (optionally gzipped) BED file.
    :return: List of "chrom:begin-end" strings.
    :raises InvalidBedRecord: On the first malformed data line; nothing is returned.
    """
    specs = []

    with _open_text(bed_path) as f:
        for line_number, line in enumerate(f, start=1):
            if line.startswith('#') or not line.strip():
                continue

            fields = line.strip().split('\t')
            if len(fields) < 3:
                raise InvalidBedRecord(bed_path, line_number, line.rstrip('\n'))

            chrom, raw_begin, raw_end = fields[0], fields[1], fields[2]
            try:
                begin, end = int(raw_begin), int(raw_end)
            except ValueError:
                raise InvalidBedRecord(bed_path, line_number, line.rstrip('\n')) from None

            if not chrom or begin < 0 or end < 0:
                raise InvalidBedRecord(bed_path, line_number, line.rstrip('\n'))

            specs.append(f"{chrom}:{begin}-{end}")

    logger.info(f"Read {len(specs)} region(s) from {bed_path}")

    return specs
