"""
Exception hierarchy for BamCov.
Parse-level errors are raised before scanning starts; scan-level errors abort the run.
"""


class CoverageError(Exception):
    pass


class InvalidRegionSpec(CoverageError):
    pass


class UnknownChromosome(CoverageError):
    pass


class InvalidBedRecord(CoverageError):
    def __init__(self, path: str, line_number: int, line: str):
        self.path = path
        self.line_number = line_number
        self.line = line
        super().__init__(f"Invalid BED record at {path}:{line_number}: {line!r}")


class NoMatchingTrack(CoverageError):
    pass


class EmptyCoverageError(CoverageError, ZeroDivisionError):
    pass


class CursorDesyncError(CoverageError):
    pass


class DepthOutOfRange(CoverageError):
    pass
