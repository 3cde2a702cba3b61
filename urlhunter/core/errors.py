"""
Exception hierarchy for urlhunter.

Every failure the pipeline reports is a HunterError so callers can tell
expected, reportable conditions apart from programming errors.
"""


class HunterError(Exception):
    """Base class for all urlhunter errors."""


class ConfigurationError(HunterError):
    """Missing or invalid run configuration; fatal before any work starts."""


class DateFormatError(ConfigurationError):
    pass


class CatalogError(HunterError):
    """The archive catalog could not be queried or understood."""


class ArchiveNotFoundError(CatalogError):
    pass


class DownloadError(HunterError):
    pass


class DownloadCancelled(DownloadError):
    pass


class ExtractionError(HunterError):
    pass


class CorruptArchiveError(ExtractionError):
    pass


class UnsafeArchiveError(ExtractionError):
    """A zip member would be written outside the destination directory."""


class DecompressionError(ExtractionError):
    pass


class AcquisitionError(HunterError):
    pass


class BeaconParseError(HunterError):
    pass


class MatcherError(HunterError):
    pass


class ManifestError(HunterError):
    """The archive manifest could not be stored or read locally."""
