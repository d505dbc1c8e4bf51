# ABOUTME: Error taxonomy for report caching, regeneration and admin access
# ABOUTME: API layer maps each error to an HTTP status


class SurfLabError(Exception):
    """Base class for all surf report errors."""


class StoreUnavailable(SurfLabError):
    """Durable storage could not be reached or the query failed."""


class DuplicateReportId(SurfLabError):
    """A report with the same id already exists."""


class ConditionFetchFailed(SurfLabError):
    """Upstream marine/tide/weather data could not be fetched or parsed."""


class NarrationFailed(SurfLabError):
    """The AI narration call failed or returned something unusable."""


class Unauthorized(SurfLabError):
    """Missing or wrong shared secret."""


class NoDataAvailable(SurfLabError):
    """No fresh data could be produced and nothing is cached."""


class UnknownLocation(SurfLabError):
    """Requested location is not configured."""
