"""Exceptions raised by outbound data sources."""

from .base import LeagueError


class DataSourceError(LeagueError):
    """An external collaborator could not be reached or returned bad data."""

    error_code = "LG_SRC_001"


class RaceResultUnavailableError(DataSourceError):
    """Race-result provider request failed."""

    error_code = "LG_SRC_002"
