# ABOUTME: Registry of supported surf locations and their upstream station ids
# ABOUTME: Reports are cached per location name

from dataclasses import dataclass


@dataclass(frozen=True)
class Location:
    """A surf spot with coordinates and the NOAA tide station nearest to it"""
    name: str
    lat: float
    lon: float
    tide_station: str
    tide_station_name: str
    timezone: str = "America/New_York"


LOCATIONS: dict[str, Location] = {
    "St. Augustine, FL": Location(
        name="St. Augustine, FL",
        lat=29.9,
        lon=-81.3,
        tide_station="8720587",
        tide_station_name="St. Augustine Beach, FL",
    ),
}
