"""
SkyWatch Data Models

Typed records for everything that flows through the tracking engine.

OpenSky state vector format (array indices):
    [0] icao24 - unique ICAO 24-bit address
    [1] callsign - callsign
    [2] origin_country - country name
    [3] time_position - Unix timestamp (unused)
    [4] last_contact - Unix timestamp (unused)
    [5] longitude
    [6] latitude
    [7] baro_altitude - barometric altitude in meters
    [8] on_ground - boolean
    [9] velocity - ground speed in m/s
    [10] true_track - degrees clockwise from north
    [11..16] vertical rate, sensors, geo altitude, squawk, spi, source (unused)
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional

from .constants import (
    MIN_STATE_VECTOR_LENGTH,
    UNKNOWN_AIRPORT_NAME,
    UNKNOWN_CALLSIGN,
    UNKNOWN_COUNTRY,
)


def _as_float(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class Position:
    """A WGS84 coordinate in degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class AircraftState:
    """
    One observed aircraft at a point in time.

    ``distance_km``, ``bearing_deg`` and ``is_overhead`` are derived
    relative to an observer and are filled in by the ingester on every poll.
    Unknown numeric fields stay None, never zero.
    """

    icao24: str
    callsign: str
    origin_country: str
    position: Optional[Position]
    baro_altitude: Optional[float]
    velocity: Optional[float]
    true_track: Optional[float]
    on_ground: bool
    distance_km: Optional[float] = None
    bearing_deg: Optional[float] = None
    is_overhead: bool = False

    @classmethod
    def from_array(cls, arr: List[Any]) -> Optional["AircraftState"]:
        """
        Decode a raw OpenSky state vector into an AircraftState.

        Returns None if the array is too short or has no usable identifier.
        Missing optional fields are preserved as unknown.
        """
        if not isinstance(arr, (list, tuple)) or len(arr) < MIN_STATE_VECTOR_LENGTH:
            return None

        icao24 = arr[0]
        if not icao24 or not isinstance(icao24, str):
            return None

        callsign = arr[1].strip() if isinstance(arr[1], str) else ""
        origin_country = arr[2] if isinstance(arr[2], str) and arr[2] else UNKNOWN_COUNTRY

        longitude = _as_float(arr[5])
        latitude = _as_float(arr[6])
        position = None
        if latitude is not None and longitude is not None:
            position = Position(latitude=latitude, longitude=longitude)

        return cls(
            icao24=icao24.strip().lower(),
            callsign=callsign or UNKNOWN_CALLSIGN,
            origin_country=origin_country,
            position=position,
            baro_altitude=_as_float(arr[7]),
            velocity=_as_float(arr[9]),
            true_track=_as_float(arr[10]),
            on_ground=bool(arr[8]),
        )

    def has_position(self) -> bool:
        """Check if this state has valid position data."""
        return self.position is not None


@dataclass(frozen=True)
class FlightSnapshot:
    """
    One ranked set of aircraft observed in a single poll cycle.

    ``aircraft`` is ordered ascending by distance (stable). ``error`` is None
    for a successful poll and a short diagnostic when the upstream request
    failed, in which case ``aircraft`` is empty.
    """

    observer: Position
    aircraft: List[AircraftState] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def overhead(self) -> List[AircraftState]:
        """Aircraft currently inside the overhead band, nearest first."""
        return [state for state in self.aircraft if state.is_overhead]

    @property
    def nearest(self) -> Optional[AircraftState]:
        return self.aircraft[0] if self.aircraft else None

    @property
    def nearest_overhead(self) -> Optional[AircraftState]:
        overhead = self.overhead
        return overhead[0] if overhead else None

    def __len__(self) -> int:
        return len(self.aircraft)

    def __iter__(self) -> Iterator[AircraftState]:
        return iter(self.aircraft)


@dataclass(frozen=True)
class AirportInfo:
    """Reference data for one airport, keyed by its ICAO code."""

    code: str
    name: str
    city: str
    country: str

    @classmethod
    def placeholder(cls, code: str) -> "AirportInfo":
        """Fallback record for a code that is not in the directory."""
        return cls(code=code, name=UNKNOWN_AIRPORT_NAME, city=code, country="")


@dataclass(frozen=True)
class FlightRoute:
    """Best-guess departure and arrival for a captured aircraft."""

    departure_airport: Optional[AirportInfo] = None
    arrival_airport: Optional[AirportInfo] = None

    @property
    def is_empty(self) -> bool:
        return self.departure_airport is None and self.arrival_airport is None


@dataclass(frozen=True)
class PlaneAnalysis:
    """Outcome of an image classifier run on a captured still."""

    is_plane: bool
    confidence: float = 0.0
    airline: Optional[str] = None
    aircraft_type: Optional[str] = None
    livery_description: Optional[str] = None
    interesting_fact: Optional[str] = None

    @classmethod
    def not_identifiable(cls) -> "PlaneAnalysis":
        return cls(is_plane=False, confidence=0.0)


class RouteStatus(Enum):
    """Lifecycle of the route lookup attached to a capture."""

    LOADING = "loading"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class CaptureResult:
    """
    The aircraft selected at capture time plus its enrichment.

    The route starts out LOADING and is filled in by the session when the
    lookup completes. A failed or timed-out lookup leaves an empty route.
    """

    aircraft: AircraftState
    captured_at: float = field(default_factory=time.time)
    route: FlightRoute = field(default_factory=FlightRoute)
    route_status: RouteStatus = RouteStatus.LOADING
    analysis: Optional[PlaneAnalysis] = None

    @property
    def route_loading(self) -> bool:
        return self.route_status is RouteStatus.LOADING
