"""
SkyWatch Tracking Component

Geospatial flight tracking and classification using the OpenSky Network API.

Main Classes:
    - FlightCollector: Ranked, classified snapshots around an observer
    - RouteResolver: Departure/arrival lookup from recent flight legs
    - TrackingSession: Polling lifecycle and capture workflow
    - OpenSkyAuth: OAuth2 authentication

Example:
    >>> from skywatch import Config
    >>> from skywatch.tracking import FlightCollector, Position
    >>> collector = FlightCollector(Config())
    >>> snapshot = collector.fetch_snapshot(Position(40.64, -73.78))
    >>> [a.callsign for a in snapshot.overhead]
"""

# Core tracking components
from .models import (
    AircraftState,
    AirportInfo,
    CaptureResult,
    FlightRoute,
    FlightSnapshot,
    PlaneAnalysis,
    Position,
    RouteStatus,
)
from .airports import format_airport_display, get_airport_info, resolve_airport
from .collector import FlightCollector
from .routes import RouteResolver
from .session import SessionListener, SessionState, TrackingSession
from .auth import OpenSkyAuth, create_auth_from_config
from .exceptions import AuthenticationError, PositionUnavailableError, UpstreamError

# Utilities
from . import utils
from . import constants

__all__ = [
    # Main classes
    "FlightCollector",
    "RouteResolver",
    "TrackingSession",
    "SessionListener",
    "SessionState",
    # Models
    "AircraftState",
    "AirportInfo",
    "CaptureResult",
    "FlightRoute",
    "FlightSnapshot",
    "PlaneAnalysis",
    "Position",
    "RouteStatus",
    # Airport directory
    "get_airport_info",
    "resolve_airport",
    "format_airport_display",
    # Authentication
    "OpenSkyAuth",
    "create_auth_from_config",
    # Errors
    "AuthenticationError",
    "PositionUnavailableError",
    "UpstreamError",
    # Modules
    "utils",
    "constants",
]
