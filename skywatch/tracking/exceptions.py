"""
SkyWatch Tracking Exceptions
"""


class AuthenticationError(Exception):
    """Raised when an OpenSky access token cannot be obtained."""


class UpstreamError(Exception):
    """A REST request to the aircraft data source failed or returned garbage."""


class PositionUnavailableError(Exception):
    """The position provider could not supply a fix (denied or unavailable)."""
