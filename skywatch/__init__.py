"""
SkyWatch - Point your device at the sky and see what is flying overhead

Geospatial flight tracking and classification engine built on live ADS-B
data from the OpenSky Network.

Components:
    - config: Runtime configuration and logging setup
    - tracking: Snapshot polling, overhead classification, route lookup and
      the capture workflow

Example:
    >>> from skywatch import Config
    >>> from skywatch.tracking import TrackingSession, Position
    >>> config = Config()
    >>> session = TrackingSession(config, lambda: Position(40.64, -73.78))
"""

from . import config
from . import tracking
from .config import Config, setup_logging

SKYWATCH_VERSION = "v0.1.0"

__version__ = SKYWATCH_VERSION
__license__ = "MIT"

__all__ = [
    "Config",
    "setup_logging",
    "config",
    "tracking",
]
