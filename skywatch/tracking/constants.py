"""
SkyWatch Tracking Constants
Global constants used by the tracking engine.
"""

# API constants
OPENSKY_STATES_URL = "https://opensky-network.org/api/states/all"
OPENSKY_FLIGHTS_URL = "https://opensky-network.org/api/flights/aircraft"
OPENSKY_TOKEN_URL = (
    "https://auth.opensky-network.org/auth/realms/opensky-network"
    "/protocol/openid-connect/token"
)
DEFAULT_API_TIMEOUT = 10  # seconds

# Tracking constants
DEFAULT_BBOX_DELTA_DEG = 0.5
DEFAULT_UPDATE_INTERVAL = 10  # seconds

# Overhead band (kilometers, inclusive)
OVERHEAD_MIN_DISTANCE_KM = 0.2
OVERHEAD_MAX_DISTANCE_KM = 0.9

# Route lookup
ROUTE_LOOKBACK_SECONDS = 24 * 60 * 60

# Sentinels for fields the source left blank
UNKNOWN_CALLSIGN = "UNKNOWN"
UNKNOWN_COUNTRY = "Unknown"
UNKNOWN_AIRPORT_NAME = "Unknown Airport"

# Minimum state vector length carrying every field we read (up to true_track)
MIN_STATE_VECTOR_LENGTH = 11

# Seconds shaved off a token's lifetime before it is considered expired
TOKEN_EXPIRY_BUFFER_SECONDS = 120
