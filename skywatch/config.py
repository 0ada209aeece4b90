"""
SkyWatch Configuration Management

This module provides configuration management for the SkyWatch tracking
engine. It includes physical constants, classification settings and runtime
configuration loaded from YAML files.
"""

import copy
import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# =============================================================================
# Physical Constants
# =============================================================================


class Constants:
    """Physical constants representing real-world measurements."""

    EARTH_RADIUS_KM: float = 6371.0  # Earth's radius for distance calculations
    METERS_TO_FEET: float = 3.28084  # Altitude conversion factor
    MS_TO_KMH: float = 3.6  # Velocity conversion: m/s to km/h
    MS_TO_KNOTS: float = 1.94384  # Velocity conversion: m/s to knots


# =============================================================================
# Tracking Settings
# =============================================================================


class Settings:
    """Default settings for snapshot polling and overhead classification."""

    # --- Snapshot Query ---
    BBOX_DELTA_DEG: float = 0.5  # Half-width of the query box (degrees)
    UPDATE_INTERVAL_SECONDS: float = 10.0  # Poll cadence
    API_TIMEOUT_SECONDS: float = 10.0  # Upper bound for one upstream request

    # --- Overhead Band ---
    OVERHEAD_MIN_KM: float = 0.2  # Closer than this is treated as noise
    OVERHEAD_MAX_KM: float = 0.9  # Further than this is not identifiable by eye

    # --- Route Lookup ---
    ROUTE_LOOKBACK_HOURS: int = 24  # Flight-leg history window


# =============================================================================
# Runtime Configuration
# =============================================================================


DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config:
    """
    Runtime configuration manager for SkyWatch.

    Loads settings from YAML files or uses sensible defaults.
    Provides property-based access to common settings.

    Example:
        >>> config = Config('config.yaml')
        >>> print(f"Observing from {config.location_name}")
        >>> print(f"Overhead band: {config.overhead_min_km}-{config.overhead_max_km} km")
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file. If None or missing,
                        uses default configuration.
        """
        self.config_path = config_path
        self._config: Dict[str, Any] = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from YAML file or return defaults.

        Sections absent from the file are filled in from the defaults.

        Returns:
            Configuration dictionary
        """
        if self.config_path is None or not os.path.exists(self.config_path):
            return self._get_default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config file %s: %s", self.config_path, e)
            return self._get_default_config()

        if not isinstance(config, dict):
            logger.warning("Config file %s is not a mapping, using defaults", self.config_path)
            return self._get_default_config()

        merged = self._merge(self._get_default_config(), config)
        if not self._validate_config(merged):
            logger.warning("Invalid config structure in %s, using defaults", self.config_path)
            return self._get_default_config()

        return merged

    @staticmethod
    def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively overlay ``override`` onto ``base``."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = Config._merge(result[key], value)
            else:
                result[key] = value
        return result

    def _validate_config(self, config: Dict[str, Any]) -> bool:
        """
        Validate configuration structure and required fields.

        Args:
            config: Configuration dictionary to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            # Required: location section
            location = config["location"]
            assert isinstance(location["latitude"], (float, int))
            assert isinstance(location["longitude"], (float, int))
            assert -90 <= location["latitude"] <= 90
            assert -180 <= location["longitude"] <= 180

            # Required: tracking section
            tracking = config["tracking"]
            assert isinstance(tracking["update_interval_seconds"], (float, int))
            assert tracking["update_interval_seconds"] > 0
            assert isinstance(tracking["bbox_delta_deg"], (float, int))
            assert tracking["bbox_delta_deg"] > 0
            assert 0 <= tracking["overhead_min_km"] <= tracking["overhead_max_km"]
            assert isinstance(tracking["keep_snapshot_on_error"], bool)

            # Required: capture section
            assert isinstance(config["capture"]["require_overhead"], bool)

            # Required: routes section
            assert config["routes"]["lookback_hours"] > 0

            # Required: api section
            assert isinstance(config["api"]["states_url"], str)
            assert isinstance(config["api"]["flights_url"], str)
            assert config["api"]["timeout_seconds"] > 0

            return True
        except (AssertionError, KeyError, TypeError):
            return False

    def _get_default_config(self) -> Dict[str, Any]:
        """
        Get default configuration.

        Returns:
            Default configuration dictionary
        """
        from .tracking.constants import OPENSKY_FLIGHTS_URL, OPENSKY_STATES_URL

        return {
            "location": {
                "latitude": 40.6413,
                "longitude": -73.7781,
                "name": "JFK Airport, New York",
            },
            "tracking": {
                "bbox_delta_deg": Settings.BBOX_DELTA_DEG,
                "update_interval_seconds": Settings.UPDATE_INTERVAL_SECONDS,
                "overhead_min_km": Settings.OVERHEAD_MIN_KM,
                "overhead_max_km": Settings.OVERHEAD_MAX_KM,
                "keep_snapshot_on_error": True,
            },
            "routes": {"lookback_hours": Settings.ROUTE_LOOKBACK_HOURS},
            "capture": {"require_overhead": True},
            "api": {
                "states_url": OPENSKY_STATES_URL,
                "flights_url": OPENSKY_FLIGHTS_URL,
                "timeout_seconds": Settings.API_TIMEOUT_SECONDS,
                "credentials_path": None,  # Path to OAuth2 credentials.json
            },
            "logging": {"level": "INFO", "format": DEFAULT_LOG_FORMAT},
        }

    def save_config(self) -> None:
        """
        Save current configuration to YAML file.

        Raises:
            ValueError: If config_path is not set
        """
        if self.config_path is None:
            raise ValueError("Cannot save config: no config_path specified")

        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False)

    # --- Property Accessors ---

    @property
    def home_latitude(self) -> float:
        """Get fixed observer latitude in degrees."""
        return float(self._config["location"]["latitude"])

    @property
    def home_longitude(self) -> float:
        """Get fixed observer longitude in degrees."""
        return float(self._config["location"]["longitude"])

    @property
    def location_name(self) -> str:
        """Get descriptive location name."""
        return self._config["location"].get("name", "Unknown Location")

    @property
    def bbox_delta(self) -> float:
        """Get half-width of the snapshot query box in degrees."""
        return float(self._config["tracking"]["bbox_delta_deg"])

    @property
    def update_interval(self) -> float:
        """Get poll interval in seconds."""
        return float(self._config["tracking"]["update_interval_seconds"])

    @property
    def overhead_min_km(self) -> float:
        return float(self._config["tracking"]["overhead_min_km"])

    @property
    def overhead_max_km(self) -> float:
        return float(self._config["tracking"]["overhead_max_km"])

    @property
    def keep_snapshot_on_error(self) -> bool:
        """Whether a failed poll leaves the previous snapshot in place."""
        return self._config["tracking"]["keep_snapshot_on_error"]

    @property
    def route_lookback_hours(self) -> int:
        return int(self._config["routes"]["lookback_hours"])

    @property
    def require_overhead(self) -> bool:
        """Whether capture only considers overhead aircraft."""
        return self._config["capture"]["require_overhead"]

    @property
    def states_url(self) -> str:
        return self._config["api"]["states_url"]

    @property
    def flights_url(self) -> str:
        return self._config["api"]["flights_url"]

    @property
    def api_timeout(self) -> float:
        """Get upstream request timeout in seconds."""
        return float(self._config["api"]["timeout_seconds"])

    # --- Generic Accessors ---

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., 'location.latitude')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('tracking.update_interval_seconds', 10)
            10
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., 'location.latitude')
            value: Value to set

        Example:
            >>> config.set('tracking.overhead_max_km', 1.2)
        """
        keys = key.split(".")
        config = self._config

        # Navigate to parent of target key
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value


def setup_logging(config: Config) -> None:
    """Configure the root logger from the ``logging`` section."""
    level_name = str(config.get("logging.level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format=config.get("logging.format", DEFAULT_LOG_FORMAT),
    )
