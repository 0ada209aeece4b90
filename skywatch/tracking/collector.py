"""
SkyWatch Flight Snapshot Collector
Fetches aircraft state vectors around an observer and ranks them by distance.
"""

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional

import requests

from ..config import Config
from .auth import create_auth_from_config
from .exceptions import AuthenticationError, UpstreamError
from .models import AircraftState, FlightSnapshot, Position
from .utils import bearing_deg, distance_km, get_bounding_box

logger = logging.getLogger(__name__)


class FlightCollector:
    """Builds ranked, classified flight snapshots from the OpenSky Network."""

    def __init__(self, config: Config, auth: Optional[Any] = None):
        """
        Initialize flight collector.

        Args:
            config: SkyWatch configuration object
            auth: Optional OpenSkyAuth; built from config when omitted
        """
        self.config = config
        self.bbox_delta = config.bbox_delta
        self.overhead_min_km = config.overhead_min_km
        self.overhead_max_km = config.overhead_max_km
        self.api_url = config.states_url
        self.api_timeout = config.api_timeout

        self.auth = auth if auth is not None else create_auth_from_config(config)

        self.iteration_count = 0
        self.consecutive_failures = 0
        self.rate_limit_count = 0

    def _get(self, params: dict) -> requests.Response:
        if self.auth:
            return self.auth.make_authenticated_request(
                self.api_url, params=params, timeout=self.api_timeout
            )
        return requests.get(self.api_url, params=params, timeout=self.api_timeout)

    def fetch_states(self, observer: Position) -> List[list]:
        """
        Fetch raw state vectors inside the bounding box around ``observer``.

        Returns:
            List of state vector arrays, empty if the area has no traffic

        Raises:
            UpstreamError: If the request fails or the body is malformed
        """
        lamin, lomin, lamax, lomax = get_bounding_box(
            observer.latitude, observer.longitude, self.bbox_delta
        )
        params = {
            'lamin': lamin,
            'lomin': lomin,
            'lamax': lamax,
            'lomax': lomax
        }

        try:
            response = self._get(params)

            if response.status_code == 429:
                self.rate_limit_count += 1
                retry_after = response.headers.get('Retry-After', 'unknown')
                raise UpstreamError(
                    f"rate limited by OpenSky (retry after {retry_after}s)"
                )

            response.raise_for_status()
            self.rate_limit_count = 0

            data = response.json()

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise UpstreamError(f"HTTP error {status}") from e
        except requests.exceptions.Timeout as e:
            raise UpstreamError(f"request timed out after {self.api_timeout}s") from e
        except ValueError as e:
            raise UpstreamError(f"could not parse response: {e}") from e
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"request failed: {e}") from e
        except AuthenticationError as e:
            raise UpstreamError(f"authentication failed: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamError("malformed response body")

        states = data.get('states')
        if states is None:
            return []

        if not isinstance(states, list):
            raise UpstreamError("malformed 'states' field")

        return states

    def is_overhead(self, distance: float, on_ground: bool) -> bool:
        """Inclusive distance band check; grounded aircraft never qualify."""
        if on_ground:
            return False
        return self.overhead_min_km <= distance <= self.overhead_max_km

    def classify(self, state: AircraftState, observer: Position) -> AircraftState:
        """Return ``state`` with its derived fields computed against ``observer``."""
        if state.position is None:
            return replace(state, distance_km=None, bearing_deg=None, is_overhead=False)

        distance = distance_km(observer, state.position)
        return replace(
            state,
            distance_km=distance,
            bearing_deg=bearing_deg(observer, state.position),
            is_overhead=self.is_overhead(distance, state.on_ground),
        )

    def process_state(self, raw: Any, observer: Position) -> Optional[AircraftState]:
        """Decode and classify one raw state vector, or None if unusable."""
        state = AircraftState.from_array(raw)
        if state is None:
            return None
        return self.classify(state, observer)

    def build_snapshot(self, raw_states: Iterable[Any], observer: Position) -> FlightSnapshot:
        """
        Turn raw state vectors into a snapshot sorted by distance.

        Aircraft without a position sort after all positioned ones.
        ``sorted`` is stable, so equal distances keep their input order.
        """
        aircraft = []
        skipped = 0
        for raw in raw_states:
            state = self.process_state(raw, observer)
            if state is None:
                skipped += 1
                continue
            aircraft.append(state)

        if skipped:
            logger.debug("Skipped %d malformed state vector(s)", skipped)

        aircraft = sorted(
            aircraft,
            key=lambda s: (s.distance_km is None, s.distance_km or 0.0),
        )
        return FlightSnapshot(observer=observer, aircraft=aircraft)

    def fetch_snapshot(self, observer: Position) -> FlightSnapshot:
        """
        Fetch and classify the aircraft around ``observer``.

        Never raises for upstream problems: a failed fetch yields an empty
        snapshot whose ``error`` field describes the failure.
        """
        self.iteration_count += 1

        try:
            raw_states = self.fetch_states(observer)
        except UpstreamError as e:
            self.consecutive_failures += 1
            logger.warning(
                "Snapshot #%d failed (%d consecutive): %s",
                self.iteration_count, self.consecutive_failures, e,
            )
            return FlightSnapshot(observer=observer, error=str(e))

        self.consecutive_failures = 0
        snapshot = self.build_snapshot(raw_states, observer)

        logger.info(
            "Snapshot #%d: %d aircraft, %d overhead",
            self.iteration_count, len(snapshot), len(snapshot.overhead),
        )
        return snapshot
