"""
SkyWatch Route Resolver
Best-effort departure/arrival lookup from an aircraft's recent flight legs.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ..config import Config
from .airports import resolve_airport
from .auth import create_auth_from_config
from .exceptions import AuthenticationError, UpstreamError
from .models import FlightRoute

logger = logging.getLogger(__name__)


def select_latest_leg(legs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Pick the most recent leg from a flight-leg sequence.

    OpenSky does not document the order of this endpoint. The leg with the
    largest ``lastSeen`` wins; ties and missing timestamps fall back to
    position in the sequence, so an ascending list yields its last element.
    """
    if not legs:
        return None

    def sort_key(item):
        index, leg = item
        last_seen = leg.get('lastSeen')
        if not isinstance(last_seen, (int, float)) or isinstance(last_seen, bool):
            last_seen = float('-inf')
        return (last_seen, index)

    index, latest = max(enumerate(legs), key=sort_key)
    if index != len(legs) - 1:
        logger.debug(
            "Flight legs not in ascending order, using leg %d of %d", index + 1, len(legs)
        )
    return latest


class RouteResolver:
    """Resolves a best-guess route for one aircraft from its flight history."""

    def __init__(self, config: Config, auth: Optional[Any] = None):
        self.config = config
        self.api_url = config.flights_url
        self.api_timeout = config.api_timeout
        self.lookback_seconds = config.route_lookback_hours * 3600
        self.auth = auth if auth is not None else create_auth_from_config(config)

    def _get(self, params: dict) -> requests.Response:
        if self.auth:
            return self.auth.make_authenticated_request(
                self.api_url, params=params, timeout=self.api_timeout
            )
        return requests.get(self.api_url, params=params, timeout=self.api_timeout)

    def fetch_legs(self, icao24: str, end: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch the flight legs flown by ``icao24`` in the lookback window.

        Raises:
            UpstreamError: If the request fails or the body is malformed
        """
        end = int(end if end is not None else time.time())
        params = {
            'icao24': icao24.lower(),
            'begin': end - self.lookback_seconds,
            'end': end,
        }

        try:
            response = self._get(params)

            # OpenSky answers 404 when it has no legs for the window
            if response.status_code == 404:
                return []

            response.raise_for_status()
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

        if data is None:
            return []

        if not isinstance(data, list):
            raise UpstreamError("malformed flight leg list")

        return [leg for leg in data if isinstance(leg, dict)]

    def build_route(self, leg: Optional[Dict[str, Any]]) -> FlightRoute:
        """Resolve a leg's estimated airports through the airport directory."""
        if not leg:
            return FlightRoute()

        departure = leg.get('estDepartureAirport')
        arrival = leg.get('estArrivalAirport')

        return FlightRoute(
            departure_airport=resolve_airport(departure) if departure else None,
            arrival_airport=resolve_airport(arrival) if arrival else None,
        )

    def resolve(self, icao24: str) -> FlightRoute:
        """
        Resolve the most recent route for ``icao24``.

        Never raises for upstream problems: failures and empty histories
        both yield an empty FlightRoute.
        """
        try:
            legs = self.fetch_legs(icao24)
        except UpstreamError as e:
            logger.warning("Route lookup for %s failed: %s", icao24, e)
            return FlightRoute()

        if not legs:
            logger.info("No recent flight legs for %s", icao24)
            return FlightRoute()

        route = self.build_route(select_latest_leg(legs))
        logger.info(
            "Route for %s: %s -> %s",
            icao24,
            route.departure_airport.code if route.departure_airport else "?",
            route.arrival_airport.code if route.arrival_airport else "?",
        )
        return route
