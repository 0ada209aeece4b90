"""
SkyWatch Tracking Session

Owns the polling lifecycle, the current snapshot and the capture workflow.

The session runs on a single asyncio event loop. Blocking HTTP calls made by
the collector and resolver are pushed to worker threads, so the loop itself
never blocks. Polls never overlap: a tick that fires while a request is still
outstanding is skipped, and a request that timed out stays outstanding until
its thread returns.

Example:
    >>> session = TrackingSession(config, provider, listener=MyDisplay())
    >>> async with session:
    ...     await asyncio.sleep(60)
    ...     await session.capture()
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from ..config import Config
from .auth import create_auth_from_config
from .collector import FlightCollector
from .exceptions import PositionUnavailableError
from .models import (
    AircraftState,
    CaptureResult,
    FlightRoute,
    FlightSnapshot,
    PlaneAnalysis,
    Position,
    RouteStatus,
)
from .routes import RouteResolver
from .utils import validate_coordinates

logger = logging.getLogger(__name__)

PositionProvider = Callable[[], Union[Position, Awaitable[Position]]]
ImageClassifier = Callable[[bytes], PlaneAnalysis]


def _log_abandoned_fetch(fetch: asyncio.Future) -> None:
    if fetch.cancelled():
        return
    error = fetch.exception()
    if error is not None:
        logger.debug("Abandoned poll finished with an error: %s", error)
    else:
        logger.debug("Abandoned poll finished")


class SessionState(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"  # waiting on the position provider
    TRACKING = "tracking"  # polling active
    CAPTURING = "capturing"  # polling active, one capture on display
    UNAVAILABLE = "unavailable"  # no position, nothing to poll


class SessionListener:
    """
    Hooks for the presentation layer.

    Subclass and override what you need; every hook defaults to a no-op.
    Hooks run on the event loop and should return quickly.
    """

    def on_state_change(self, state: SessionState) -> None:
        pass

    def on_snapshot(self, snapshot: FlightSnapshot) -> None:
        pass

    def on_capture(self, capture: Optional[CaptureResult]) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class TrackingSession:
    """Tracking session controller composing the collector and route resolver."""

    def __init__(
        self,
        config: Config,
        position_provider: PositionProvider,
        collector: Optional[Any] = None,
        resolver: Optional[Any] = None,
        classifier: Optional[ImageClassifier] = None,
        listener: Optional[SessionListener] = None,
    ):
        """
        Initialize a tracking session.

        Args:
            config: SkyWatch configuration object
            position_provider: Callable returning the observer Position (or an
                awaitable of one); raises PositionUnavailableError on failure
            collector: Object with ``fetch_snapshot(Position) -> FlightSnapshot``
            resolver: Object with ``resolve(icao24) -> FlightRoute``
            classifier: Optional callable turning an encoded still into a
                PlaneAnalysis
            listener: Presentation hooks
        """
        self.config = config
        self.position_provider = position_provider

        if collector is None or resolver is None:
            auth = create_auth_from_config(config)
            collector = collector or FlightCollector(config, auth=auth)
            resolver = resolver or RouteResolver(config, auth=auth)
        self.collector = collector
        self.resolver = resolver
        self.classifier = classifier
        self.listener = listener or SessionListener()

        self.update_interval = config.update_interval
        self.request_timeout = config.api_timeout
        self.keep_snapshot_on_error = config.keep_snapshot_on_error
        self.require_overhead = config.require_overhead

        self.state = SessionState.IDLE
        self.position: Optional[Position] = None
        self.snapshot: Optional[FlightSnapshot] = None
        self.capture_result: Optional[CaptureResult] = None
        self.error: Optional[str] = None

        self._poll_task: Optional[asyncio.Task] = None
        self._route_task: Optional[asyncio.Task] = None
        # Worker-thread fetch; a timed-out fetch stays here until its thread returns
        self._fetch: Optional[asyncio.Future] = None
        # Bumped whenever polling stops; responses from older generations are dropped
        self._generation = 0
        self._request_seq = 0
        self._applied_seq = 0

    # --- Read-only views ---

    @property
    def active(self) -> bool:
        """True while polling is running."""
        return self.state in (SessionState.TRACKING, SessionState.CAPTURING)

    @property
    def overhead(self) -> List[AircraftState]:
        return self.snapshot.overhead if self.snapshot else []

    @property
    def poll_in_flight(self) -> bool:
        """True while an upstream fetch is still running, even one that timed out."""
        return self._fetch is not None and not self._fetch.done()

    # --- Lifecycle ---

    async def __aenter__(self) -> "TrackingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> bool:
        """
        Acquire a position and begin polling.

        Returns:
            True if tracking started, False if no position is available
        """
        if self.active or self.state is SessionState.ACQUIRING:
            return self.active

        self.error = None
        self._set_state(SessionState.ACQUIRING)
        generation = self._generation

        try:
            position = self.position_provider()
            if inspect.isawaitable(position):
                position = await position
        except PositionUnavailableError as e:
            if not self._acquire_abandoned(generation):
                self._mark_unavailable(f"Location unavailable: {e}")
            return False
        except Exception:
            if not self._acquire_abandoned(generation):
                self._set_state(SessionState.IDLE)
            raise

        if self._acquire_abandoned(generation):
            return False

        if position is None or not validate_coordinates(position.latitude, position.longitude):
            self._mark_unavailable(f"Location unavailable: invalid position {position!r}")
            return False

        self.position = position
        self._begin_tracking()
        return True

    async def stop(self) -> None:
        """End the session. Safe to call more than once."""
        await self._cancel_polling()
        self._discard_capture()
        self._set_state(SessionState.IDLE)

    async def update_position(self, position: Optional[Position]) -> None:
        """
        Feed a new observer position into the session.

        ``None`` means the position became unavailable: polling stops and the
        session waits in UNAVAILABLE until a position arrives again.
        """
        if position is None:
            await self._cancel_polling()
            self._discard_capture()
            self._mark_unavailable("Location unavailable")
            return

        if not validate_coordinates(position.latitude, position.longitude):
            logger.warning("Ignoring invalid position %r", position)
            return

        self.position = position
        if self.state is SessionState.UNAVAILABLE:
            self.error = None
            self._begin_tracking()

    def _begin_tracking(self) -> None:
        self._set_state(SessionState.TRACKING)
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(
            "Tracking from %.4f, %.4f every %ss",
            self.position.latitude, self.position.longitude, self.update_interval,
        )

    def _acquire_abandoned(self, generation: int) -> bool:
        """True if the session was stopped or moved on while acquiring a position."""
        if generation == self._generation and self.state is SessionState.ACQUIRING:
            return False
        logger.debug("Session ended while acquiring a position")
        return True

    async def _cancel_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        self._generation += 1

        if task is None or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Polling task ended with an error")

    def _mark_unavailable(self, message: str) -> None:
        self.error = message
        logger.warning(message)
        self._set_state(SessionState.UNAVAILABLE)
        self._notify("on_error", message)

    def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state
        self._notify("on_state_change", state)

    def _notify(self, hook: str, *args: Any) -> None:
        try:
            getattr(self.listener, hook)(*args)
        except Exception:
            logger.exception("Listener hook %s failed", hook)

    # --- Polling ---

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self.active:
            started = loop.time()
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Poll failed")
            elapsed = loop.time() - started
            await asyncio.sleep(max(self.update_interval - elapsed, 0.0))

    async def refresh(self) -> bool:
        """Poll once outside the regular cadence."""
        return await self.poll_once()

    async def poll_once(self) -> bool:
        """
        Fetch one snapshot and apply it.

        Returns:
            True if a new snapshot was applied
        """
        if not self.active or self.position is None:
            return False

        if self.poll_in_flight:
            logger.debug("Previous poll still outstanding, skipping tick")
            return False

        self._request_seq += 1
        seq = self._request_seq
        generation = self._generation
        position = self.position

        fetch = asyncio.ensure_future(
            asyncio.to_thread(self.collector.fetch_snapshot, position)
        )
        self._fetch = fetch

        try:
            # shield keeps the fetch observable after a timeout; its thread cannot be killed
            snapshot = await asyncio.wait_for(asyncio.shield(fetch), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            snapshot = FlightSnapshot(
                observer=position,
                error=f"poll timed out after {self.request_timeout}s",
            )
        except Exception as e:
            logger.exception("Unexpected error while polling")
            snapshot = FlightSnapshot(observer=position, error=str(e) or type(e).__name__)
        finally:
            if not fetch.done():
                fetch.add_done_callback(_log_abandoned_fetch)

        if self.position != position:
            logger.debug("Observer moved during poll #%d, dropping snapshot", seq)
            return False

        return self._apply_snapshot(snapshot, seq, generation)

    def _apply_snapshot(self, snapshot: FlightSnapshot, seq: int, generation: int) -> bool:
        if generation != self._generation or not self.active:
            logger.debug("Dropping snapshot from an ended session")
            return False

        if seq <= self._applied_seq:
            logger.debug("Dropping stale snapshot #%d (applied #%d)", seq, self._applied_seq)
            return False

        if snapshot.failed:
            self._notify("on_error", snapshot.error)
            if self.keep_snapshot_on_error and self.snapshot is not None:
                logger.info("Poll failed, keeping previous snapshot: %s", snapshot.error)
                return False

        self._applied_seq = seq
        self.snapshot = snapshot
        self._notify("on_snapshot", snapshot)
        return True

    # --- Capture ---

    def select_candidate(self) -> Optional[AircraftState]:
        """The aircraft a capture would pick right now, if any."""
        if self.snapshot is None:
            return None
        if self.require_overhead:
            return self.snapshot.nearest_overhead
        return self.snapshot.nearest

    async def capture(self, image: Optional[bytes] = None) -> Optional[CaptureResult]:
        """
        Capture the top-ranked candidate and start enriching it.

        The route lookup (and image classification, when an image and a
        classifier are both present) runs in the background; the returned
        CaptureResult is filled in when it completes.

        Returns:
            The new CaptureResult, or None if a capture is already active,
            the session is not tracking, or no aircraft qualifies
        """
        if self.capture_result is not None:
            logger.info("Capture already active, ignoring capture request")
            return None

        if self.state is not SessionState.TRACKING:
            return None

        candidate = self.select_candidate()
        if candidate is None:
            logger.info("Nothing to capture")
            return None

        result = CaptureResult(aircraft=candidate)
        self.capture_result = result
        self._set_state(SessionState.CAPTURING)
        self._notify("on_capture", result)

        logger.info("Captured %s (%s)", candidate.callsign, candidate.icao24)
        self._route_task = asyncio.create_task(self._enrich_capture(result, image))
        return result

    def clear_capture(self) -> None:
        """Dismiss the active capture; a pending lookup for it is ignored."""
        if self.capture_result is None:
            return

        self._discard_capture()
        if self.state is SessionState.CAPTURING:
            self._set_state(SessionState.TRACKING)
        self._notify("on_capture", None)

    def _discard_capture(self) -> None:
        task, self._route_task = self._route_task, None
        self.capture_result = None
        if task is not None and not task.done():
            task.cancel()

    async def _enrich_capture(self, result: CaptureResult, image: Optional[bytes]) -> None:
        if image is not None and self.classifier is not None:
            (route, status), analysis = await asyncio.gather(
                self._resolve_route(result.aircraft.icao24),
                self._classify_image(image),
            )
        else:
            route, status = await self._resolve_route(result.aircraft.icao24)
            analysis = None

        if self.capture_result is not result:
            logger.debug("Dropping route for dismissed capture of %s", result.aircraft.icao24)
            return

        result.route = route
        result.route_status = status
        result.analysis = analysis
        self._notify("on_capture", result)

    async def _resolve_route(self, icao24: str) -> Tuple[FlightRoute, RouteStatus]:
        try:
            route = await asyncio.wait_for(
                asyncio.to_thread(self.resolver.resolve, icao24),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Route lookup for %s timed out", icao24)
            return FlightRoute(), RouteStatus.FAILED
        except Exception:
            logger.exception("Route lookup for %s failed", icao24)
            return FlightRoute(), RouteStatus.FAILED

        return route, RouteStatus.RESOLVED

    async def _classify_image(self, image: bytes) -> PlaneAnalysis:
        try:
            analysis = await asyncio.wait_for(
                asyncio.to_thread(self.classifier, image),
                timeout=self.request_timeout,
            )
        except Exception as e:
            logger.warning("Image classification failed: %s", str(e) or type(e).__name__)
            return PlaneAnalysis.not_identifiable()

        if not isinstance(analysis, PlaneAnalysis):
            return PlaneAnalysis.not_identifiable()
        return analysis
