"""
Tests for the SkyWatch tracking session.

Collaborators are replaced with small fakes; blocking behaviour is simulated
with threading events since the session runs them in worker threads.
"""

import asyncio
import sys
import threading
import time
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from skywatch.config import Config
from skywatch.tracking.exceptions import PositionUnavailableError
from skywatch.tracking.models import (
    AircraftState,
    AirportInfo,
    FlightRoute,
    FlightSnapshot,
    PlaneAnalysis,
    Position,
    RouteStatus,
)
from skywatch.tracking.session import SessionListener, SessionState, TrackingSession

HOME = Position(40.6413, -73.7781)
ROUTE = FlightRoute(
    departure_airport=AirportInfo("KJFK", "John F. Kennedy International", "New York JFK", "USA"),
    arrival_airport=AirportInfo("EGLL", "Heathrow", "London", "UK"),
)


def aircraft(icao24, distance, overhead):
    return AircraftState(
        icao24=icao24,
        callsign=icao24.upper(),
        origin_country="Testland",
        position=Position(40.65, -73.78),
        baro_altitude=1000.0,
        velocity=100.0,
        true_track=90.0,
        on_ground=False,
        distance_km=distance,
        is_overhead=overhead,
    )


def snapshot(*states, error=None):
    return FlightSnapshot(observer=HOME, aircraft=list(states), error=error)


class FakeCollector:
    """Replays scripted responses; the last one repeats."""

    def __init__(self, *responses):
        self.responses = list(responses) or [snapshot()]
        self.positions = []
        self.gate = None

    @property
    def calls(self):
        return len(self.positions)

    def fetch_snapshot(self, position):
        self.positions.append(position)
        if self.gate is not None:
            self.gate.wait(5)
        response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class FakeResolver:
    def __init__(self, route=ROUTE, error=None):
        self.route = route
        self.error = error
        self.gate = None
        self.requested = []

    def resolve(self, icao24):
        self.requested.append(icao24)
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.route


class RecordingListener(SessionListener):
    def __init__(self):
        self.states = []
        self.snapshots = []
        self.captures = []
        self.errors = []

    def on_state_change(self, state):
        self.states.append(state)

    def on_snapshot(self, snapshot):
        self.snapshots.append(snapshot)

    def on_capture(self, capture):
        self.captures.append(capture)

    def on_error(self, message):
        self.errors.append(message)


class FaultyListener(RecordingListener):
    """Records every hook, then fails."""

    def on_snapshot(self, snapshot):
        super().on_snapshot(snapshot)
        raise RuntimeError("display went away")

    def on_error(self, message):
        super().on_error(message)
        raise RuntimeError("display went away")


class SlowCollector(FakeCollector):
    """Takes ``delay`` seconds per fetch and records peak concurrency."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.started = 0
        self.lock = threading.Lock()

    def fetch_snapshot(self, position):
        with self.lock:
            self.started += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            return super().fetch_snapshot(position)
        finally:
            with self.lock:
                self.active -= 1


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def config():
    config = Config()
    # One poll on start, further polls only on refresh()
    config.set("tracking.update_interval_seconds", 60)
    return config


@pytest.fixture
def listener():
    return RecordingListener()


def make_session(config, collector, resolver=None, listener=None, provider=None, classifier=None):
    return TrackingSession(
        config,
        provider or (lambda: HOME),
        collector=collector,
        resolver=resolver or FakeResolver(),
        classifier=classifier,
        listener=listener,
    )


async def tracking(session):
    assert await session.start()
    await wait_until(lambda: session.snapshot is not None)
    return session


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_begins_tracking(self, config, listener):
        first = snapshot(aircraft("abc123", 0.5, True))
        session = make_session(config, FakeCollector(first), listener=listener)

        await tracking(session)

        assert session.state is SessionState.TRACKING
        assert session.active
        assert session.snapshot is first
        assert session.position == HOME
        assert listener.states[:2] == [SessionState.ACQUIRING, SessionState.TRACKING]
        assert listener.snapshots == [first]

        await session.stop()
        assert session.state is SessionState.IDLE
        assert not session.active

    @pytest.mark.asyncio
    async def test_async_position_provider(self, config):
        async def provider():
            return HOME

        collector = FakeCollector()
        session = make_session(config, collector, provider=provider)

        await tracking(session)

        assert collector.positions == [HOME]
        await session.stop()

    @pytest.mark.asyncio
    async def test_position_unavailable(self, config, listener):
        def provider():
            raise PositionUnavailableError("permission denied")

        collector = FakeCollector()
        session = make_session(config, collector, listener=listener, provider=provider)

        assert await session.start() is False
        assert session.state is SessionState.UNAVAILABLE
        assert "permission denied" in session.error
        assert listener.errors == [session.error]
        assert collector.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_position_is_unavailable(self, config):
        collector = FakeCollector()
        session = make_session(config, collector, provider=lambda: Position(95.0, 0.0))

        assert await session.start() is False
        assert session.state is SessionState.UNAVAILABLE
        assert collector.calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_propagates(self, config):
        def provider():
            raise RuntimeError("boom")

        session = make_session(config, FakeCollector(), provider=provider)

        with pytest.raises(RuntimeError):
            await session.start()
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_async_context_manager(self, config):
        session = make_session(config, FakeCollector())

        async with session:
            assert session.state is SessionState.TRACKING

        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, config):
        session = make_session(config, FakeCollector())
        await tracking(session)

        await session.stop()
        await session.stop()

        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_polls_repeat_at_interval(self, config):
        config.set("tracking.update_interval_seconds", 0.05)
        collector = FakeCollector()
        session = make_session(config, collector)

        await session.start()
        await wait_until(lambda: collector.calls >= 3)
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_while_acquiring(self, config, listener):
        release = asyncio.Event()

        async def provider():
            await release.wait()
            return HOME

        collector = FakeCollector()
        session = make_session(config, collector, listener=listener, provider=provider)

        starting = asyncio.create_task(session.start())
        await wait_until(lambda: session.state is SessionState.ACQUIRING)
        await session.stop()
        release.set()

        assert await starting is False
        assert session.state is SessionState.IDLE
        assert session.position is None
        await asyncio.sleep(0.05)
        assert collector.calls == 0
        assert listener.states == [SessionState.ACQUIRING, SessionState.IDLE]

    @pytest.mark.asyncio
    async def test_stop_while_acquiring_ignores_late_unavailable(self, config, listener):
        release = asyncio.Event()

        async def provider():
            await release.wait()
            raise PositionUnavailableError("timed out")

        session = make_session(config, FakeCollector(), listener=listener, provider=provider)

        starting = asyncio.create_task(session.start())
        await wait_until(lambda: session.state is SessionState.ACQUIRING)
        await session.stop()
        release.set()

        assert await starting is False
        assert session.state is SessionState.IDLE
        assert listener.errors == []

    @pytest.mark.asyncio
    async def test_listener_error_while_unavailable(self, config):
        def provider():
            raise PositionUnavailableError("permission denied")

        session = make_session(
            config, FakeCollector(), listener=FaultyListener(), provider=provider
        )

        assert await session.start() is False
        assert session.state is SessionState.UNAVAILABLE


# ============================================================================
# Polling
# ============================================================================


class TestPolling:
    @pytest.mark.asyncio
    async def test_failed_poll_keeps_previous_snapshot(self, config, listener):
        good = snapshot(aircraft("abc123", 0.5, True))
        collector = FakeCollector(good, snapshot(error="HTTP error 503"))
        session = make_session(config, collector, listener=listener)
        await tracking(session)

        assert await session.refresh() is False

        assert session.snapshot is good
        assert listener.errors == ["HTTP error 503"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_failed_poll_replaces_snapshot_when_configured(self, config):
        config.set("tracking.keep_snapshot_on_error", False)
        collector = FakeCollector(snapshot(aircraft("abc123", 0.5, True)), snapshot(error="HTTP error 503"))
        session = make_session(config, collector)
        await tracking(session)

        assert await session.refresh() is True

        assert session.snapshot.failed
        assert session.overhead == []
        await session.stop()

    @pytest.mark.asyncio
    async def test_first_failure_is_still_applied(self, config):
        session = make_session(config, FakeCollector(snapshot(error="request timed out after 10s")))

        await tracking(session)

        assert session.snapshot.failed
        assert session.snapshot.aircraft == []
        await session.stop()

    @pytest.mark.asyncio
    async def test_collector_exception_becomes_error_snapshot(self, config, listener):
        config.set("tracking.keep_snapshot_on_error", False)
        collector = FakeCollector(snapshot(), RuntimeError("socket closed"))
        session = make_session(config, collector, listener=listener)
        await tracking(session)

        await session.refresh()

        assert session.snapshot.error == "socket closed"
        assert listener.errors == ["socket closed"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_poll_timeout_becomes_error_snapshot(self, config):
        config.set("api.timeout_seconds", 0.05)
        collector = FakeCollector()
        collector.gate = threading.Event()
        session = make_session(config, collector)

        try:
            await tracking(session)
            assert "timed out" in session.snapshot.error
        finally:
            collector.gate.set()
            await session.stop()

    @pytest.mark.asyncio
    async def test_polls_never_overlap(self, config):
        collector = FakeCollector()
        collector.gate = threading.Event()
        session = make_session(config, collector)

        try:
            await session.start()
            await wait_until(lambda: collector.calls == 1)

            assert await session.refresh() is False
            assert collector.calls == 1
        finally:
            collector.gate.set()

        await wait_until(lambda: session.snapshot is not None)
        assert await session.refresh() is True
        assert collector.calls == 2
        await session.stop()

    @pytest.mark.asyncio
    async def test_response_after_stop_is_ignored(self, config, listener):
        collector = FakeCollector(snapshot(aircraft("abc123", 0.5, True)))
        collector.gate = threading.Event()
        session = make_session(config, collector, listener=listener)

        await session.start()
        await wait_until(lambda: collector.calls == 1)
        await session.stop()

        collector.gate.set()
        await asyncio.sleep(0.05)

        assert session.snapshot is None
        assert listener.snapshots == []
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_stale_and_foreign_snapshots_are_dropped(self, config):
        session = make_session(config, FakeCollector())
        await tracking(session)
        current = session.snapshot

        assert session._apply_snapshot(snapshot(), session._applied_seq, session._generation) is False
        assert session._apply_snapshot(snapshot(), session._request_seq + 1, session._generation - 1) is False
        assert session.snapshot is current
        await session.stop()

    @pytest.mark.asyncio
    async def test_refresh_when_idle_does_nothing(self, config):
        collector = FakeCollector()
        session = make_session(config, collector)

        assert await session.refresh() is False
        assert collector.calls == 0

    @pytest.mark.asyncio
    async def test_timed_out_poll_still_blocks_next_tick(self, config):
        config.set("tracking.update_interval_seconds", 0.05)
        config.set("api.timeout_seconds", 0.1)
        collector = SlowCollector(delay=0.5)
        session = make_session(config, collector)

        await session.start()
        await wait_until(lambda: session.snapshot is not None)
        assert "timed out" in session.snapshot.error
        assert session.poll_in_flight
        assert await session.refresh() is False

        await asyncio.sleep(0.3)
        await session.stop()

        assert collector.max_active == 1
        assert collector.started == 1

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_stop_polling(self, config, caplog):
        config.set("tracking.update_interval_seconds", 0.05)
        collector = FakeCollector(snapshot(aircraft("abc123", 0.5, True)))
        listener = FaultyListener()
        session = make_session(config, collector, listener=listener)

        await session.start()
        await wait_until(lambda: collector.calls >= 3)

        assert session.state is SessionState.TRACKING
        assert len(listener.snapshots) >= 2
        assert "Listener hook on_snapshot failed" in caplog.text

        await session.stop()
        assert session.state is SessionState.IDLE


# ============================================================================
# Position updates
# ============================================================================


class TestPositionUpdates:
    @pytest.mark.asyncio
    async def test_lost_position_stops_polling_then_resumes(self, config):
        collector = FakeCollector()
        session = make_session(config, collector)
        await tracking(session)

        await session.update_position(None)

        assert session.state is SessionState.UNAVAILABLE
        assert await session.refresh() is False
        assert collector.calls == 1

        moved = Position(51.47, -0.4543)
        await session.update_position(moved)

        assert session.state is SessionState.TRACKING
        await wait_until(lambda: collector.calls == 2)
        assert collector.positions[-1] == moved
        await session.stop()

    @pytest.mark.asyncio
    async def test_new_position_used_by_next_poll(self, config):
        collector = FakeCollector()
        session = make_session(config, collector)
        await tracking(session)

        moved = Position(40.7, -73.9)
        await session.update_position(moved)
        await session.refresh()

        assert session.state is SessionState.TRACKING
        assert collector.positions[-1] == moved
        await session.stop()

    @pytest.mark.asyncio
    async def test_invalid_position_update_is_ignored(self, config):
        session = make_session(config, FakeCollector())
        await tracking(session)

        await session.update_position(Position(0.0, 200.0))

        assert session.position == HOME
        await session.stop()

    @pytest.mark.asyncio
    async def test_snapshot_for_old_position_is_dropped(self, config, listener):
        collector = FakeCollector(snapshot(aircraft("abc123", 0.5, True)))
        collector.gate = threading.Event()
        session = make_session(config, collector, listener=listener)

        try:
            await session.start()
            await wait_until(lambda: collector.calls == 1)

            moved = Position(40.7, -73.9)
            await session.update_position(moved)
        finally:
            collector.gate.set()

        await wait_until(lambda: not session.poll_in_flight)
        await asyncio.sleep(0.02)
        assert session.snapshot is None
        assert listener.snapshots == []

        assert await session.refresh() is True
        assert collector.positions[-1] == moved
        await session.stop()


# ============================================================================
# Capture
# ============================================================================


class TestCapture:
    @pytest.fixture
    def ranked(self):
        return snapshot(
            aircraft("close1", 0.1, False),
            aircraft("over01", 0.4, True),
            aircraft("over02", 0.8, True),
        )

    @pytest.mark.asyncio
    async def test_capture_picks_nearest_overhead(self, config, listener, ranked):
        resolver = FakeResolver()
        session = make_session(config, FakeCollector(ranked), resolver=resolver, listener=listener)
        await tracking(session)

        result = await session.capture()

        assert result.aircraft.icao24 == "over01"
        assert session.state is SessionState.CAPTURING
        assert session.capture_result is result

        await wait_until(lambda: result.route_status is RouteStatus.RESOLVED)
        assert result.route == ROUTE
        assert resolver.requested == ["over01"]
        assert listener.captures == [result, result]
        await session.stop()

    @pytest.mark.asyncio
    async def test_capture_nearest_when_overhead_not_required(self, config, ranked):
        config.set("capture.require_overhead", False)
        session = make_session(config, FakeCollector(ranked))
        await tracking(session)

        result = await session.capture()

        assert result.aircraft.icao24 == "close1"
        await session.stop()

    @pytest.mark.asyncio
    async def test_capture_without_candidates(self, config):
        session = make_session(config, FakeCollector(snapshot(aircraft("far001", 5.0, False))))
        await tracking(session)

        assert await session.capture() is None
        assert session.state is SessionState.TRACKING
        await session.stop()

    @pytest.mark.asyncio
    async def test_capture_requires_tracking(self, config):
        session = make_session(config, FakeCollector())

        assert await session.capture() is None

    @pytest.mark.asyncio
    async def test_second_capture_rejected(self, config, ranked):
        session = make_session(config, FakeCollector(ranked))
        await tracking(session)

        first = await session.capture()
        assert await session.capture() is None
        assert session.capture_result is first

        session.clear_capture()
        assert await session.capture() is not None
        await session.stop()

    @pytest.mark.asyncio
    async def test_polling_continues_during_capture(self, config, ranked):
        collector = FakeCollector(ranked)
        session = make_session(config, collector)
        await tracking(session)
        await session.capture()

        assert await session.refresh() is True
        assert collector.calls == 2
        await session.stop()

    @pytest.mark.asyncio
    async def test_clear_capture_discards_late_route(self, config, listener, ranked):
        resolver = FakeResolver()
        resolver.gate = threading.Event()
        session = make_session(config, FakeCollector(ranked), resolver=resolver, listener=listener)
        await tracking(session)

        result = await session.capture()
        await wait_until(lambda: resolver.requested)
        session.clear_capture()
        resolver.gate.set()
        await asyncio.sleep(0.05)

        assert result.route_status is RouteStatus.LOADING
        assert result.route.is_empty
        assert session.capture_result is None
        assert session.state is SessionState.TRACKING
        assert listener.captures == [result, None]
        await session.stop()

    @pytest.mark.asyncio
    async def test_route_failure_marks_capture_failed(self, config, ranked):
        session = make_session(
            config, FakeCollector(ranked), resolver=FakeResolver(error=RuntimeError("down"))
        )
        await tracking(session)

        result = await session.capture()
        await wait_until(lambda: not result.route_loading)

        assert result.route_status is RouteStatus.FAILED
        assert result.route.is_empty
        assert session.state is SessionState.CAPTURING
        await session.stop()

    @pytest.mark.asyncio
    async def test_route_timeout_marks_capture_failed(self, config, ranked):
        resolver = FakeResolver()
        resolver.gate = threading.Event()
        session = make_session(config, FakeCollector(ranked), resolver=resolver)
        await tracking(session)
        session.request_timeout = 0.05

        try:
            result = await session.capture()
            await wait_until(lambda: not result.route_loading)
            assert result.route_status is RouteStatus.FAILED
        finally:
            resolver.gate.set()
            await session.stop()

    @pytest.mark.asyncio
    async def test_classifier_result_attached(self, config, ranked):
        analysis = PlaneAnalysis(is_plane=True, confidence=0.9, airline="Testair")
        session = make_session(config, FakeCollector(ranked), classifier=lambda image: analysis)
        await tracking(session)

        result = await session.capture(image=b"jpeg")
        await wait_until(lambda: not result.route_loading)

        assert result.analysis == analysis
        assert result.route == ROUTE
        await session.stop()

    @pytest.mark.asyncio
    async def test_classifier_failure_degrades(self, config, ranked):
        def classifier(image):
            raise ValueError("unreadable image")

        session = make_session(config, FakeCollector(ranked), classifier=classifier)
        await tracking(session)

        result = await session.capture(image=b"jpeg")
        await wait_until(lambda: not result.route_loading)

        assert result.analysis == PlaneAnalysis.not_identifiable()
        assert result.route_status is RouteStatus.RESOLVED
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_clears_capture(self, config, ranked):
        session = make_session(config, FakeCollector(ranked))
        await tracking(session)
        await session.capture()

        await session.stop()

        assert session.capture_result is None
        assert session.state is SessionState.IDLE
