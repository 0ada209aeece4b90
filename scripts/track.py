#!/usr/bin/env python3
"""
SkyWatch Console Tracker

Runs a tracking session at the configured location and prints every snapshot.
Press Enter to capture the nearest overhead aircraft, 'c' + Enter to clear the
capture, 'q' + Enter to quit.

Usage:
    python scripts/track.py [--config CONFIG_FILE] [--lat LAT --lon LON]
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from skywatch import Config, setup_logging
from skywatch.tracking import (
    AircraftState,
    CaptureResult,
    FlightSnapshot,
    Position,
    SessionListener,
    SessionState,
    TrackingSession,
    format_airport_display,
)
from skywatch.tracking.utils import format_altitude, format_distance, format_speed


def format_aircraft(state: AircraftState) -> str:
    """One console line for an aircraft."""
    marker = "🎯" if state.is_overhead else "✈️ "
    bearing = f"{state.bearing_deg:5.0f}°" if state.bearing_deg is not None else "  N/A"
    ground = " (ground)" if state.on_ground else ""
    return (
        f"  {marker} {state.callsign:8s} | {format_distance(state.distance_km):>9s} | "
        f"{bearing} | {format_altitude(state.baro_altitude, include_feet=False):>7s} | "
        f"{format_speed(state.velocity)}{ground}"
    )


class ConsoleListener(SessionListener):
    """Prints session updates to stdout."""

    def __init__(self, max_rows: int = 10):
        self.max_rows = max_rows

    def on_state_change(self, state: SessionState) -> None:
        print(f"[{state.value}]")

    def on_snapshot(self, snapshot: FlightSnapshot) -> None:
        overhead = len(snapshot.overhead)
        print(f"\n📡 {len(snapshot)} aircraft nearby, {overhead} overhead")
        for state in snapshot.aircraft[: self.max_rows]:
            print(format_aircraft(state))

    def on_capture(self, capture: Optional[CaptureResult]) -> None:
        if capture is None:
            print("🧹 Capture cleared")
            return

        aircraft = capture.aircraft
        print(f"\n📸 Captured {aircraft.callsign} ({aircraft.icao24}, {aircraft.origin_country})")
        if capture.route_loading:
            print("   Route: loading...")
        else:
            route = capture.route
            print(
                f"   Route: {format_airport_display(route.departure_airport)} -> "
                f"{format_airport_display(route.arrival_airport)}"
            )

    def on_error(self, message: str) -> None:
        print(f"⚠️  {message}")


async def read_commands(session: TrackingSession) -> None:
    """Handle console commands until the user quits or stdin closes."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return

        command = line.strip().lower()
        if command == "q":
            return
        if command == "c":
            session.clear_capture()
        elif command == "":
            if await session.capture() is None:
                print("   Nothing to capture right now")
        elif command == "r":
            await session.refresh()


async def run(config: Config) -> int:
    position = Position(config.home_latitude, config.home_longitude)
    session = TrackingSession(config, lambda: position, listener=ConsoleListener())

    print("\n" + "=" * 70)
    print("🛩️  SkyWatch - What's flying overhead?")
    print("=" * 70)
    print(f"Location:   {position.latitude}°, {position.longitude}°, {config.location_name}")
    print(f"Overhead:   {config.overhead_min_km}-{config.overhead_max_km} km")
    print(f"Interval:   {config.update_interval}s")
    print("=" * 70)

    async with session:
        if not session.active:
            return 1
        await read_commands(session)

    return 0


def main():
    """Main entry point for the console tracker."""
    parser = argparse.ArgumentParser(
        description="SkyWatch - Identify aircraft flying over your location"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument("--lat", type=float, help="Observer latitude override")
    parser.add_argument("--lon", type=float, help="Observer longitude override")

    args = parser.parse_args()

    config = Config(args.config)
    if args.lat is not None and args.lon is not None:
        config.set("location.latitude", args.lat)
        config.set("location.longitude", args.lon)
        config.set("location.name", "Command line")
    setup_logging(config)

    try:
        sys.exit(asyncio.run(run(config)))
    except KeyboardInterrupt:
        print("\n👋 Tracker stopped by user")


if __name__ == "__main__":
    main()
