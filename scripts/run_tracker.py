#!/usr/bin/env python3
"""Run the tracker service from ``TRACKER_*`` environment variables.

Usage
-----
Configure and run::

    export TRACKER_MQTT_HOST="localhost"
    export TRACKER_TRANSPORT="webhook"
    export TRACKER_WEBHOOK_URL="https://example.com/track"
    python scripts/run_tracker.py

Options::

    --track-dir DIR      Override the track store directory
    --send-interval S    Seconds between delivery attempts
    --send-now           Attempt one delivery right after start
    -v, --verbose        Enable DEBUG logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from trackrelay import TrackerConfig, TrackerConfigError, TrackerService, TrackRelayError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Log vessel positions and forward them when online.")
    parser.add_argument("--track-dir", help="Directory for the track store")
    parser.add_argument("--send-interval", type=float, help="Seconds between delivery attempts")
    parser.add_argument("--send-now", action="store_true", help="Attempt one delivery right after start")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.track_dir:
        overrides["track_dir"] = args.track_dir
    if args.send_interval:
        overrides["send_interval"] = args.send_interval

    try:
        config = TrackerConfig.from_env(**overrides)
    except TrackerConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    service = TrackerService(
        config,
        on_status=lambda msg: print(f"status: {msg}"),
        on_error=lambda msg: print(f"error: {msg}", file=sys.stderr),
    )
    try:
        async with service:
            if args.send_now:
                outcome = await service.send_now()
                print(f"delivery: {outcome}")
            await stop_event.wait()
    except TrackRelayError as exc:
        print(f"Tracker failed: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
