#!/usr/bin/env python3
"""
Interactive Relay Chat Client
=============================

Terminal client for a running relay server.

This script:
    1. Connects to the relay WebSocket
    2. Opens the Gemini Live session
    3. Optionally shares a monitor (or a saved image) as periodic frames
    4. Reads questions from stdin and prints streamed answers

Prerequisites:
    - Relay server running (gemini-relay or python -m gemini_relay.main)
    - GEMINI_API_KEY configured on the server

Usage:
    python scripts/chat_client.py
    python scripts/chat_client.py --screen 1 --interval 2000
    python scripts/chat_client.py --image screenshot.png
    python scripts/chat_client.py --url ws://relay.local:5000/ws

Commands:
    /quit    exit
    /stop    stop sharing and discard buffered frames
    /status  show connection and buffer status
"""

import argparse
import asyncio
import logging
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from gemini_relay.capture import FrameCapturer, ScreenSurface, StaticSurface
from gemini_relay.client import ClientCoordinator, WebSocketTransport
from gemini_relay.config import load_config
from gemini_relay.errors import CaptureError
from gemini_relay.models.events import EventType, RelayEvent
from gemini_relay.stream import FrameBuffer


logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


class ConsolePrinter:
    """Prints relay events and signals when a turn ends."""

    def __init__(self) -> None:
        self.turn_done = asyncio.Event()
        self.session_ready = asyncio.Event()
        self._mid_line = False

    async def __call__(self, event: RelayEvent) -> None:
        if event.type == EventType.TEXT_CHUNK:
            print(event.text, end="", flush=True)
            self._mid_line = True
            return

        if self._mid_line:
            print()
            self._mid_line = False

        if event.type == EventType.TURN_COMPLETE:
            self.turn_done.set()
        elif event.type == EventType.ERROR:
            print(f"[error] {event.message}")
            self.turn_done.set()
            self.session_ready.set()
        elif event.type == EventType.CONNECTED:
            print(f"[system] {event.message}")
            self.session_ready.set()
        elif event.type == EventType.DISCONNECTED:
            print(f"[system] {event.message}")
            self.turn_done.set()
            self.session_ready.set()

    async def on_closed(self, reason: str) -> None:
        print(f"\n[system] {reason}")
        self.turn_done.set()
        self.session_ready.set()


async def run_chat(args: argparse.Namespace) -> int:
    """
    Run the interactive session.

    Returns:
        Process exit code
    """
    settings = load_config(args.config)
    url = args.url or settings.client.server_url

    buffer = FrameBuffer(max_frames=settings.frames.buffer_size)
    capturer = FrameCapturer(
        buffer,
        interval_ms=args.interval or settings.frames.capture_interval_ms,
        jpeg_quality=settings.frames.jpeg_quality,
        max_width=settings.frames.max_width,
        max_height=settings.frames.max_height,
        large_frame_warning_bytes=settings.frames.large_frame_warning_bytes,
    )
    transport = WebSocketTransport(url)
    coordinator = ClientCoordinator(
        transport,
        buffer,
        capturer,
        system_instruction=args.system_instruction,
    )

    # after the coordinator, so its state is current when the printer fires
    printer = ConsolePrinter()
    transport.events.subscribe(printer)
    transport.subscribe_close(printer.on_closed)

    print(f"Connecting to {url} ...")
    if not await coordinator.connect():
        print(f"[error] {coordinator.transcript[-1].content}")
        return 1

    await coordinator.connect_upstream()
    await printer.session_ready.wait()
    if not coordinator.upstream_open:
        await coordinator.disconnect()
        return 1

    surface = None
    try:
        if args.image:
            surface = StaticSurface.from_file(args.image)
        elif args.screen is not None:
            surface = ScreenSurface(monitor_index=args.screen)
    except CaptureError as e:
        print(f"[capture] {e}")

    if surface is not None:
        await coordinator.start_capture(surface)
        print(f"[capture] {coordinator.capture_status}")

    try:
        while coordinator.socket_connected:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()

            if line == "/quit":
                break
            if line == "/stop":
                await coordinator.stop_capture()
                print(f"[capture] {coordinator.capture_status}")
                continue
            if line == "/status":
                print(
                    f"[status] socket={coordinator.socket_connected} "
                    f"upstream={coordinator.upstream_open} "
                    f"capture='{coordinator.capture_status}' "
                    f"buffer={buffer.metrics()}"
                )
                continue

            printer.turn_done.clear()
            if await coordinator.submit(line):
                await printer.turn_done.wait()
    finally:
        await coordinator.disconnect_upstream()
        await coordinator.disconnect()

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Interactive chat client for the Gemini Live relay"
    )
    parser.add_argument("--url", help="Relay WebSocket URL (default: client.server_url)")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument(
        "--screen",
        type=int,
        default=None,
        help="Monitor index to share (1 = primary, 0 = all monitors)",
    )
    parser.add_argument("--image", help="Share a saved image instead of the screen")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Capture interval in ms (1000-10000)",
    )
    parser.add_argument(
        "--system-instruction",
        default=None,
        help="System instruction for the session (server default if omitted)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(asyncio.run(run_chat(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
