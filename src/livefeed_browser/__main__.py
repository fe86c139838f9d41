"""
Command line entry point.

    python -m livefeed_browser ROOM [--base-url URL] [--port N] [--headed] [--dom] [-v]

Prints one JSON object per event until interrupted.
"""

import argparse
import asyncio
import dataclasses
import json
import os
import sys

from .config import get_env_config
from .watcher import RoomWatcher

import logging
logger = logging.getLogger(__name__)


def event_to_json(event) -> str:
    record = {"kind": event.kind}
    record.update(dataclasses.asdict(event))
    return json.dumps(record, default=str)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="livefeed_browser", description=__doc__.strip().splitlines()[0])
    parser.add_argument("room", help="Room to open, joined onto the base address")
    parser.add_argument("--base-url", help="Application address (overrides LIVEFEED_BASE_URL)")
    parser.add_argument("--port", type=int, help="Remote debugging port, 0 for any free port")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--dom", action="store_true", help="Also report inserted DOM nodes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = get_env_config()
    if args.base_url:
        config["base_url"] = args.base_url.rstrip("/")
    if args.port is not None:
        config["port"] = args.port
    if args.headed:
        config["headless"] = False

    async with RoomWatcher(config, observe_dom=args.dom) as watcher:
        await watcher.watch(args.room)
        async for event in watcher.events():
            print(event_to_json(event), flush=True)

    # The stream only ends when the session stopped underneath us.
    logger.error("Event stream ended: the browser session stopped")
    return 1


def main(argv=None) -> int:
    args = parse_args(argv)
    level = logging.DEBUG if args.verbose else os.getenv("LIVEFEED_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s", stream=sys.stderr)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
