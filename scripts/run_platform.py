#!/usr/bin/env python3
"""
Run the Coway platform.

Restores the accessories cached in the storage file, discovers the devices of
the configured account and keeps polling them until interrupted.
"""

import argparse
import asyncio
import sys

from asynccoway.config import load_config
from asynccoway.exceptions.config import ConfigurationError
from asynccoway.runner import build_platform, run_platform, setup_logging


def _make_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Bridge Coway IoCare devices to the accessory host"
    )
    p.add_argument("--config", required=True,
                   help="Path to the JSON platform configuration")
    p.add_argument("--storage", default="coway-accessories.json",
                   help="Accessory cache file (default: coway-accessories.json)")
    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging level (default: INFO)")
    p.add_argument("--once", action="store_true",
                   help="Discover and refresh once, then exit")
    p.add_argument("--exit-delay", type=float, default=30.0,
                   help="Seconds to wait before exiting after a discovery failure (default: 30)")
    return p


async def _async_main(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if config is None:
        print("Error: the coway config is not yet configured", file=sys.stderr)
        return 1

    platform = build_platform(config, args.storage)
    return await run_platform(platform, once=args.once, exit_delay=args.exit_delay)


def main():
    parser = _make_argparser()
    args = parser.parse_args()
    setup_logging(args.log_level)
    try:
        sys.exit(asyncio.run(_async_main(args)))
    except KeyboardInterrupt:
        print("Aborted by user", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
