#!/usr/bin/env python3
"""
Print the reconciled state of every Coway device in an account.
"""

import argparse
import asyncio
import json
import sys

from asynccoway.config import load_config
from asynccoway.exceptions import CowayException
from asynccoway.runner import build_platform, setup_logging


def _make_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Discover Coway devices and print their current state"
    )
    p.add_argument("--config", required=True,
                   help="Path to the JSON platform configuration")
    p.add_argument("--format", choices=["json", "text"], default="text",
                   help="Output format (default: text)")
    p.add_argument("--log-level", default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging level (default: WARNING)")
    return p


async def dump_and_output(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    if config is None:
        raise CowayException("the coway config is not yet configured")

    platform = build_platform(config)
    try:
        await platform.start(poll=False)
        contexts = platform.snapshot()
    finally:
        await platform.stop()

    if args.format == "json":
        print(json.dumps(contexts, indent=2, ensure_ascii=False))
        return

    if not contexts:
        print("No Coway devices found.")
        return
    for barcode, context in contexts.items():
        device = context.get("device_info", {})
        print(f"{device.get('dvcNick') or device.get('prodName')} ({barcode}):")
        for section, values in context.get("state", {}).items():
            print(f"  {section}: {values}")
        print("")


async def _async_main(args: argparse.Namespace) -> None:
    try:
        await dump_and_output(args)
    except CowayException as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    parser = _make_argparser()
    args = parser.parse_args()
    setup_logging(args.log_level)
    try:
        asyncio.run(_async_main(args))
    except KeyboardInterrupt:
        print("Aborted by user", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
