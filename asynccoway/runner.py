"""
Process-level helpers shared by the command-line scripts.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from asynccoway.config import CowayConfig
from asynccoway.exceptions.api import DiscoveryError
from asynccoway.host import AccessoryHost
from asynccoway.platform import CowayPlatform

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def build_platform(config: Optional[CowayConfig],
                   storage_path: Optional[Union[str, Path]] = None) -> CowayPlatform:
    """Create the host and the platform, restoring cached accessories."""
    host = AccessoryHost(storage_path)
    platform = CowayPlatform(config, host)
    restored = platform.restore_cached_accessories()
    if restored:
        logger.info(f"Restored {restored} cached accessory(ies)")
    return platform


async def run_platform(platform: CowayPlatform, *, once: bool = False,
                       exit_delay: float = 30.0) -> int:
    """Run the platform until cancelled.

    Returns:
        Process exit status; 1 when device discovery failed
    """
    try:
        await platform.start(poll=not once)
    except DiscoveryError as exc:
        logger.warning(f"It seems something went wrong with Coway services ({exc}). "
                       f"Exiting in {exit_delay:.0f} seconds.")
        await platform.stop()
        await asyncio.sleep(exit_delay)
        return 1

    try:
        if not once:
            # Runs until the task is cancelled
            await asyncio.Event().wait()
    finally:
        await platform.stop()
    return 0
