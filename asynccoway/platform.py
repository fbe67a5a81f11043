"""
Platform orchestrating every Coway accessory of one account.

Discovers the account's devices, restores or creates one accessory per device,
removes accessories that disappeared from the account and polls all of them on
a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from asynccoway.accessories.accessory import Accessory
from asynccoway.accessories.registry import create_accessory, resolve_family
from asynccoway.api.client import CowayClient
from asynccoway.config import CowayConfig
from asynccoway.enums import Constants
from asynccoway.exceptions import CowayException
from asynccoway.exceptions.api import DiscoveryError, UnsupportedDeviceError
from asynccoway.exceptions.config import ConfigurationError
from asynccoway.host import AccessoryHost, PlatformAccessory
from asynccoway.models.context import AccessoryContext
from asynccoway.models.credentials import AccessToken
from asynccoway.models.device import Device

logger = logging.getLogger(__name__)


class CowayPlatform:
    """Orchestrator owning the account credentials and all accessories."""

    def __init__(
        self,
        config: Optional[CowayConfig],
        host: AccessoryHost,
        client: Optional[CowayClient] = None,
    ) -> None:
        self.config = config
        self.host = host
        self.accessories: List[Accessory] = []

        self._owns_client = client is None
        if client is None and config is not None:
            client = CowayClient(base_url=config.base_url, timeout=config.request_timeout)
        self._client = client

        self._access_token: Optional[AccessToken] = None
        self._refreshing = False
        self._poll_task: Optional[asyncio.Task] = None

        if config is None:
            logger.warning("The coway config is not yet configured.")

    @property
    def access_token(self) -> Optional[AccessToken]:
        return self._access_token

    # ------------------------------------------------------------------
    # Restore path

    def configure_accessory(self, platform_accessory: PlatformAccessory) -> Optional[Accessory]:
        """Rebuild an accessory from the context the host persisted."""
        try:
            context = AccessoryContext.from_context(platform_accessory.context)
        except ValidationError:
            logger.warning(f"Failed to reconfigure {platform_accessory.display_name}")
            return None
        try:
            family = resolve_family(context.device_type, context.device_info.prod_name)
        except UnsupportedDeviceError:
            logger.warning(f"Failed to reconfigure {platform_accessory.display_name}")
            return None

        accessory = create_accessory(family, self._client, context.device_info, platform_accessory)
        self.accessories.append(accessory)

        platform_accessory.context["configured"] = False
        logger.info(f"Configuring cached accessory: {platform_accessory.display_name}")
        self.host.update_platform_accessories([platform_accessory])
        return accessory

    def restore_cached_accessories(self) -> int:
        """Feed every accessory cached by the host through :meth:`configure_accessory`."""
        restored = 0
        for platform_accessory in self.host.cached_accessories():
            if self.configure_accessory(platform_accessory) is not None:
                restored += 1
        return restored

    # ------------------------------------------------------------------
    # Discovery

    async def check_and_refresh_devices_online(self, devices: List[Device]) -> None:
        """Merge the bulk connectivity status into ``devices``."""
        records = await self._client.get_device_connections(
            [device.barcode for device in devices], self._access_token
        )
        for info in records:
            for device in devices:
                if device.barcode == info.get("devId"):
                    device.net_status = info.get("netStatus")

    async def configure_coway_devices(self) -> None:
        """Reconcile the registered accessories with the account device listing.

        Raises:
            DiscoveryError: If the listing is missing or empty
        """
        response = await self._client.get_user_devices(
            self._access_token, page_index=0, page_size=self.config.page_size
        )
        device_infos = response.get("deviceInfos")
        if device_infos is None:
            raise DiscoveryError("Coway service is offline.")
        if not device_infos:
            raise DiscoveryError("No Coway devices in your account")

        try:
            devices = [Device.model_validate(info) for info in device_infos]
        except ValidationError as exc:
            raise DiscoveryError(f"Malformed device listing: {exc}") from exc

        await self.check_and_refresh_devices_online(devices)
        for device in devices:
            await self.add_accessory(device)

        to_remove = [
            accessory for accessory in self.accessories
            if not accessory.platform_accessory.context.get("configured")
        ]
        if to_remove:
            for accessory in to_remove:
                logger.info(f"Removing accessory: {accessory.platform_accessory.display_name}")
                self.accessories.remove(accessory)
            self.host.unregister_platform_accessories(
                Constants.PLUGIN_NAME,
                Constants.PLATFORM_NAME,
                [accessory.platform_accessory for accessory in to_remove],
            )

    async def add_accessory(self, device: Device) -> Optional[Accessory]:
        """Create the accessory of ``device`` or refresh the one already registered."""
        accessory_uuid = self.host.generate_uuid(device.barcode)
        existing = [a for a in self.accessories if a.platform_accessory.uuid == accessory_uuid]

        if not existing:
            try:
                family = resolve_family(device.dvc_type_cd, device.prod_name)
            except UnsupportedDeviceError as exc:
                logger.warning(f"Skipping {device.display_name}: {exc}")
                return None

            logger.info(f"Adding new accessory: {device.display_name} ({device.prod_name})")
            platform_accessory = PlatformAccessory(device.display_name, accessory_uuid)
            accessory = create_accessory(family, self._client, device, platform_accessory)
            self.accessories.append(accessory)

            accessory.configure_credentials(self.config, self._access_token)
            await accessory.configure()

            platform_accessory.context = accessory.build_context(configured=True).to_context()
            self.host.register_platform_accessories(
                Constants.PLUGIN_NAME, Constants.PLATFORM_NAME, [platform_accessory]
            )
            self.host.update_platform_accessories([platform_accessory])
            return accessory

        logger.info(f"Restoring existing accessory: {device.display_name} ({device.prod_name})")
        for accessory in existing:
            accessory.configure_credentials(self.config, self._access_token)
            accessory.set_device_info(device)
            await accessory.configure()

            platform_accessory = accessory.platform_accessory
            platform_accessory.context = accessory.build_context(configured=True).to_context()
            self.host.update_platform_accessories([platform_accessory])
        return existing[0]

    async def discover_with_retry(self) -> None:
        """Run discovery, retrying with a fixed backoff.

        Raises:
            DiscoveryError: If every attempt failed
        """
        attempts = self.config.discovery_retries
        for attempt in range(1, attempts + 1):
            try:
                await self.configure_coway_devices()
                return
            except CowayException as exc:
                logger.error(f"Discovery attempt {attempt}/{attempts} failed: {exc}")
                if attempt == attempts:
                    if isinstance(exc, DiscoveryError):
                        raise
                    raise DiscoveryError(str(exc)) from exc
                await asyncio.sleep(self.config.discovery_backoff)

    # ------------------------------------------------------------------
    # Polling

    async def refresh_devices_parallel(self) -> bool:
        """Poll every endpoint of every accessory in one concurrent batch.

        Returns:
            False if another refresh was still in flight and this one was skipped
        """
        if self._refreshing:
            logger.debug("Previous refresh still in flight, skipping")
            return False
        self._refreshing = True
        try:
            accessories = list(self.accessories)
            queues = []
            for accessory in accessories:
                for endpoint in accessory.get_endpoints():
                    queues.append(accessory.retrieve_device_state(endpoint))
            responses = await asyncio.gather(*queues, return_exceptions=True)

            offset = 0
            for accessory in accessories:
                count = len(accessory.get_endpoints())
                awaits = responses[offset:offset + count]
                offset += count
                await self._refresh_accessory(accessory, awaits)
            return True
        finally:
            self._refreshing = False

    async def _refresh_accessory(self, accessory: Accessory, responses: List[Any]) -> None:
        name = accessory.platform_accessory.display_name
        failures = [r for r in responses if isinstance(r, BaseException)]
        if failures:
            logger.error(f"Failed to refresh {name}: {failures[0]}")
            return
        try:
            await accessory.refresh(accessory.zip_endpoint_responses(responses))
        except CowayException:
            logger.exception(f"Failed to reconcile {name}")
            return
        self.host.update_platform_accessories([accessory.platform_accessory])

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.polling_interval
        while True:
            started = loop.time()
            try:
                await self.refresh_devices_parallel()
            except Exception:
                logger.exception("Unexpected error while refreshing devices")
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    def enqueue_device_refresh_interval(self) -> asyncio.Task:
        """Start the polling task unless it is already running."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())
        return self._poll_task

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self, *, poll: bool = True) -> None:
        """Discover devices, refresh them once and start polling.

        Raises:
            ConfigurationError: If the platform is not configured
            DiscoveryError: If discovery kept failing
        """
        if self.config is None or self._client is None:
            raise ConfigurationError("The coway config is not yet configured.")
        self._access_token = AccessToken.from_config(self.config)

        await self.discover_with_retry()
        await self.refresh_devices_parallel()
        if poll:
            self.enqueue_device_refresh_interval()

    async def stop(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        if self._owns_client and self._client is not None:
            await self._client.close()

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Return the persisted context of every accessory keyed by barcode."""
        return {
            accessory.device_id: dict(accessory.platform_accessory.context)
            for accessory in self.accessories
        }
