"""Base accessory bound to one Coway device.

Owns the device's polled endpoints, its connectivity flag and command dispatch.
Device families subclass :class:`Accessory` to add their own endpoints,
payloads, state parsing and characteristic handlers.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from asynccoway.api.client import CowayClient
from asynccoway.config import CowayConfig
from asynccoway.enums import Constants, DeviceType, EndpointPath
from asynccoway.exceptions.api import EndpointMismatchError, ParseError
from asynccoway.host import (
    CharacteristicType,
    GetHandler,
    HAPStatus,
    HapStatusError,
    PlatformAccessory,
    Service,
    ServiceType,
    SetHandler,
)
from asynccoway.models.commands import ExpirablePayloadCommand, PayloadCommand
from asynccoway.models.context import AccessoryContext
from asynccoway.models.credentials import AccessToken
from asynccoway.models.device import Device
from asynccoway.models.response import CowayResponse

__all__ = ["Accessory", "AccessoryResponses", "CharacteristicRefreshingCallback"]

logger = logging.getLogger(__name__)

AccessoryResponses = Dict[EndpointPath, Any]
CharacteristicRefreshingCallback = Callable[[], Optional[Awaitable[None]]]

_DEFAULT_COMMAND_MAX_AGE = 30.0


def _is_online(net_status: Any) -> bool:
    if isinstance(net_status, str):
        return net_status.strip().lower() in ("true", "y", "1")
    return bool(net_status)


class Accessory:
    """Device controller shared by every device family."""

    def __init__(
        self,
        client: CowayClient,
        device_type: DeviceType,
        device_info: Device,
        platform_accessory: PlatformAccessory,
    ) -> None:
        self._client = client
        self.device_type = device_type
        self.device_info = device_info
        self._platform_accessory = platform_accessory

        self._endpoints: List[EndpointPath] = []
        self._endpoints_sealed = False

        # Lent by the platform
        self._config: Optional[CowayConfig] = None
        self._access_token: Optional[AccessToken] = None

        self.characteristic_refreshing = False
        self._connected = False

        self._pending_commands: Dict[str, ExpirablePayloadCommand] = {}

        self._add_endpoint(EndpointPath.DEVICES_CONTROL)

    # ------------------------------------------------------------------
    # Identity and endpoints

    def _add_endpoint(self, endpoint: EndpointPath) -> None:
        if self._endpoints_sealed:
            raise RuntimeError("Endpoints can only be added while constructing the accessory")
        self._endpoints.append(endpoint)

    def get_endpoints(self) -> tuple:
        return tuple(self._endpoints)

    @property
    def platform_accessory(self) -> PlatformAccessory:
        return self._platform_accessory

    @property
    def device_id(self) -> str:
        return self.device_info.barcode

    @property
    def is_connected(self) -> bool:
        return self._connected

    def configure_credentials(self, config: CowayConfig, access_token: AccessToken) -> None:
        self._config = config
        self._access_token = access_token

    def set_device_info(self, device_info: Device) -> None:
        self.device_info = device_info

    # ------------------------------------------------------------------
    # Host helpers

    def ensure_service_availability(
        self,
        service_type: ServiceType,
        display_name: Optional[str] = None,
        service_id: Optional[str] = None,
    ) -> Service:
        """Return the accessory's service of ``service_type``, adding it if missing."""
        if display_name and service_id:
            service = self._platform_accessory.get_service_by_id(service_type, service_id)
        else:
            service = self._platform_accessory.get_service(service_type)
        if service is None:
            service = self._platform_accessory.add_service(
                service_type, display_name or self._platform_accessory.display_name, service_id
            )
        return service

    def _state_snapshot(self) -> Dict[str, Any]:
        """Return the family state to persist with the accessory context."""
        return {}

    def build_context(self, configured: bool = True) -> AccessoryContext:
        return AccessoryContext(
            device_type=self.device_type.value,
            device_info=self.device_info,
            init=False,
            configured=configured,
            state=self._state_snapshot(),
        )

    def save_context(self) -> None:
        """Write the current state into the host-persisted context."""
        configured = bool(self._platform_accessory.context.get("configured", False))
        self._platform_accessory.context = self.build_context(configured).to_context()

    # ------------------------------------------------------------------
    # Polling

    def _create_control_payload(self) -> Dict[str, Any]:
        return {
            "devId": self.device_info.barcode,
            "mqttDevice": "true",
            "dvcBrandCd": self.device_info.dvc_brand_cd,
            "dvcTypeCd": self.device_info.dvc_type_cd,
            "prodName": self.device_info.prod_name,
        }

    def create_payload(self, endpoint: EndpointPath) -> Optional[Dict[str, Any]]:
        """Build the request payload for ``endpoint``.

        Returns None for endpoints this accessory does not know; subclasses
        handle their own endpoints and defer to this implementation otherwise.
        """
        if endpoint == EndpointPath.DEVICES_CONTROL:
            return self._create_control_payload()
        return None

    async def retrieve_device_state(self, endpoint: EndpointPath) -> Optional[CowayResponse]:
        payload = self.create_payload(endpoint)
        if payload is None:
            return None
        return await self._client.execute_get_payload(
            endpoint.for_device(self.device_id), payload, self._access_token
        )

    def zip_endpoint_responses(self, responses: Sequence[Optional[CowayResponse]]) -> AccessoryResponses:
        """Pair responses with the endpoint set by position.

        Raises:
            EndpointMismatchError: If the number of responses differs from the
                number of endpoints
        """
        if len(responses) != len(self._endpoints):
            raise EndpointMismatchError(len(responses), len(self._endpoints))
        return {
            endpoint: (response.data if response is not None else None)
            for endpoint, response in zip(self._endpoints, responses)
        }

    async def refresh_device(self) -> AccessoryResponses:
        """Fetch every endpoint concurrently and return one snapshot."""
        responses = await asyncio.gather(
            *(self.retrieve_device_state(endpoint) for endpoint in self._endpoints)
        )
        return self.zip_endpoint_responses(responses)

    async def refresh(self, responses: AccessoryResponses) -> None:
        """Reconcile a snapshot; the base only tracks connectivity."""
        if EndpointPath.DEVICES_CONTROL in responses:
            control_info = responses[EndpointPath.DEVICES_CONTROL]
            if not control_info:
                self._connected = False
                return
            if not isinstance(control_info, Mapping):
                raise ParseError(f"Unexpected control response: {control_info!r}")
            self._connected = _is_online(control_info.get("netStatus"))

    async def refresh_characteristics(self, callback: CharacteristicRefreshingCallback) -> None:
        self.characteristic_refreshing = True
        try:
            if self._connected:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
        finally:
            self.characteristic_refreshing = False

    async def configure(self) -> None:
        self._endpoints_sealed = True
        service = self.ensure_service_availability(ServiceType.ACCESSORY_INFORMATION)
        service.set_characteristic(CharacteristicType.MANUFACTURER, Constants.MANUFACTURER)
        service.set_characteristic(CharacteristicType.MODEL, self.device_info.dvc_model)
        service.set_characteristic(CharacteristicType.SERIAL_NUMBER, self.device_info.barcode)

    # ------------------------------------------------------------------
    # Commands

    async def execute_set_payloads(
        self,
        device_info: Device,
        commands: Sequence[PayloadCommand],
        access_token: Optional[AccessToken] = None,
    ) -> Optional[CowayResponse]:
        """Dispatch ``commands``; dropped without a request while offline."""
        if not self._connected:
            return None
        response = await self._client.execute_set_payloads(device_info, commands, access_token)
        self._remember_commands(commands)
        return response

    async def execute_set_payload(
        self,
        device_info: Device,
        key: str,
        value: str,
        access_token: Optional[AccessToken] = None,
    ) -> Optional[CowayResponse]:
        return await self.execute_set_payloads(
            device_info, [PayloadCommand(key=key, value=value)], access_token
        )

    def _remember_commands(self, commands: Iterable[PayloadCommand]) -> None:
        for command in commands:
            self._pending_commands[command.key] = ExpirablePayloadCommand(
                key=command.key, value=command.value
            )

    def _forget_command(self, key: str) -> None:
        """Drop the pending command of ``key`` after a local change superseded it."""
        self._pending_commands.pop(key, None)

    def _command_max_age(self) -> float:
        if self._config is None:
            return _DEFAULT_COMMAND_MAX_AGE
        return self._config.polling_interval

    def apply_pending_commands(self, status: Dict[str, Any], now: Optional[float] = None) -> Dict[str, Any]:
        """Overlay unconfirmed commands on a freshly polled status mapping.

        A command the poll agrees with is confirmed and forgotten.  A command
        the poll disagrees with keeps its value while it is younger than one
        polling interval and still within its skip budget; after that the
        polled value wins.
        """
        if not self._pending_commands:
            return dict(status)
        if now is None:
            now = time.monotonic()
        merged = dict(status)
        max_age = self._command_max_age()
        for key, command in list(self._pending_commands.items()):
            polled = status.get(key)
            if polled == command.value or command.is_expired(max_age, now):
                del self._pending_commands[key]
                continue
            command.skips += 1
            merged[key] = command.value
            logger.debug(
                f"{self._platform_accessory.display_name}: keeping {key}={command.value} "
                f"over polled {polled} ({command.skips} skip(s))"
            )
        return merged

    # ------------------------------------------------------------------
    # Offline gate

    def wrap_get(self, handler: GetHandler) -> GetHandler:
        @functools.wraps(handler)
        async def wrapper():
            if not self._connected:
                raise HapStatusError(HAPStatus.SERVICE_COMMUNICATION_FAILURE)
            return await handler()
        return wrapper

    def wrap_set(self, handler: SetHandler) -> SetHandler:
        @functools.wraps(handler)
        async def wrapper(value):
            if not self._connected:
                raise HapStatusError(HAPStatus.SERVICE_COMMUNICATION_FAILURE)
            await handler(value)
        return wrapper
