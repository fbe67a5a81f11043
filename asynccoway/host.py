"""
In-process accessory host.

Stores accessories with their services and characteristics, dispatches
characteristic reads and writes to the registered handlers, and keeps each
accessory's context blob across restarts.
"""

from __future__ import annotations

import json
import logging
import uuid
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

CharacteristicValue = Union[bool, int, float, str, None]
GetHandler = Callable[[], Awaitable[CharacteristicValue]]
SetHandler = Callable[[CharacteristicValue], Awaitable[None]]
ValueListener = Callable[["Characteristic", CharacteristicValue], None]

_UUID_NAMESPACE = uuid.UUID("7c3d1a8e-5f0b-4d5a-9a2e-3b6f4c8d1e20")


class HAPStatus(IntEnum):
    SUCCESS = 0
    INSUFFICIENT_PRIVILEGES = -70401
    SERVICE_COMMUNICATION_FAILURE = -70402
    RESOURCE_BUSY = -70403
    READ_ONLY_CHARACTERISTIC = -70404
    WRITE_ONLY_CHARACTERISTIC = -70405
    NOTIFICATION_NOT_SUPPORTED = -70406
    OUT_OF_RESOURCE = -70407
    OPERATION_TIMED_OUT = -70408
    RESOURCE_DOES_NOT_EXIST = -70409
    INVALID_VALUE_IN_REQUEST = -70410


class HapStatusError(Exception):
    """Raised by a characteristic handler to answer with a non-success status."""

    def __init__(self, status: HAPStatus):
        self.status = status
        super().__init__(f"HAP status {status.name} ({int(status)})")


# ----------------------------------------------------------------------
# Characteristic value tables


class Active(IntEnum):
    INACTIVE = 0
    ACTIVE = 1


class CurrentAirPurifierState(IntEnum):
    INACTIVE = 0
    IDLE = 1
    PURIFYING_AIR = 2


class TargetAirPurifierState(IntEnum):
    MANUAL = 0
    AUTO = 1


class AirQuality(IntEnum):
    UNKNOWN = 0
    EXCELLENT = 1
    GOOD = 2
    FAIR = 3
    INFERIOR = 4
    POOR = 5


class FilterChangeIndication(IntEnum):
    FILTER_OK = 0
    CHANGE_FILTER = 1


class Formats(str, Enum):
    BOOL = "bool"
    UINT8 = "uint8"
    FLOAT = "float"
    STRING = "string"


class ServiceType(str, Enum):
    ACCESSORY_INFORMATION = "AccessoryInformation"
    AIR_PURIFIER = "AirPurifier"
    AIR_QUALITY_SENSOR = "AirQualitySensor"
    LIGHTBULB = "Lightbulb"
    FILTER_MAINTENANCE = "FilterMaintenance"


class CharacteristicType(str, Enum):
    MANUFACTURER = "Manufacturer"
    MODEL = "Model"
    SERIAL_NUMBER = "SerialNumber"
    NAME = "Name"
    ACTIVE = "Active"
    CURRENT_AIR_PURIFIER_STATE = "CurrentAirPurifierState"
    TARGET_AIR_PURIFIER_STATE = "TargetAirPurifierState"
    ROTATION_SPEED = "RotationSpeed"
    ON = "On"
    AIR_QUALITY = "AirQuality"
    PM10_DENSITY = "PM10Density"
    FILTER_CHANGE_INDICATION = "FilterChangeIndication"
    FILTER_LIFE_LEVEL = "FilterLifeLevel"


# ----------------------------------------------------------------------
# Registry objects


class Characteristic:
    """A typed value exposed to end users with optional get/set handlers."""

    def __init__(self, characteristic_type: CharacteristicType, value: CharacteristicValue = None):
        self.type = characteristic_type
        self.value = value
        self.props: Dict[str, Any] = {}
        self._get_handler: Optional[GetHandler] = None
        self._set_handler: Optional[SetHandler] = None
        self._listeners: List[ValueListener] = []

    def on_get(self, handler: GetHandler) -> "Characteristic":
        self._get_handler = handler
        return self

    def on_set(self, handler: SetHandler) -> "Characteristic":
        self._set_handler = handler
        return self

    def set_props(self, **props: Any) -> "Characteristic":
        self.props.update(props)
        return self

    def subscribe(self, listener: ValueListener) -> None:
        """Call ``listener`` whenever a new value is pushed."""
        self._listeners.append(listener)

    def update_value(self, value: CharacteristicValue) -> "Characteristic":
        """Push ``value`` to subscribers without invoking the set handler."""
        self.value = value
        for listener in list(self._listeners):
            listener(self, value)
        return self

    async def handle_get(self) -> Tuple[HAPStatus, CharacteristicValue]:
        """Serve a read request from a controller."""
        if self._get_handler is None:
            return HAPStatus.SUCCESS, self.value
        try:
            value = await self._get_handler()
        except HapStatusError as exc:
            return exc.status, None
        self.value = value
        return HAPStatus.SUCCESS, value

    async def handle_set(self, value: CharacteristicValue) -> HAPStatus:
        """Serve a write request from a controller."""
        if self._set_handler is None:
            return HAPStatus.READ_ONLY_CHARACTERISTIC
        try:
            await self._set_handler(value)
        except HapStatusError as exc:
            return exc.status
        return HAPStatus.SUCCESS


class Service:
    """A named group of characteristics."""

    def __init__(self, service_type: ServiceType, display_name: str, subtype: Optional[str] = None):
        self.type = service_type
        self.display_name = display_name
        self.subtype = subtype
        self.characteristics: Dict[CharacteristicType, Characteristic] = {}

    def get_characteristic(self, characteristic_type: CharacteristicType) -> Characteristic:
        """Return the characteristic, adding it on first access."""
        characteristic = self.characteristics.get(characteristic_type)
        if characteristic is None:
            characteristic = Characteristic(characteristic_type)
            self.characteristics[characteristic_type] = characteristic
        return characteristic

    def set_characteristic(self, characteristic_type: CharacteristicType, value: CharacteristicValue) -> "Service":
        self.get_characteristic(characteristic_type).update_value(value)
        return self


class PlatformAccessory:
    """Host-side representation of one physical device."""

    def __init__(self, display_name: str, accessory_uuid: str, context: Optional[Dict[str, Any]] = None):
        self.display_name = display_name
        self.uuid = accessory_uuid
        self.context: Dict[str, Any] = context if context is not None else {}
        self.services: List[Service] = []

    def get_service(self, service_type: ServiceType) -> Optional[Service]:
        for service in self.services:
            if service.type == service_type:
                return service
        return None

    def get_service_by_id(self, service_type: ServiceType, subtype: str) -> Optional[Service]:
        for service in self.services:
            if service.type == service_type and service.subtype == subtype:
                return service
        return None

    def add_service(self, service_type: ServiceType, display_name: Optional[str] = None,
                    subtype: Optional[str] = None) -> Service:
        service = Service(service_type, display_name or self.display_name, subtype)
        self.services.append(service)
        return service


class AccessoryHost:
    """Registry of platform accessories.

    When ``storage_path`` is given, the display name and context of every
    registered accessory are written to that JSON file on each change and read
    back on construction, so that :meth:`cached_accessories` can feed the
    platform's restore path after a restart.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        self._storage_path = Path(storage_path) if storage_path else None
        self._accessories: Dict[str, PlatformAccessory] = {}
        self._cached: List[PlatformAccessory] = []
        if self._storage_path is not None:
            self._cached = self._load()

    @staticmethod
    def generate_uuid(seed: str) -> str:
        """Derive a stable accessory identifier from a device serial."""
        return str(uuid.uuid5(_UUID_NAMESPACE, seed))

    @property
    def accessories(self) -> Dict[str, PlatformAccessory]:
        return dict(self._accessories)

    def cached_accessories(self) -> List[PlatformAccessory]:
        """Return accessories restored from storage, registering them again."""
        for accessory in self._cached:
            self._accessories[accessory.uuid] = accessory
        cached, self._cached = self._cached, []
        return cached

    def register_platform_accessories(self, plugin_name: str, platform_name: str,
                                      accessories: Iterable[PlatformAccessory]) -> None:
        for accessory in accessories:
            logger.debug(f"{plugin_name}/{platform_name}: registering {accessory.display_name}")
            self._accessories[accessory.uuid] = accessory
        self._save()

    def update_platform_accessories(self, accessories: Iterable[PlatformAccessory]) -> None:
        for accessory in accessories:
            self._accessories[accessory.uuid] = accessory
        self._save()

    def unregister_platform_accessories(self, plugin_name: str, platform_name: str,
                                        accessories: Iterable[PlatformAccessory]) -> None:
        for accessory in accessories:
            logger.debug(f"{plugin_name}/{platform_name}: unregistering {accessory.display_name}")
            self._accessories.pop(accessory.uuid, None)
        self._save()

    # ------------------------------------------------------------------
    # Persistence

    def _load(self) -> List[PlatformAccessory]:
        if self._storage_path is None or not self._storage_path.exists():
            return []
        try:
            with open(self._storage_path, "r", encoding="utf-8") as fh:
                stored = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable accessory cache {self._storage_path}: {exc}")
            return []
        return [
            PlatformAccessory(entry.get("display_name", ""), accessory_uuid, entry.get("context") or {})
            for accessory_uuid, entry in stored.items()
        ]

    def _save(self) -> None:
        if self._storage_path is None:
            return
        stored = {
            accessory.uuid: {"display_name": accessory.display_name, "context": accessory.context}
            for accessory in self._accessories.values()
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._storage_path, "w", encoding="utf-8") as fh:
            json.dump(stored, fh, indent=2, ensure_ascii=False)
