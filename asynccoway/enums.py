"""
Constants and code tables used by the Coway IoCare API.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Constants:
    PLUGIN_NAME = "asynccoway"
    PLATFORM_NAME = "CowayPlatform"
    MANUFACTURER = "Coway Co.,Ltd."


class EndpointPath(str, Enum):
    """Polled IoCare resources.  ``{deviceId}`` is replaced by the barcode."""

    DEVICES_CONTROL = "/devices/{deviceId}/control"
    AIR_DEVICES_HOME = "/air/devices/{deviceId}/home"
    AIR_DEVICES_FILTER_INFO = "/air/devices/{deviceId}/filter-info"

    def for_device(self, device_id: str) -> str:
        return self.value.replace("{deviceId}", device_id)


class IoCareEndpoint(str, Enum):
    """Account level IoCare resources."""

    GET_USER_DEVICES = "/com/user-devices"
    GET_DEVICE_CONNECTIONS = "/com/devices-conn"
    CONTROL_DEVICE = "/com/control-device"


class DeviceType(str, Enum):
    WATER_PURIFIER = "001"
    AIR_PURIFIER = "004"


class DeviceFamily(Enum):
    """Device families with a dedicated accessory implementation.

    Each member is keyed by the ``(dvcTypeCd, prodName)`` pair reported by the
    device listing.
    """

    AIRMEGA_AIR_PURIFIER = (DeviceType.AIR_PURIFIER, "AIRMEGA")

    @property
    def device_type(self) -> DeviceType:
        return self.value[0]

    @property
    def product_name(self) -> str:
        return self.value[1]

    @classmethod
    def resolve(cls, device_type: Optional[str], prod_name: Optional[str]) -> Optional["DeviceFamily"]:
        """Return the family for a type code and product name, or None."""
        if not device_type or not prod_name:
            return None
        for family in cls:
            if family.device_type.value == device_type and family.product_name == prod_name:
                return family
        return None


# ----------------------------------------------------------------------
# Airmega air purifier codes


class Field(str, Enum):
    POWER = "0001"
    MODE = "0002"
    FAN_SPEED = "0003"
    LIGHT = "0007"


class Power(str, Enum):
    OFF = "0"
    ON = "1"


class AirmegaLight(str, Enum):
    OFF = "0"
    ON = "2"


class AirmegaMode(str, Enum):
    AUTO = "1"
    MANUAL = "2"


class AirmegaFanSpeed(str, Enum):
    LOW = "1"
    MEDIUM = "2"
    HIGH = "3"


class AirmegaFilterCode(str, Enum):
    PRE_FILTER = "00"
    MAX_FILTER = "01"
