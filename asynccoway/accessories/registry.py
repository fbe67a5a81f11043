"""
Accessory implementations per device family.
"""

from typing import Callable, Dict, Optional

from asynccoway.accessories.accessory import Accessory
from asynccoway.accessories.air_purifiers.airmega import AirmegaAirPurifier
from asynccoway.api.client import CowayClient
from asynccoway.enums import DeviceFamily
from asynccoway.exceptions.api import UnsupportedDeviceError
from asynccoway.host import PlatformAccessory
from asynccoway.models.device import Device

AccessoryFactory = Callable[[CowayClient, Device, PlatformAccessory], Accessory]

ACCESSORY_FACTORIES: Dict[DeviceFamily, AccessoryFactory] = {
    DeviceFamily.AIRMEGA_AIR_PURIFIER: AirmegaAirPurifier,
}


def resolve_family(device_type: Optional[str], prod_name: Optional[str]) -> DeviceFamily:
    """Return the family of a device.

    Raises:
        UnsupportedDeviceError: If no family matches the type code and product name
    """
    family = DeviceFamily.resolve(device_type, prod_name)
    if family is None or family not in ACCESSORY_FACTORIES:
        raise UnsupportedDeviceError(f"Unsupported device {device_type}+{prod_name}")
    return family


def create_accessory(family: DeviceFamily, client: CowayClient, device: Device,
                     platform_accessory: PlatformAccessory) -> Accessory:
    return ACCESSORY_FACTORIES[family](client, device, platform_accessory)
