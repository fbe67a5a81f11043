"""
Accessories bridging Coway devices to the accessory host.
"""

from asynccoway.accessories.accessory import Accessory
from asynccoway.accessories.air_purifiers.airmega import AirmegaAirPurifier
from asynccoway.accessories.registry import ACCESSORY_FACTORIES, create_accessory, resolve_family

__all__ = ["Accessory", "AirmegaAirPurifier", "ACCESSORY_FACTORIES", "create_accessory", "resolve_family"]
