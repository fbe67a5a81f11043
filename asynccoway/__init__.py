"""
Asynccoway - Async bridge between the Coway IoCare cloud and an accessory host.

This package discovers the devices registered to a Coway account, polls their
state from the IoCare API and exposes it as accessory characteristics, sending
characteristic writes back to the cloud as control commands.
"""

__version__ = "0.1.0"

from asynccoway.api.client import CowayClient
from asynccoway.config import CowayConfig, load_config, parse_coway_config
from asynccoway.models.device import Device
from asynccoway.models.response import CowayResponse
from asynccoway.models.credentials import AccessToken
from asynccoway.models.context import AccessoryContext
from asynccoway.exceptions import CowayException
from asynccoway.exceptions.api import APIException, DiscoveryError, EndpointMismatchError, ParseError, UnsupportedDeviceError
from asynccoway.exceptions.network import NetworkException, NetworkConnectionError, NetworkTimeoutError, ResponseError
from asynccoway.exceptions.config import ConfigurationError
from asynccoway.enums import DeviceFamily, DeviceType, EndpointPath
from asynccoway.host import AccessoryHost, HAPStatus, HapStatusError, PlatformAccessory
from asynccoway.accessories import Accessory, AirmegaAirPurifier
from asynccoway.platform import CowayPlatform
