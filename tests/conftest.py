"""
Shared fixtures for the asynccoway tests.
"""

import copy

import pytest
from unittest.mock import AsyncMock, MagicMock

from asynccoway.accessories.air_purifiers.airmega import AirmegaAirPurifier
from asynccoway.api.client import CowayClient
from asynccoway.config import CowayConfig
from asynccoway.enums import EndpointPath
from asynccoway.host import PlatformAccessory
from asynccoway.models.credentials import AccessToken
from asynccoway.models.device import Device
from asynccoway.models.response import CowayResponse

BARCODE = "02EUZ1234567"

DEVICE_INFO = {
    "barcode": BARCODE,
    "dvcBrandCd": "MG",
    "dvcTypeCd": "004",
    "dvcModel": "AP-1512HHS",
    "dvcNick": "Living Room",
    "prodName": "AIRMEGA",
    "ordNo": "ORD0001",
    "sellTypeCd": "1",
    "membershipYn": "N",
    "selfManageYn": "Y",
}

CONTROL_RESPONSE = {
    "netStatus": True,
    "controlStatus": {"0001": "1", "0007": "0", "0003": "2", "0002": "0"},
}
HOME_RESPONSE = {"IAQ": {"dustpm10": "45"}}
FILTER_RESPONSE = {"filterList": [{"filterName": "Pre", "filterCode": "00", "filterPer": 15}]}


def device_payloads(control=None, home=None, filters=None):
    """Return endpoint -> data payloads for one purifier."""
    return {
        EndpointPath.DEVICES_CONTROL: copy.deepcopy(CONTROL_RESPONSE if control is None else control),
        EndpointPath.AIR_DEVICES_HOME: copy.deepcopy(HOME_RESPONSE if home is None else home),
        EndpointPath.AIR_DEVICES_FILTER_INFO: copy.deepcopy(FILTER_RESPONSE if filters is None else filters),
    }


@pytest.fixture
def config():
    return CowayConfig(access_token="token", discovery_backoff=0, polling_interval=30)


@pytest.fixture
def access_token(config):
    return AccessToken.from_config(config)


@pytest.fixture
def device():
    return Device.model_validate(DEVICE_INFO)


@pytest.fixture
def mock_client():
    """A CowayClient double answering polls from ``mock_client.payloads``.

    ``payloads`` maps a barcode to its endpoint payloads; a payload that is an
    exception instance is raised instead.
    """
    client = MagicMock(spec=CowayClient)
    client.payloads = {BARCODE: device_payloads()}

    async def execute_get_payload(path, payload, access_token=None):
        for barcode, endpoints in client.payloads.items():
            for endpoint, data in endpoints.items():
                if endpoint.for_device(barcode) == path:
                    if isinstance(data, Exception):
                        raise data
                    return CowayResponse(data=data, root_path=path)
        raise AssertionError(f"Unexpected request to {path}")

    client.execute_get_payload = AsyncMock(side_effect=execute_get_payload)
    client.execute_set_payloads = AsyncMock(return_value=CowayResponse(data={}))
    client.get_user_devices = AsyncMock(return_value=CowayResponse(data={"deviceInfos": [dict(DEVICE_INFO)]}))
    client.get_device_connections = AsyncMock(return_value=[{"devId": BARCODE, "netStatus": True}])
    client.close = AsyncMock()
    return client


@pytest.fixture
def make_purifier(mock_client, device, config, access_token):
    """Factory building an unconfigured purifier bound to ``mock_client``."""

    def _make(context=None):
        platform_accessory = PlatformAccessory(device.display_name, "uuid-1", context or {})
        purifier = AirmegaAirPurifier(mock_client, device, platform_accessory)
        purifier.configure_credentials(config, access_token)
        return purifier

    return _make
