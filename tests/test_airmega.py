"""
Tests for the AIRMEGA air purifier accessory.
"""

import pytest

from asynccoway.accessories.air_purifiers.airmega import AirmegaAirPurifier
from asynccoway.accessories.air_purifiers.models import (
    AirmegaControlInfo,
    AirmegaState,
    FilterInfo,
    air_quality_from_pm10,
    filter_change_indication,
    parse_control_info,
    parse_fan_speed,
    parse_filter_infos,
    parse_indoor_air_quality,
)
from asynccoway.enums import AirmegaFanSpeed, AirmegaFilterCode, AirmegaMode, EndpointPath
from asynccoway.host import (
    Active,
    AirQuality,
    CharacteristicType,
    CurrentAirPurifierState,
    FilterChangeIndication,
    HAPStatus,
    ServiceType,
    TargetAirPurifierState,
)
from asynccoway.exceptions.api import ParseError
from asynccoway.models.commands import PayloadCommand

from conftest import device_payloads, BARCODE

POWERED_OFF = {"netStatus": True, "controlStatus": {"0001": "0", "0007": "0", "0003": "1", "0002": "2"}}
LIGHT_ON = {"netStatus": True, "controlStatus": {"0001": "1", "0007": "2", "0003": "3", "0002": "1"}}


def _purifier_service(purifier):
    return purifier.platform_accessory.get_service(ServiceType.AIR_PURIFIER)


def _light(purifier):
    return purifier.platform_accessory.get_service(ServiceType.LIGHTBULB).get_characteristic(CharacteristicType.ON)


def _sent_commands(mock_client):
    return [call.args[1] for call in mock_client.execute_set_payloads.await_args_list]


# ----------------------------------------------------------------------
# Parsers


@pytest.mark.parametrize("raw,expected", [
    ("1", AirmegaFanSpeed.LOW),
    ("2", AirmegaFanSpeed.MEDIUM),
    ("3", AirmegaFanSpeed.HIGH),
    ("6", AirmegaFanSpeed.HIGH),
    ("0", AirmegaFanSpeed.LOW),
    (None, AirmegaFanSpeed.LOW),
    ("fast", AirmegaFanSpeed.LOW),
])
def test_parse_fan_speed(raw, expected):
    assert parse_fan_speed(raw) == expected


def test_parse_control_info():
    info = parse_control_info({"0001": "1", "0007": "2", "0003": "3", "0002": "1"})
    assert info == AirmegaControlInfo(on=True, lightbulb=True, fan_speed=AirmegaFanSpeed.HIGH, mode=AirmegaMode.AUTO)


@pytest.mark.parametrize("mode", ["0", "2", "5", None])
def test_parse_control_info_mode_is_manual_unless_auto(mode):
    assert parse_control_info({"0002": mode}).mode == AirmegaMode.MANUAL


def test_parse_control_info_light_requires_exact_code():
    assert parse_control_info({"0007": "1"}).lightbulb is False


def test_parse_indoor_air_quality():
    assert parse_indoor_air_quality({"IAQ": {"dustpm10": "45"}}).pm10_density == 45.0
    assert parse_indoor_air_quality({"IAQ": {"dustpm10": "n/a"}}).pm10_density == -1.0
    assert parse_indoor_air_quality(None).pm10_density == -1.0


def test_parse_filter_infos():
    infos = parse_filter_infos({"filterList": [
        {"filterName": "Pre", "filterCode": "00", "filterPer": 15},
        {"filterName": "Max2", "filterCode": "01"},
        {"filterName": "orphan"},
    ]})
    assert infos == [
        FilterInfo(filter_name="Pre", filter_code="00", filter_percentage=15),
        FilterInfo(filter_name="Max2", filter_code="01", filter_percentage=100.0),
    ]
    assert parse_filter_infos({}) == []


@pytest.mark.parametrize("pm10,expected", [
    (-1, AirQuality.UNKNOWN),
    (0, AirQuality.EXCELLENT),
    (10, AirQuality.EXCELLENT),
    (11, AirQuality.GOOD),
    (30, AirQuality.GOOD),
    (31, AirQuality.FAIR),
    (80, AirQuality.FAIR),
    (81, AirQuality.INFERIOR),
    (150, AirQuality.INFERIOR),
    (151, AirQuality.POOR),
])
def test_air_quality_from_pm10(pm10, expected):
    assert air_quality_from_pm10(pm10) == expected


@pytest.mark.parametrize("percentage,expected", [
    (0, FilterChangeIndication.CHANGE_FILTER),
    (20, FilterChangeIndication.CHANGE_FILTER),
    (21, FilterChangeIndication.FILTER_OK),
    (100, FilterChangeIndication.FILTER_OK),
])
def test_filter_change_indication(percentage, expected):
    assert filter_change_indication(percentage) == expected


def test_missing_filter_reads_as_new():
    state = AirmegaState()
    assert AirmegaAirPurifier.get_current_filter_percentage(state, AirmegaFilterCode.MAX_FILTER) == 100.0
    assert AirmegaAirPurifier.get_current_filter_change_indication(
        state, AirmegaFilterCode.MAX_FILTER) == FilterChangeIndication.FILTER_OK


def test_air_quality_unknown_while_off():
    state = AirmegaState()
    state.indoor_air_quality.pm10_density = 5
    assert AirmegaAirPurifier.get_current_air_quality(state) == AirQuality.UNKNOWN
    assert AirmegaAirPurifier.get_rotation_speed(state) == 0


# ----------------------------------------------------------------------
# Accessory


def test_endpoints(make_purifier):
    assert make_purifier().get_endpoints() == (
        EndpointPath.DEVICES_CONTROL,
        EndpointPath.AIR_DEVICES_HOME,
        EndpointPath.AIR_DEVICES_FILTER_INFO,
    )


def test_filter_payload(make_purifier):
    payload = make_purifier().create_payload(EndpointPath.AIR_DEVICES_FILTER_INFO)
    assert payload["devId"] == BARCODE
    assert payload["orderNo"] == "ORD0001"
    assert payload["selfYn"] == "Y"


@pytest.mark.asyncio
async def test_configure_reconciles_first_poll(make_purifier):
    purifier = make_purifier()
    await purifier.configure()

    assert purifier.is_connected
    service = _purifier_service(purifier)
    assert service.get_characteristic(CharacteristicType.ACTIVE).value == Active.ACTIVE
    assert service.get_characteristic(CharacteristicType.CURRENT_AIR_PURIFIER_STATE).value == \
        CurrentAirPurifierState.PURIFYING_AIR
    assert service.get_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE).value == \
        TargetAirPurifierState.MANUAL
    assert service.get_characteristic(CharacteristicType.ROTATION_SPEED).value == pytest.approx(66.67, abs=0.01)
    assert _light(purifier).value is False

    quality = purifier.platform_accessory.get_service(ServiceType.AIR_QUALITY_SENSOR)
    assert quality.get_characteristic(CharacteristicType.AIR_QUALITY).value == AirQuality.FAIR
    assert quality.get_characteristic(CharacteristicType.PM10_DENSITY).value == 45.0

    pre_filter = purifier.platform_accessory.get_service_by_id(ServiceType.FILTER_MAINTENANCE, "00")
    assert pre_filter.display_name == "Pre Filter"
    assert pre_filter.get_characteristic(CharacteristicType.FILTER_CHANGE_INDICATION).value == \
        FilterChangeIndication.CHANGE_FILTER
    assert pre_filter.get_characteristic(CharacteristicType.FILTER_LIFE_LEVEL).value == 15
    max_filter = purifier.platform_accessory.get_service_by_id(ServiceType.FILTER_MAINTENANCE, "01")
    assert max_filter.get_characteristic(CharacteristicType.FILTER_LIFE_LEVEL).value == 100.0


@pytest.mark.asyncio
async def test_reads_fail_while_offline(make_purifier, mock_client):
    mock_client.payloads[BARCODE] = device_payloads(control={"netStatus": False})
    purifier = make_purifier()
    await purifier.configure()

    status, value = await _purifier_service(purifier).get_characteristic(CharacteristicType.ACTIVE).handle_get()
    assert status == HAPStatus.SERVICE_COMMUNICATION_FAILURE
    assert value is None


@pytest.mark.asyncio
async def test_offline_poll_keeps_previous_state(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await purifier.refresh(purifier.zip_endpoint_responses([None, None, None]))
    assert not purifier.is_connected
    assert purifier.state.control_info.on is True


@pytest.mark.asyncio
async def test_state_is_persisted_and_restored(make_purifier):
    purifier = make_purifier()
    await purifier.configure()
    context = purifier.platform_accessory.context
    assert context["version"] == 1
    assert context["device_info"]["dvcTypeCd"] == "004"
    assert context["state"]["control_info"]["on"] is True

    restored = make_purifier(context=dict(context))
    assert restored.state.control_info.fan_speed == AirmegaFanSpeed.MEDIUM
    assert restored.state.indoor_air_quality.pm10_density == 45.0


def test_corrupt_cached_state_is_discarded(make_purifier):
    purifier = make_purifier(context={"state": {"control_info": {"fan_speed": "9"}}})
    assert purifier.state == AirmegaState()


@pytest.mark.asyncio
async def test_rotation_speed_while_off_powers_on_in_one_request(make_purifier, mock_client):
    mock_client.payloads[BARCODE] = device_payloads(control=POWERED_OFF)
    purifier = make_purifier()
    await purifier.configure()

    rotation = _purifier_service(purifier).get_characteristic(CharacteristicType.ROTATION_SPEED)
    assert await rotation.handle_set(66) == HAPStatus.SUCCESS

    assert _sent_commands(mock_client) == [[PayloadCommand("0001", "1"), PayloadCommand("0003", "2")]]
    assert rotation.value == pytest.approx(66.67, abs=0.01)
    assert _purifier_service(purifier).get_characteristic(CharacteristicType.ACTIVE).value == Active.ACTIVE
    assert purifier.state.control_info.fan_speed == AirmegaFanSpeed.MEDIUM


@pytest.mark.asyncio
async def test_rotation_speed_same_level_is_noop(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    rotation = _purifier_service(purifier).get_characteristic(CharacteristicType.ROTATION_SPEED)
    assert await rotation.handle_set(60) == HAPStatus.SUCCESS
    mock_client.execute_set_payloads.assert_not_awaited()


@pytest.mark.asyncio
async def test_rotation_speed_zero_while_on_sends_nothing(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    rotation = _purifier_service(purifier).get_characteristic(CharacteristicType.ROTATION_SPEED)
    await rotation.handle_set(0)
    mock_client.execute_set_payloads.assert_not_awaited()
    assert rotation.value == 0


@pytest.mark.asyncio
async def test_rotation_speed_high(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _purifier_service(purifier).get_characteristic(CharacteristicType.ROTATION_SPEED).handle_set(100)
    assert _sent_commands(mock_client) == [[PayloadCommand("0003", "3")]]
    assert purifier.state.control_info.fan_speed == AirmegaFanSpeed.HIGH


@pytest.mark.asyncio
async def test_active_same_value_is_noop(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _purifier_service(purifier).get_characteristic(CharacteristicType.ACTIVE).handle_set(Active.ACTIVE)
    mock_client.execute_set_payloads.assert_not_awaited()


@pytest.mark.asyncio
async def test_power_off_turns_light_off_once(make_purifier, mock_client):
    mock_client.payloads[BARCODE] = device_payloads(control=LIGHT_ON)
    purifier = make_purifier()
    await purifier.configure()
    assert _light(purifier).value is True

    pushed = []
    _light(purifier).subscribe(lambda characteristic, value: pushed.append(value))

    active = _purifier_service(purifier).get_characteristic(CharacteristicType.ACTIVE)
    assert await active.handle_set(Active.INACTIVE) == HAPStatus.SUCCESS

    assert _sent_commands(mock_client) == [[PayloadCommand("0001", "0")]]
    assert pushed == [False]
    assert active.value == Active.INACTIVE
    assert purifier.state.control_info.lightbulb is False


@pytest.mark.asyncio
async def test_light_snaps_back_while_off(make_purifier, mock_client):
    mock_client.payloads[BARCODE] = device_payloads(control=POWERED_OFF)
    purifier = make_purifier()
    await purifier.configure()

    assert await _light(purifier).handle_set(True) == HAPStatus.SUCCESS
    mock_client.execute_set_payloads.assert_not_awaited()
    assert _light(purifier).value is False


@pytest.mark.asyncio
async def test_light_on(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _light(purifier).handle_set(True)
    assert _sent_commands(mock_client) == [[PayloadCommand("0007", "2")]]
    assert _light(purifier).value is True


@pytest.mark.asyncio
async def test_target_state_switches(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()
    target = _purifier_service(purifier).get_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE)

    await target.handle_set(TargetAirPurifierState.MANUAL)
    mock_client.execute_set_payloads.assert_not_awaited()

    await target.handle_set(TargetAirPurifierState.AUTO)
    await target.handle_set(TargetAirPurifierState.MANUAL)

    assert _sent_commands(mock_client) == [
        [PayloadCommand("0002", "1")],
        [PayloadCommand("0003", "2")],
    ]
    assert target.value == TargetAirPurifierState.MANUAL


@pytest.mark.asyncio
async def test_poll_does_not_revert_fresh_command(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _light(purifier).handle_set(True)
    # The cloud has not caught up with the command yet
    await purifier.refresh(await purifier.refresh_device())

    assert purifier.state.control_info.lightbulb is True
    assert _light(purifier).value is True


async def _poll(purifier, mock_client, control_status):
    mock_client.payloads[BARCODE] = device_payloads(control={"netStatus": True, "controlStatus": control_status})
    await purifier.refresh(await purifier.refresh_device())


@pytest.mark.asyncio
async def test_manual_after_auto_follows_poll(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()
    target = _purifier_service(purifier).get_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE)

    await target.handle_set(TargetAirPurifierState.AUTO)
    await target.handle_set(TargetAirPurifierState.MANUAL)
    await _poll(purifier, mock_client, {"0001": "1", "0007": "0", "0003": "2", "0002": "2"})

    assert purifier.state.control_info.mode == AirmegaMode.MANUAL
    assert target.value == TargetAirPurifierState.MANUAL


@pytest.mark.asyncio
async def test_auto_drops_pending_fan_speed(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _purifier_service(purifier).get_characteristic(CharacteristicType.ROTATION_SPEED).handle_set(100)
    await _purifier_service(purifier).get_characteristic(
        CharacteristicType.TARGET_AIR_PURIFIER_STATE).handle_set(TargetAirPurifierState.AUTO)
    await _poll(purifier, mock_client, {"0001": "1", "0007": "0", "0003": "1", "0002": "1"})

    assert purifier.state.control_info.mode == AirmegaMode.AUTO
    assert purifier.state.control_info.fan_speed == AirmegaFanSpeed.LOW


@pytest.mark.asyncio
async def test_light_then_power_off_follows_poll(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    await _light(purifier).handle_set(True)
    await _purifier_service(purifier).get_characteristic(CharacteristicType.ACTIVE).handle_set(Active.INACTIVE)
    await _poll(purifier, mock_client, {"0001": "0", "0007": "0", "0003": "2", "0002": "2"})

    assert purifier.state.control_info.on is False
    assert purifier.state.control_info.lightbulb is False
    assert _light(purifier).value is False


@pytest.mark.parametrize("parser,payload", [
    (parse_control_info, ["0001"]),
    (parse_indoor_air_quality, {"IAQ": ["45"]}),
    (parse_filter_infos, {"filterList": [{"filterCode": "00", "filterPer": "n/a"}]}),
    (parse_filter_infos, {"filterList": ["00"]}),
    (parse_filter_infos, {"filterList": 5}),
])
def test_parsers_reject_malformed_payloads(parser, payload):
    with pytest.raises(ParseError):
        parser(payload)


@pytest.mark.asyncio
async def test_malformed_control_status_fails_refresh(make_purifier, mock_client):
    purifier = make_purifier()
    await purifier.configure()

    with pytest.raises(ParseError):
        await _poll(purifier, mock_client, ["0001", "1"])
    assert purifier.state.control_info.fan_speed == AirmegaFanSpeed.MEDIUM


@pytest.mark.asyncio
async def test_configure_survives_malformed_payload(make_purifier, mock_client):
    mock_client.payloads[BARCODE] = device_payloads(filters={"filterList": [{"filterCode": "00", "filterPer": "n/a"}]})
    purifier = make_purifier()
    await purifier.configure()

    assert purifier.state == AirmegaState()
    assert _purifier_service(purifier) is not None
