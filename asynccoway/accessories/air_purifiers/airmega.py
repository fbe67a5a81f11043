"""AIRMEGA air purifier accessory."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from asynccoway.accessories.accessory import Accessory, AccessoryResponses
from asynccoway.accessories.air_purifiers.models import (
    FAN_SPEED_LEVELS,
    DEFAULT_FILTER_PERCENTAGE,
    AirmegaState,
    air_quality_from_pm10,
    filter_change_indication,
    parse_control_info,
    parse_filter_infos,
    parse_indoor_air_quality,
)
from asynccoway.api.client import CowayClient
from asynccoway.enums import (
    AirmegaFilterCode,
    AirmegaLight,
    AirmegaMode,
    DeviceType,
    EndpointPath,
    Field,
    Power,
)
from asynccoway.exceptions import CowayException
from asynccoway.exceptions.api import ParseError
from asynccoway.host import (
    Active,
    AirQuality,
    CharacteristicType,
    CharacteristicValue,
    CurrentAirPurifierState,
    FilterChangeIndication,
    Formats,
    PlatformAccessory,
    Service,
    ServiceType,
    TargetAirPurifierState,
)
from asynccoway.models.commands import PayloadCommand
from asynccoway.models.device import Device

logger = logging.getLogger(__name__)

ROTATION_SPEED_UNIT = 100 / 3.0

FILTER_DISPLAY_NAMES = {
    AirmegaFilterCode.PRE_FILTER: "Pre Filter",
    AirmegaFilterCode.MAX_FILTER: "Max Filter",
}


class AirmegaAirPurifier(Accessory):
    """AIRMEGA purifier with a light ring, an air quality sensor and two filters."""

    def __init__(self, client: CowayClient, device_info: Device, platform_accessory: PlatformAccessory) -> None:
        super().__init__(client, DeviceType.AIR_PURIFIER, device_info, platform_accessory)
        self._add_endpoint(EndpointPath.AIR_DEVICES_HOME)
        self._add_endpoint(EndpointPath.AIR_DEVICES_FILTER_INFO)

        self._state = self._restore_state(platform_accessory.context)

        self._air_purifier_service: Optional[Service] = None
        self._air_quality_service: Optional[Service] = None
        self._lightbulb_service: Optional[Service] = None
        self._filter_services: Dict[AirmegaFilterCode, Service] = {}

    @property
    def state(self) -> AirmegaState:
        return self._state

    @staticmethod
    def _restore_state(context: Dict[str, Any]) -> AirmegaState:
        cached = context.get("state")
        if not cached:
            return AirmegaState()
        try:
            return AirmegaState.model_validate(cached)
        except ValidationError as exc:
            logger.warning(f"Discarding cached purifier state: {exc}")
            return AirmegaState()

    def _state_snapshot(self) -> Dict[str, Any]:
        return self._state.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Polling

    def create_payload(self, endpoint: EndpointPath) -> Optional[Dict[str, Any]]:
        info = self.device_info
        if endpoint == EndpointPath.AIR_DEVICES_HOME:
            return {
                "admdongCd": info.admdong_cd,
                "barcode": info.barcode,
                "dvcBrandCd": info.dvc_brand_cd,
                "prodName": info.prod_name,
                "stationCd": info.station_cd,
                "zipCode": "",
                "resetDttm": info.reset_dttm,
                "deviceType": self.device_type.value,
                "mqttDevice": "true",
                "orderNo": info.ord_no,
                "membershipYn": info.membership_yn,
                "selfYn": info.self_manage_yn,
            }
        if endpoint == EndpointPath.AIR_DEVICES_FILTER_INFO:
            return {
                "devId": info.barcode,
                "orderNo": info.ord_no,
                "sellTypeCd": info.sell_type_cd,
                "prodName": info.prod_name,
                "membershipYn": info.membership_yn,
                "mqttDevice": "true",
                "selfYn": info.self_manage_yn,
            }
        return super().create_payload(endpoint)

    async def refresh(self, responses: AccessoryResponses) -> None:
        await super().refresh(responses)

        if not self.is_connected:
            logger.debug(f"Cannot refresh the accessory: {self.platform_accessory.display_name}")
            logger.debug(f"The accessory response: {responses}")
            return

        control_info = responses.get(EndpointPath.DEVICES_CONTROL) or {}
        control_status = control_info.get("controlStatus") or {}
        if not isinstance(control_status, Mapping):
            raise ParseError(f"Unexpected control status: {control_status!r}")
        control_status = self.apply_pending_commands(control_status)

        # Built completely before it replaces the current state
        self._state = AirmegaState(
            control_info=parse_control_info(control_status),
            filter_infos=parse_filter_infos(responses.get(EndpointPath.AIR_DEVICES_FILTER_INFO)),
            indoor_air_quality=parse_indoor_air_quality(responses.get(EndpointPath.AIR_DEVICES_HOME)),
        )
        self.save_context()

        await self.refresh_characteristics(self._push_characteristics)

    def _push_characteristics(self) -> None:
        state = self._state
        if self._air_purifier_service is not None:
            service = self._air_purifier_service
            service.set_characteristic(CharacteristicType.ACTIVE, self.get_active(state))
            service.set_characteristic(CharacteristicType.CURRENT_AIR_PURIFIER_STATE,
                                       self.get_current_air_purifier_state(state))
            service.set_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE,
                                       self.get_purifier_driving_strategy(state))
            service.set_characteristic(CharacteristicType.ROTATION_SPEED,
                                       self.get_rotation_speed_percentage(state))

        if self._lightbulb_service is not None:
            self._lightbulb_service.set_characteristic(
                CharacteristicType.ON, state.control_info.on and state.control_info.lightbulb
            )

        if self._air_quality_service is not None:
            self._air_quality_service.set_characteristic(CharacteristicType.AIR_QUALITY,
                                                         self.get_current_air_quality(state))
            self._air_quality_service.set_characteristic(CharacteristicType.PM10_DENSITY,
                                                         max(state.indoor_air_quality.pm10_density, 0.0))

        for filter_code, service in self._filter_services.items():
            service.set_characteristic(CharacteristicType.FILTER_CHANGE_INDICATION,
                                       self.get_current_filter_change_indication(state, filter_code))
            service.set_characteristic(CharacteristicType.FILTER_LIFE_LEVEL,
                                       self.get_current_filter_percentage(state, filter_code))

    async def configure(self) -> None:
        await super().configure()

        name = self.platform_accessory.display_name
        self._air_purifier_service = self.register_air_purifier_service()
        self._air_quality_service = self.register_air_quality_service()
        self._lightbulb_service = self.register_lightbulb_service()
        for filter_code in (AirmegaFilterCode.PRE_FILTER, AirmegaFilterCode.MAX_FILTER):
            self._filter_services[filter_code] = self.register_filter_maintenance_service(filter_code)

        try:
            await self.refresh(await self.refresh_device())
        except CowayException as exc:
            logger.warning(f"Initial refresh of {name} failed, waiting for the next poll: {exc}")

    # ------------------------------------------------------------------
    # Derived values

    @staticmethod
    def get_active(state: AirmegaState) -> Active:
        return Active.ACTIVE if state.control_info.on else Active.INACTIVE

    @staticmethod
    def get_purifier_driving_strategy(state: AirmegaState) -> TargetAirPurifierState:
        if state.control_info.mode == AirmegaMode.AUTO:
            return TargetAirPurifierState.AUTO
        return TargetAirPurifierState.MANUAL

    @staticmethod
    def get_current_air_purifier_state(state: AirmegaState) -> CurrentAirPurifierState:
        if not state.control_info.on:
            return CurrentAirPurifierState.INACTIVE
        return CurrentAirPurifierState.PURIFYING_AIR

    @staticmethod
    def get_current_air_quality(state: AirmegaState) -> AirQuality:
        if not state.control_info.on:
            return AirQuality.UNKNOWN
        return air_quality_from_pm10(state.indoor_air_quality.pm10_density)

    @staticmethod
    def get_current_filter_percentage(state: AirmegaState, filter_code: AirmegaFilterCode) -> float:
        filter_info = state.find_filter(filter_code)
        if filter_info is None:
            return DEFAULT_FILTER_PERCENTAGE
        return filter_info.filter_percentage

    @classmethod
    def get_current_filter_change_indication(cls, state: AirmegaState,
                                             filter_code: AirmegaFilterCode) -> FilterChangeIndication:
        return filter_change_indication(cls.get_current_filter_percentage(state, filter_code))

    @staticmethod
    def get_rotation_speed(state: AirmegaState) -> int:
        if not state.control_info.on:
            return 0
        return int(state.control_info.fan_speed.value)

    @classmethod
    def get_rotation_speed_percentage(cls, state: AirmegaState) -> float:
        return cls.get_rotation_speed(state) * ROTATION_SPEED_UNIT

    # ------------------------------------------------------------------
    # Air purifier service

    def register_air_purifier_service(self) -> Service:
        service = self.ensure_service_availability(
            ServiceType.AIR_PURIFIER, f"{self.platform_accessory.display_name} Purifier"
        )
        service.get_characteristic(CharacteristicType.ACTIVE) \
            .on_get(self.wrap_get(self._get_active)) \
            .on_set(self.wrap_set(self._set_active))
        service.get_characteristic(CharacteristicType.CURRENT_AIR_PURIFIER_STATE) \
            .on_get(self.wrap_get(self._get_current_air_purifier_state))
        service.get_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE) \
            .on_get(self.wrap_get(self._get_target_air_purifier_state)) \
            .on_set(self.wrap_set(self._set_target_air_purifier_state))
        service.get_characteristic(CharacteristicType.ROTATION_SPEED) \
            .set_props(format=Formats.FLOAT, min_value=0, max_value=100, min_step=ROTATION_SPEED_UNIT) \
            .on_get(self.wrap_get(self._get_rotation_speed)) \
            .on_set(self.wrap_set(self._set_rotation_speed))
        return service

    async def _get_active(self) -> CharacteristicValue:
        return self.get_active(self._state)

    async def _set_active(self, value: CharacteristicValue) -> None:
        control = self._state.control_info
        turn_on = value == Active.ACTIVE
        if turn_on == control.on:
            return

        await self.execute_set_payload(
            self.device_info, Field.POWER.value, (Power.ON if turn_on else Power.OFF).value, self._access_token
        )
        control = self._state.control_info
        control.on = turn_on
        service = self._air_purifier_service
        if service is not None:
            service.get_characteristic(CharacteristicType.ACTIVE).update_value(self.get_active(self._state))
            service.get_characteristic(CharacteristicType.CURRENT_AIR_PURIFIER_STATE) \
                .update_value(self.get_current_air_purifier_state(self._state))

        if not turn_on:
            # The light ring cannot stay on while the purifier is off
            control.lightbulb = False
            self._forget_command(Field.LIGHT.value)
            if self._lightbulb_service is not None:
                self._lightbulb_service.get_characteristic(CharacteristicType.ON).update_value(False)

    async def _get_current_air_purifier_state(self) -> CharacteristicValue:
        return self.get_current_air_purifier_state(self._state)

    async def _get_target_air_purifier_state(self) -> CharacteristicValue:
        return self.get_purifier_driving_strategy(self._state)

    async def _set_target_air_purifier_state(self, value: CharacteristicValue) -> None:
        was_auto = self._state.control_info.mode == AirmegaMode.AUTO
        is_auto = value == TargetAirPurifierState.AUTO
        if was_auto == is_auto:
            return

        if is_auto:
            await self.drive_automatically()
        else:
            await self.drive_manually()
        if self._air_purifier_service is not None:
            self._air_purifier_service.get_characteristic(CharacteristicType.TARGET_AIR_PURIFIER_STATE) \
                .update_value(self.get_purifier_driving_strategy(self._state))

    async def drive_automatically(self) -> None:
        await self.execute_set_payload(self.device_info, Field.MODE.value, AirmegaMode.AUTO.value,
                                       self._access_token)
        # The purifier picks its own speed in auto mode
        self._forget_command(Field.FAN_SPEED.value)
        self._state.control_info.mode = AirmegaMode.AUTO

    async def drive_manually(self) -> None:
        # Keep the speed the purifier was running at in auto mode
        fan_speed = self._state.control_info.fan_speed
        await self.execute_set_payload(self.device_info, Field.FAN_SPEED.value, fan_speed.value,
                                       self._access_token)
        self._forget_command(Field.MODE.value)
        self._state.control_info.mode = AirmegaMode.MANUAL

    async def _get_rotation_speed(self) -> CharacteristicValue:
        return self.get_rotation_speed_percentage(self._state)

    async def _set_rotation_speed(self, value: CharacteristicValue) -> None:
        state = self._state
        control = state.control_info
        old_rotation_speed = self.get_rotation_speed(state)
        new_rotation_speed = max(0, min(int(math.floor(float(value) / ROTATION_SPEED_UNIT + 0.5)), 3))
        if old_rotation_speed == new_rotation_speed:
            return

        service = self._air_purifier_service
        commands: List[PayloadCommand] = []
        powered_on = False
        if not control.on:
            # Wake the purifier up in the same request
            commands.append(PayloadCommand(key=Field.POWER.value, value=Power.ON.value))
            control.on = True
            powered_on = True
        elif new_rotation_speed == 0:
            if service is not None:
                service.get_characteristic(CharacteristicType.ROTATION_SPEED).update_value(0)
            return

        commands.append(PayloadCommand(key=Field.FAN_SPEED.value, value=str(new_rotation_speed)))
        fan_speed = FAN_SPEED_LEVELS.get(new_rotation_speed)
        if fan_speed is not None:
            control.fan_speed = fan_speed

        await self.execute_set_payloads(self.device_info, commands, self._access_token)
        if service is None:
            return
        if powered_on:
            service.get_characteristic(CharacteristicType.ACTIVE).update_value(self.get_active(state))
            service.get_characteristic(CharacteristicType.CURRENT_AIR_PURIFIER_STATE) \
                .update_value(self.get_current_air_purifier_state(state))
        service.get_characteristic(CharacteristicType.ROTATION_SPEED) \
            .update_value(self.get_rotation_speed_percentage(state))

    # ------------------------------------------------------------------
    # Light

    def register_lightbulb_service(self) -> Service:
        service = self.ensure_service_availability(
            ServiceType.LIGHTBULB, f"{self.platform_accessory.display_name} Light"
        )
        service.get_characteristic(CharacteristicType.ON) \
            .on_get(self.wrap_get(self._get_light)) \
            .on_set(self.wrap_set(self._set_light))
        return service

    async def _get_light(self) -> CharacteristicValue:
        control = self._state.control_info
        return control.on and control.lightbulb

    async def _set_light(self, value: CharacteristicValue) -> None:
        control = self._state.control_info
        turn_on = bool(value)
        if turn_on == control.lightbulb:
            return
        characteristic = self._lightbulb_service.get_characteristic(CharacteristicType.ON)
        if not control.on:
            # Snap the switch back, the light cannot be used while the purifier is off
            control.lightbulb = False
            self._forget_command(Field.LIGHT.value)
            characteristic.update_value(False)
            return

        await self.execute_set_payload(
            self.device_info, Field.LIGHT.value, (AirmegaLight.ON if turn_on else AirmegaLight.OFF).value,
            self._access_token
        )
        self._state.control_info.lightbulb = turn_on
        characteristic.update_value(turn_on)

    # ------------------------------------------------------------------
    # Air quality and filters

    def register_air_quality_service(self) -> Service:
        service = self.ensure_service_availability(
            ServiceType.AIR_QUALITY_SENSOR, f"{self.platform_accessory.display_name} Air Quality Sensor"
        )
        service.get_characteristic(CharacteristicType.AIR_QUALITY) \
            .on_get(self.wrap_get(self._get_air_quality))
        service.get_characteristic(CharacteristicType.PM10_DENSITY) \
            .on_get(self.wrap_get(self._get_pm10_density))
        return service

    async def _get_air_quality(self) -> CharacteristicValue:
        return self.get_current_air_quality(self._state)

    async def _get_pm10_density(self) -> CharacteristicValue:
        return max(self._state.indoor_air_quality.pm10_density, 0.0)

    def register_filter_maintenance_service(self, filter_code: AirmegaFilterCode) -> Service:
        display_name = FILTER_DISPLAY_NAMES.get(filter_code, "Unknown Filter")
        service = self.ensure_service_availability(ServiceType.FILTER_MAINTENANCE, display_name, filter_code.value)

        async def get_change_indication() -> CharacteristicValue:
            return self.get_current_filter_change_indication(self._state, filter_code)

        async def get_life_level() -> CharacteristicValue:
            return self.get_current_filter_percentage(self._state, filter_code)

        service.get_characteristic(CharacteristicType.FILTER_CHANGE_INDICATION) \
            .on_get(self.wrap_get(get_change_indication))
        service.get_characteristic(CharacteristicType.FILTER_LIFE_LEVEL) \
            .on_get(self.wrap_get(get_life_level))
        return service
