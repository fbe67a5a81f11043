"""
State models for Airmega air purifiers and the parsers that build them from
IoCare payloads.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from asynccoway.enums import AirmegaFanSpeed, AirmegaFilterCode, AirmegaLight, AirmegaMode, Field as ControlField, Power
from asynccoway.exceptions.api import ParseError
from asynccoway.host import AirQuality, FilterChangeIndication

FILTER_CHANGE_THRESHOLD = 20
DEFAULT_FILTER_PERCENTAGE = 100.0
UNKNOWN_PM10 = -1.0

FAN_SPEED_LEVELS: Dict[int, AirmegaFanSpeed] = {
    1: AirmegaFanSpeed.LOW,
    2: AirmegaFanSpeed.MEDIUM,
    3: AirmegaFanSpeed.HIGH,
}

# Upper bound (inclusive) of each PM10 category, ascending
PM10_THRESHOLDS = (
    (10, AirQuality.EXCELLENT),
    (30, AirQuality.GOOD),
    (80, AirQuality.FAIR),
    (150, AirQuality.INFERIOR),
)


class FilterInfo(BaseModel):
    filter_name: str = Field(default="")
    filter_code: str
    filter_percentage: float = Field(default=DEFAULT_FILTER_PERCENTAGE)


class AirmegaIndoorAirQuality(BaseModel):
    pm10_density: float = Field(default=UNKNOWN_PM10)


class AirmegaControlInfo(BaseModel):
    on: bool = Field(default=False)
    lightbulb: bool = Field(default=False)
    fan_speed: AirmegaFanSpeed = Field(default=AirmegaFanSpeed.LOW)
    mode: AirmegaMode = Field(default=AirmegaMode.MANUAL)


class AirmegaState(BaseModel):
    """Control State of an Airmega purifier."""

    control_info: AirmegaControlInfo = Field(default_factory=AirmegaControlInfo)
    filter_infos: List[FilterInfo] = Field(default_factory=list)
    indoor_air_quality: AirmegaIndoorAirQuality = Field(default_factory=AirmegaIndoorAirQuality)

    def find_filter(self, filter_code: AirmegaFilterCode) -> Optional[FilterInfo]:
        for filter_info in self.filter_infos:
            if filter_info.filter_code == filter_code.value:
                return filter_info
        return None


# ----------------------------------------------------------------------
# Parsers


def parse_fan_speed(raw: Any) -> AirmegaFanSpeed:
    """Map a reported fan speed code onto LOW/MEDIUM/HIGH.

    Numeric codes outside 1..3 are clamped; anything else reads as LOW.
    """
    try:
        level = int(str(raw))
    except (TypeError, ValueError):
        return AirmegaFanSpeed.LOW
    return FAN_SPEED_LEVELS[max(1, min(level, 3))]


def parse_control_info(control_status: Mapping[str, Any]) -> AirmegaControlInfo:
    """Build the control info from a ``controlStatus`` mapping.

    Raises:
        ParseError: If the mapping has an unexpected shape
    """
    try:
        return AirmegaControlInfo(
            on=control_status.get(ControlField.POWER.value) == Power.ON.value,
            lightbulb=control_status.get(ControlField.LIGHT.value) == AirmegaLight.ON.value,
            fan_speed=parse_fan_speed(control_status.get(ControlField.FAN_SPEED.value)),
            mode=AirmegaMode.AUTO if control_status.get(ControlField.MODE.value) == "1" else AirmegaMode.MANUAL,
        )
    except (AttributeError, TypeError, ValidationError) as exc:
        raise ParseError(f"Malformed control status: {exc}") from exc


def parse_indoor_air_quality(status_info: Optional[Mapping[str, Any]]) -> AirmegaIndoorAirQuality:
    try:
        iaq = (status_info or {}).get("IAQ") or {}
        raw = iaq.get("dustpm10")
    except AttributeError as exc:
        raise ParseError(f"Malformed indoor air quality: {exc}") from exc
    try:
        pm10 = float(raw)
    except (TypeError, ValueError):
        pm10 = UNKNOWN_PM10
    return AirmegaIndoorAirQuality(pm10_density=pm10)


def parse_filter_infos(filter_info: Optional[Mapping[str, Any]]) -> List[FilterInfo]:
    """Build the filter list, skipping records without a filter code.

    Raises:
        ParseError: If the list or one of its records has an unexpected shape
    """
    try:
        filters = (filter_info or {}).get("filterList") or []
        infos = []
        for record in filters:
            if record.get("filterCode") is None:
                continue
            percentage = record.get("filterPer")
            infos.append(FilterInfo(
                filter_name=record.get("filterName") or "",
                filter_code=str(record["filterCode"]),
                filter_percentage=DEFAULT_FILTER_PERCENTAGE if percentage is None else percentage,
            ))
    except (AttributeError, TypeError, ValidationError) as exc:
        raise ParseError(f"Malformed filter info: {exc}") from exc
    return infos


# ----------------------------------------------------------------------
# Derived characteristic values


def air_quality_from_pm10(pm10: float) -> AirQuality:
    if pm10 < 0:
        return AirQuality.UNKNOWN
    for upper, quality in PM10_THRESHOLDS:
        if pm10 <= upper:
            return quality
    return AirQuality.POOR


def filter_change_indication(percentage: float) -> FilterChangeIndication:
    if percentage <= FILTER_CHANGE_THRESHOLD:
        return FilterChangeIndication.CHANGE_FILTER
    return FilterChangeIndication.FILTER_OK
