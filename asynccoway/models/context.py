"""
Versioned accessory context persisted by the accessory host.
"""

from typing import Any, ClassVar, Dict, Mapping

from pydantic import BaseModel, Field, field_validator

from asynccoway.models.device import Device


class AccessoryContext(BaseModel):
    """Snapshot of everything the host keeps for one accessory across restarts.

    The controller keeps its live state in memory and only writes a copy here
    after each reconciliation; ``state`` is whatever JSON the owning device
    family produces.
    """

    CURRENT_VERSION: ClassVar[int] = 1

    version: int = Field(default=1)
    device_type: str = Field(..., description="IoCare device type code")
    device_info: Device
    init: bool = Field(default=True)
    configured: bool = Field(default=False)
    state: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != cls.CURRENT_VERSION:
            raise ValueError(f"Unsupported accessory context version {v}")
        return v

    @classmethod
    def from_context(cls, context: Mapping[str, Any]) -> "AccessoryContext":
        """Decode a host-persisted context blob.

        Raises:
            pydantic.ValidationError: if the blob is incomplete or of another version
        """
        return cls.model_validate(dict(context))

    def to_context(self) -> Dict[str, Any]:
        """Encode into the JSON-compatible blob handed to the host."""
        return self.model_dump(mode="json", by_alias=True)
