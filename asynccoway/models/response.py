"""
Response envelope returned by the IoCare API.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CowayResponse(BaseModel):
    """Parsed IoCare response.

    The API wraps every payload in an envelope; only the ``data`` member is
    relevant to callers, the rest is kept in ``raw`` for diagnostics.
    """

    data: Any = None
    root_path: str = Field(default="")
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: Any, root_path: str = "") -> "CowayResponse":
        if not isinstance(payload, dict):
            return cls(data=None, root_path=root_path)
        return cls(data=payload.get("data"), root_path=root_path, raw=payload)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return ``key`` from the data member when it is a mapping."""
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default
