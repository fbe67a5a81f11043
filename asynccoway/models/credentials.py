"""
Credentials used to authenticate IoCare requests.
"""

from typing import Optional

from pydantic import BaseModel, Field

from asynccoway.config import CowayConfig


class AccessToken(BaseModel):
    """Bearer token pair issued by the Coway account service."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = Field(default=None)

    @classmethod
    def from_config(cls, config: CowayConfig) -> "AccessToken":
        return cls(access_token=config.access_token, refresh_token=config.refresh_token)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"
