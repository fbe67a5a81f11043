"""
Models for Coway device information.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Device(BaseModel):
    """Identity of one registered device as reported by the device listing.

    Field names follow Python conventions; the camelCase names used by the
    IoCare API are accepted as aliases and used when dumping ``by_alias``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    barcode: str = Field(alias="barcode")
    dvc_brand_cd: str = Field(default="", alias="dvcBrandCd")
    dvc_type_cd: str = Field(default="", alias="dvcTypeCd")
    dvc_model: str = Field(default="", alias="dvcModel")
    dvc_nick: str = Field(default="", alias="dvcNick")
    prod_name: str = Field(default="", alias="prodName")

    # Used by family specific payloads
    admdong_cd: Optional[str] = Field(default=None, alias="admdongCd")
    station_cd: Optional[str] = Field(default=None, alias="stationCd")
    reset_dttm: Optional[str] = Field(default=None, alias="resetDttm")
    ord_no: Optional[str] = Field(default=None, alias="ordNo")
    sell_type_cd: Optional[str] = Field(default=None, alias="sellTypeCd")
    membership_yn: Optional[str] = Field(default=None, alias="membershipYn")
    self_manage_yn: Optional[str] = Field(default=None, alias="selfManageYn")

    net_status: Optional[bool] = Field(default=None, alias="netStatus")

    @property
    def display_name(self) -> str:
        """Get the nickname or the product name if no nickname is set."""
        if self.dvc_nick:
            return self.dvc_nick
        return self.prod_name
