"""
Pydantic Schemas - Directory Payload Models

Defines the Pydantic schemas for the WeCom directory API payloads consumed by
the export:
- Department members and tag members
- External contact records (follow info + contact profile)

Unknown fields returned by the API are kept on the model. A null
`follow_info` or `external_contact` reads as an empty object.

Usage:
    from utils.schemas import ExternalContactRecord

    record = ExternalContactRecord(**raw_data)
    owner = record.follow_info.userid
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class DirectoryUser(BaseModel):
    """Member of a department, as listed by user/simplelist."""

    userid: str = Field(..., description="Member user ID")
    name: Optional[str] = Field(default=None, description="Display name")

    class Config:
        extra = "allow"


class TagUser(BaseModel):
    """Member of a tag, as listed by tag/get. Only `userid` is used."""

    userid: str = Field(..., description="Member user ID")

    class Config:
        extra = "allow"


class FollowInfo(BaseModel):
    """Relationship between the owning member and the external contact."""

    userid: Optional[str] = Field(default=None, description="Owning member user ID")
    remark_corp_name: Optional[str] = Field(default=None, description="Corp name remark set by the member")
    createtime: Optional[int] = Field(default=None, description="Unix seconds when the contact was added")

    class Config:
        extra = "allow"


class ExternalContactProfile(BaseModel):
    """Profile of the external contact itself."""

    name: Optional[str] = Field(default=None, description="Contact name")
    corp_name: Optional[str] = Field(default=None, description="Contact's WeCom corp name")
    unionid: Optional[str] = Field(default=None, description="WeChat UnionID")

    class Config:
        extra = "allow"


class ExternalContactRecord(BaseModel):
    """One (owning member, external contact) edge from batch/get_by_user."""

    follow_info: FollowInfo = Field(default_factory=FollowInfo)
    external_contact: ExternalContactProfile = Field(default_factory=ExternalContactProfile)

    class Config:
        extra = "allow"

    @field_validator("follow_info", "external_contact", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        """The API may send null for either part; treat it as an empty object."""
        return {} if value is None else value
