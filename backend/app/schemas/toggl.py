"""Toggl Track metadata schemas."""

from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Workspace(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str


class Client(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    wid: Optional[int] = Field(None, validation_alias=AliasChoices('wid', 'workspace_id'))


class Project(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    wid: Optional[int] = Field(None, validation_alias=AliasChoices('wid', 'workspace_id'))
    cid: Optional[int] = Field(None, validation_alias=AliasChoices('cid', 'client_id'))
    color: Optional[str] = None


class Tag(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    wid: Optional[int] = Field(None, validation_alias=AliasChoices('wid', 'workspace_id'))
