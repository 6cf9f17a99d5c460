from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class AccountBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class AccountCreate(AccountBase):
    api_token: str = Field(..., min_length=1)  # Encrypted before storage


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    api_token: Optional[str] = Field(None, min_length=1)


class AccountInDB(AccountBase):
    id: int
    api_token: str  # Always masked in responses
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountValidationResult(BaseModel):
    valid: bool
    message: str
    display_name: Optional[str] = None
