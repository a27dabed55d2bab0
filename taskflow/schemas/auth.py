"""Schemas for login sessions"""
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from taskflow.schemas.user import UserResponse


class LoginRequest(BaseModel):
    # Login forms post the identifier as "username" or "email"; all spellings work.
    identifier: str = Field(..., validation_alias=AliasChoices("identifier", "username", "email"))
    password: str


class LoginResponse(BaseModel):
    user: UserResponse
    session_token: str
    expires_at: datetime


class AuthCheckResponse(BaseModel):
    authenticated: bool
    user_id: Optional[int] = None
    username: Optional[str] = None
    role: Optional[str] = None
