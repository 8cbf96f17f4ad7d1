"""
Auth Schemas
============
Request/response models for sign-up, sign-in and password reset.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class AuthUser(BaseModel):
    """The signed-in user, as far as this device needs to know."""

    id: str
    email: Optional[str] = None
