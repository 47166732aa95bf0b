from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    password: str = Field(default="", max_length=128)


class RefreshTokenRequest(BaseModel):
    refreshToken: str | None = Field(default=None, max_length=4000)


class ChangePasswordRequest(BaseModel):
    oldPassword: str = Field(default="", max_length=128)
    newPassword: str = Field(default="", max_length=128)


class UpdateAccountRequest(BaseModel):
    fullName: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=255)
