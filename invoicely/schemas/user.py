from typing import Optional
from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from invoicely.schemas.base import APIModel


class UserCreate(APIModel):
    username: str = Field(min_length=1, max_length=128)
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v


class UserLogin(APIModel):
    email: EmailStr
    password: str


class ProfileUpdate(APIModel):
    username: Optional[str] = Field(default=None, max_length=128)
    company_name: Optional[str] = Field(default=None, max_length=255)
    picture: Optional[str] = None
    logo: Optional[str] = None  # data URL
    signature: Optional[str] = None  # data URL


class PasswordChange(APIModel):
    current_password: str
    new_password: str


class IdpSession(APIModel):
    id_token: str = Field(min_length=1)


class UserResponse(APIModel):
    id: int
    username: str
    email: str
    picture: Optional[str] = None
    company_name: Optional[str] = None
    last_login: Optional[datetime] = None


class Token(APIModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
