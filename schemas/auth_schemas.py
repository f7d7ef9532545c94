import re
from datetime import datetime
from typing import Optional

import phonenumbers
from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from core.config import settings
from models.users import UserRole


class CamelModel(BaseModel):
    """
    Canonical shape for request and response bodies.

    Accepts snake_case or camelCase keys on input. Dumps snake_case by
    default and camelCase with by_alias=True (see utils.response).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def validate_password_strength(value: str) -> str:
    """
    Password must be at least PASSWORD_MIN_LENGTH characters and contain:
    - At least one letter
    - At least one digit
    """
    if len(value) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f'Password must be at least {settings.PASSWORD_MIN_LENGTH} characters')

    if not re.search(r'[A-Za-z]', value):
        raise ValueError('Password must contain at least one letter')

    if not re.search(r'\d', value):
        raise ValueError('Password must contain at least one digit')

    return value


def normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """
    Validates phone number format using Google's phonenumbers library.
    Accepts international format (+201234567890) and returns E.164.
    """
    if value is None or not value.strip():
        return None
    try:
        parsed = phonenumbers.parse(value, None)
    except phonenumbers.NumberParseException:
        raise ValueError('Phone number must include country code (e.g.: +15551234567)')

    if not phonenumbers.is_valid_number(parsed):
        raise ValueError('Invalid phone number')

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


# Requests

class LoginRequest(CamelModel):
    # username or email
    username: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("refresh_token", "refreshToken", "refresh")
    )

    @field_validator('refresh_token')
    @classmethod
    def blank_to_none(cls, value):
        if value is not None and not value.strip():
            return None
        return value


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=150, pattern=r'^[A-Za-z0-9_.@+-]+$')
    email: EmailStr
    password: str
    role: UserRole = UserRole.CLIENT
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: Optional[str] = None

    @field_validator('email', mode='before')
    @classmethod
    def lowercase_email(cls, value):
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_strength(value)

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_strength(value)


class PasswordResetRequest(CamelModel):
    email: EmailStr

    @field_validator('email', mode='before')
    @classmethod
    def lowercase_email(cls, value):
        return normalize_email(value)


class PasswordResetCompleteRequest(CamelModel):
    token: str = Field(min_length=1)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_strength(value)


# Responses

class UserOut(CamelModel):
    id: str
    username: str
    email: str
    role: UserRole
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    is_active: bool
    must_change_password: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserEnvelope(CamelModel):
    user: UserOut


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


class MessageResponse(CamelModel):
    message: str
