from typing import Optional

from pydantic import EmailStr, Field, field_validator

from models.users import UserRole
from schemas.auth_schemas import CamelModel, UserOut, normalize_email, normalize_phone


class ProfileUpdateRequest(CamelModel):
    """Fields a user may change on their own record."""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None

    @field_validator('email', mode='before')
    @classmethod
    def lowercase_email(cls, value):
        return normalize_email(value)

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class UserUpdateRequest(ProfileUpdateRequest):
    """Administrative update. Role and active flag change only through here."""
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    must_change_password: Optional[bool] = None


class UserPage(CamelModel):
    results: list[UserOut]
    count: int
    next: Optional[int] = None
    previous: Optional[int] = None


class DirectoryEntry(CamelModel):
    """Public slice of a user, for scheduling pickers."""
    id: str
    username: str
    email: str
    role: UserRole
    first_name: str
    last_name: str
    is_active: bool


class UserDirectory(CamelModel):
    results: list[DirectoryEntry]
    count: int
