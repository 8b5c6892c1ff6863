# Users Feature - Schemas

from typing import List, Optional
from datetime import date, datetime
from pydantic import Field, ValidationInfo, field_validator
from identity_service.features.users.models import (
    ContactMethod,
    IDENTIFIER_MAX_LENGTH,
    Gender,
    Identity,
    IdentityState,
    Role,
    is_email,
    is_phone,
)
from identity_service.shared.schemas import BaseResponse, CamelModel


def _required(value: str, message: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(message)
    return value


def _validate_birthday(value: date) -> date:
    today = date.today()
    age = today.year - value.year - ((today.month, today.day) < (value.month, value.day))
    if age < 13:
        raise ValueError("You must be at least 13 years old")
    if age > 120:
        raise ValueError("Please provide a valid birth date")
    return value


# ============== Requests ==============

class RegisterRequest(CamelModel):
    """Step 1: claim an email address or phone number."""

    email_or_phone: str = Field(..., max_length=IDENTIFIER_MAX_LENGTH)
    password: str = Field(..., min_length=6)
    confirm_password: str
    referral_code: Optional[str] = Field(None, max_length=50)

    @field_validator("email_or_phone")
    @classmethod
    def validate_email_or_phone(cls, v: str) -> str:
        v = _required(v, "Email or phone number is required")
        if not is_email(v) and not is_phone(v):
            raise ValueError("Please provide a valid email address or phone number")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not any(c.islower() for c in v) or not any(c.isupper() for c in v) or not any(c.isdigit() for c in v):
            raise ValueError(
                "Password must contain at least one lowercase letter, one uppercase letter, and one number"
            )
        return v

    @field_validator("confirm_password")
    @classmethod
    def validate_confirm_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password confirmation is required")
        return v

    @field_validator("referral_code")
    @classmethod
    def strip_referral_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class VerifyOtpRequest(CamelModel):
    """Step 2: prove control of the claimed identifier."""

    email_or_phone: str = Field(..., max_length=IDENTIFIER_MAX_LENGTH)
    otp_code: str = Field(..., pattern=r"^\d{6}$")

    @field_validator("email_or_phone")
    @classmethod
    def validate_email_or_phone(cls, v: str) -> str:
        return _required(v, "Email or phone number is required")


class ResendOtpRequest(CamelModel):
    email_or_phone: str = Field(..., max_length=IDENTIFIER_MAX_LENGTH)

    @field_validator("email_or_phone")
    @classmethod
    def validate_email_or_phone(cls, v: str) -> str:
        return _required(v, "Email or phone number is required")


class CompleteProfileRequest(CamelModel):
    """Step 3: personal information and terms acceptance."""

    user_id: str = Field(..., pattern=r"^[0-9a-fA-F]{24}$")
    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    middle_initial: Optional[str] = Field(None, max_length=10)
    suffix: Optional[str] = Field(None, max_length=20)
    birthday: date
    gender: Gender
    address: str = Field(..., max_length=200)
    terms_accepted: bool

    @field_validator("first_name", "last_name", "address")
    @classmethod
    def validate_required_text(cls, v: str, info: ValidationInfo) -> str:
        return _required(v, f"{info.field_name.replace('_', ' ').capitalize()} is required")

    @field_validator("birthday")
    @classmethod
    def validate_birthday(cls, v: date) -> date:
        return _validate_birthday(v)

    def profile_fields(self) -> dict:
        fields = self.model_dump(exclude={"user_id", "terms_accepted"})
        fields["birthday"] = datetime.combine(self.birthday, datetime.min.time())
        return fields


class LoginRequest(CamelModel):
    email_or_phone: str = Field(..., max_length=IDENTIFIER_MAX_LENGTH)
    password: str = Field(..., min_length=1)

    @field_validator("email_or_phone")
    @classmethod
    def validate_email_or_phone(cls, v: str) -> str:
        return _required(v, "Email or phone number is required")


class UpdateProfileRequest(CamelModel):
    """
    Partial profile update.

    Only profile fields are accepted; anything else in the body (password,
    _id, role, isVerified, identifiers) is dropped before it reaches the store.
    """

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    middle_initial: Optional[str] = Field(None, max_length=10)
    suffix: Optional[str] = Field(None, max_length=20)
    birthday: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = Field(None, min_length=1, max_length=200)

    # An active identity keeps its mandatory profile: these may change but not be cleared
    @field_validator("first_name", "last_name", "address")
    @classmethod
    def validate_required_text(cls, v: Optional[str], info: ValidationInfo) -> str:
        return _required(v or "", f"{info.field_name.replace('_', ' ').capitalize()} is required")

    @field_validator("birthday")
    @classmethod
    def validate_birthday(cls, v: Optional[date]) -> date:
        if v is None:
            raise ValueError("Birthday is required")
        return _validate_birthday(v)

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: Optional[Gender]) -> Gender:
        if v is None:
            raise ValueError("Gender is required")
        return v

    def changes(self) -> dict:
        fields = self.model_dump(exclude_unset=True)
        if fields.get("birthday") is not None:
            fields["birthday"] = datetime.combine(fields["birthday"], datetime.min.time())
        return fields


# ============== Responses ==============

class UserResponse(CamelModel):
    """Sanitized identity. Never carries the password hash or the OTP."""

    id: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    email_verified: bool
    phone_verified: bool
    is_verified: bool
    state: IdentityState
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_initial: Optional[str] = None
    suffix: Optional[str] = None
    birthday: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    terms_accepted: bool
    terms_accepted_at: Optional[datetime] = None
    referral_code: Optional[str] = None
    role: Role
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            phone_number=identity.phone_number,
            email_verified=identity.email_verified,
            phone_verified=identity.phone_verified,
            is_verified=identity.is_verified,
            state=identity.state,
            first_name=identity.first_name,
            last_name=identity.last_name,
            middle_initial=identity.middle_initial,
            suffix=identity.suffix,
            birthday=identity.birthday.date() if identity.birthday else None,
            gender=identity.gender,
            address=identity.address,
            terms_accepted=identity.terms_accepted,
            terms_accepted_at=identity.terms_accepted_at,
            referral_code=identity.referral_code,
            role=identity.role,
            created_at=identity.created_at,
            updated_at=identity.updated_at,
        )


class RegisterData(CamelModel):
    user_id: str
    otp_sent: bool = True
    contact_method: ContactMethod


class VerifyOtpData(CamelModel):
    user_id: str
    verified: bool = True


class ResendOtpData(CamelModel):
    otp_sent: bool = True


class AuthData(CamelModel):
    user: UserResponse
    token: str


class ProfileData(CamelModel):
    user: UserResponse


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    has_next_page: bool
    has_prev_page: bool


class UserListData(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class RegisterResponse(BaseResponse):
    data: RegisterData


class VerifyOtpResponse(BaseResponse):
    data: VerifyOtpData


class ResendOtpResponse(BaseResponse):
    data: ResendOtpData


class AuthResponse(BaseResponse):
    data: AuthData


class ProfileResponse(BaseResponse):
    data: ProfileData


class UserListResponse(BaseResponse):
    data: UserListData


class MessageResponse(BaseResponse):
    message: str
