# Users Feature - Models

import re
from enum import Enum
from typing import Optional, Tuple
from datetime import datetime, timedelta
from beanie import Document
from pymongo import ASCENDING, IndexModel
from identity_service.shared.models import TimestampMixin


class IdentityState(str, Enum):
    """Registration lifecycle. Transitions only move forward: pending -> verified -> active."""

    PENDING = "pending"
    VERIFIED = "verified"
    ACTIVE = "active"


class ContactMethod(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    DRIVER = "driver"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


# Store field holding each contact channel, and the flag confirming it
CONTACT_FIELDS = {
    ContactMethod.EMAIL: ("email", "email_verified"),
    ContactMethod.PHONE: ("phone_number", "phone_verified"),
}

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "middle_initial",
    "suffix",
    "birthday",
    "gender",
    "address",
)


class InvalidStateTransition(Exception):
    """Raised when an operation is attempted from a state that does not allow it."""


class IdentityFields(TimestampMixin):
    """Fields shared by the domain model and the stored document."""

    # Alternate identifiers, at least one present
    email: Optional[str] = None
    phone_number: Optional[str] = None

    # Hashed secret; None when read without the secret
    password_hash: Optional[str] = None
    referral_code: Optional[str] = None

    # Verification
    state: IdentityState = IdentityState.PENDING
    email_verified: bool = False
    phone_verified: bool = False
    otp_code: Optional[str] = None
    otp_expires_at: Optional[datetime] = None

    # Profile, set on completion
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    middle_initial: Optional[str] = None
    suffix: Optional[str] = None
    birthday: Optional[datetime] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None

    terms_accepted: bool = False
    terms_accepted_at: Optional[datetime] = None

    role: Role = Role.USER


class Identity(IdentityFields):
    """A user identity and its registration state machine."""

    id: Optional[str] = None

    @property
    def is_verified(self) -> bool:
        return self.state == IdentityState.ACTIVE

    @property
    def has_verified_contact(self) -> bool:
        return self.email_verified or self.phone_verified

    def issue_otp(self, code: str, ttl: timedelta, now: Optional[datetime] = None) -> None:
        """Replace any outstanding challenge with a fresh one."""
        now = now or datetime.utcnow()
        self.otp_code = code
        self.otp_expires_at = now + ttl

    def contact_verified_changes(self, method: ContactMethod) -> dict:
        """Field updates that confirm ``method`` as a contact channel."""
        _, flag = CONTACT_FIELDS[method]
        next_state = self.state
        if self.state == IdentityState.PENDING:
            next_state = IdentityState.VERIFIED
        return {flag: True, "state": next_state}

    def activate(self, profile: dict, now: Optional[datetime] = None) -> None:
        """Complete the profile and make the identity login-eligible."""
        if self.state == IdentityState.PENDING or not self.has_verified_contact:
            raise InvalidStateTransition("Please verify your email or phone number first")

        now = now or datetime.utcnow()
        for field in PROFILE_FIELDS:
            setattr(self, field, profile.get(field))

        self.terms_accepted = True
        if self.terms_accepted_at is None:
            self.terms_accepted_at = now
        self.state = IdentityState.ACTIVE
        self.update_timestamp()


class UserDocument(Document, IdentityFields):
    """Stored identity document."""

    class Settings:
        name = "users"
        # Only documents holding the identifier take part in the unique index
        indexes = [
            IndexModel(
                [("email", ASCENDING)],
                name="email_unique",
                unique=True,
                partialFilterExpression={"email": {"$type": "string"}},
            ),
            IndexModel(
                [("phone_number", ASCENDING)],
                name="phone_number_unique",
                unique=True,
                partialFilterExpression={"phone_number": {"$type": "string"}},
            ),
            IndexModel([("created_at", ASCENDING)], name="created_at"),
        ]


# A separator leads every repeated segment, so each run of word characters has one parse
EMAIL_PATTERN = re.compile(r"^\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{2,3}$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")

IDENTIFIER_MAX_LENGTH = 254


def is_email(value: str) -> bool:
    return EMAIL_PATTERN.match(value) is not None


def is_phone(value: str) -> bool:
    return PHONE_PATTERN.match(value) is not None


def classify_identifier(value: str) -> Tuple[ContactMethod, str]:
    """Return the channel an identifier belongs to and its stored form."""
    value = value.strip()
    if is_email(value):
        return ContactMethod.EMAIL, value.lower()
    return ContactMethod.PHONE, value
