# Users Feature - Service

import math
import secrets
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from identity_service.config import settings
from identity_service.core.logging import logger
from identity_service.core.otp import OtpSender
from identity_service.core.security import (
    create_access_token,
    dummy_verify_password,
    generate_otp,
    get_password_hash,
    verify_password,
)
from identity_service.features.users.models import (
    CONTACT_FIELDS,
    PROFILE_FIELDS,
    ContactMethod,
    Identity,
    InvalidStateTransition,
    classify_identifier,
)
from identity_service.features.users.schemas import (
    CompleteProfileRequest,
    LoginRequest,
    Pagination,
    RegisterRequest,
    ResendOtpRequest,
    UpdateProfileRequest,
    VerifyOtpRequest,
)
from identity_service.features.users.store import DuplicateIdentityError, UserStore
from identity_service.shared.exceptions import (
    ConflictException,
    CredentialsException,
    NotFoundException,
    ValidationException,
)


INVALID_CREDENTIALS = "Invalid credentials"


class UserService:
    """
    Registration, verification and login for identities.

    Lifecycle: ``register`` creates a pending identity and issues a passcode,
    ``verify_otp`` confirms the contact channel, ``complete_profile`` makes the
    identity active, and only active identities may ``login``.
    """

    def __init__(self, store: UserStore, otp_sender: Optional[OtpSender] = None):
        self.store = store
        self.otp_sender = otp_sender or OtpSender()

    @staticmethod
    def _otp_ttl() -> timedelta:
        return timedelta(minutes=settings.OTP_EXPIRE_MINUTES)

    async def register(self, request: RegisterRequest) -> Tuple[Identity, ContactMethod]:
        """
        Create a pending identity for an email address or phone number.

        Returns:
            tuple: (identity, contact_method)
        """
        if request.password != request.confirm_password:
            raise ValidationException("Passwords do not match")

        method, identifier = classify_identifier(request.email_or_phone)
        field, _ = CONTACT_FIELDS[method]

        identity = Identity(
            password_hash=get_password_hash(request.password),
            referral_code=request.referral_code,
            **{field: identifier},
        )
        otp_code = generate_otp()
        identity.issue_otp(otp_code, self._otp_ttl())

        try:
            identity = await self.store.create_if_absent(identity, method)
        except DuplicateIdentityError:
            label = "email" if method == ContactMethod.EMAIL else "phone number"
            logger.info(f"Registration rejected, {label} already taken: {identifier}")
            raise ConflictException(f"User with this {label} already exists")

        logger.info(f"✅ Registration initiated for {identifier} (user {identity.id})")
        await self.otp_sender.send(method.value, identifier, otp_code)
        return identity, method

    async def verify_otp(self, request: VerifyOtpRequest) -> Identity:
        """Confirm the contact channel with the most recently issued passcode."""
        method, identifier = classify_identifier(request.email_or_phone)

        identity = await self.store.find_by_identifier(method, identifier)
        if identity is None:
            raise NotFoundException("User not found")

        now = datetime.utcnow()
        if not identity.otp_code or not secrets.compare_digest(identity.otp_code, request.otp_code):
            logger.warning(f"❌ Invalid OTP supplied for {identifier}")
            raise ValidationException("Invalid OTP code")

        if identity.otp_expires_at is None or now > identity.otp_expires_at:
            logger.warning(f"❌ Expired OTP supplied for {identifier}")
            raise ValidationException("OTP has expired")

        # Read-and-clear in one step so a code can be consumed only once
        verified = await self.store.consume_otp(
            identity.id,
            request.otp_code,
            now,
            identity.contact_verified_changes(method),
        )
        if verified is None:
            raise ValidationException("Invalid OTP code")

        logger.info(f"✅ OTP verified for {identifier}")
        return verified

    async def resend_otp(self, request: ResendOtpRequest) -> Identity:
        """Issue a fresh passcode, invalidating any earlier one."""
        method, identifier = classify_identifier(request.email_or_phone)

        identity = await self.store.find_by_identifier(method, identifier)
        if identity is None:
            raise NotFoundException("User not found")

        otp_code = generate_otp()
        identity.issue_otp(otp_code, self._otp_ttl())
        updated = await self.store.update_fields(
            identity.id,
            {"otp_code": identity.otp_code, "otp_expires_at": identity.otp_expires_at},
        )
        if updated is None:
            raise NotFoundException("User not found")

        await self.otp_sender.send(method.value, identifier, otp_code)
        return updated

    async def complete_profile(self, request: CompleteProfileRequest) -> Tuple[Identity, str]:
        """
        Store personal information and activate the identity.

        Returns:
            tuple: (identity, access_token)
        """
        if not request.terms_accepted:
            raise ValidationException("Terms and conditions must be accepted")

        identity = await self.store.get(request.user_id)
        if identity is None:
            raise NotFoundException("User not found")

        try:
            identity.activate(request.profile_fields())
        except InvalidStateTransition as e:
            raise ValidationException(str(e))

        updated = await self.store.update_fields(
            identity.id,
            identity.model_dump(include={*PROFILE_FIELDS, "terms_accepted", "terms_accepted_at", "state"}),
        )
        if updated is None:
            raise NotFoundException("User not found")

        logger.info(f"✅ Profile completed for user {updated.id}")
        return updated, create_access_token(updated.id)

    async def login(self, request: LoginRequest) -> Tuple[Identity, str]:
        """
        Authenticate with identifier and password.

        Unknown identifiers and wrong passwords fail identically.

        Returns:
            tuple: (identity, access_token)
        """
        method, identifier = classify_identifier(request.email_or_phone)

        identity = await self.store.find_by_identifier(method, identifier, include_secret=True)
        if identity is None or not identity.password_hash:
            dummy_verify_password()
            raise CredentialsException(INVALID_CREDENTIALS)

        if not verify_password(request.password, identity.password_hash):
            logger.info(f"Failed login for {identifier}")
            raise CredentialsException(INVALID_CREDENTIALS)

        if not identity.is_verified:
            raise CredentialsException("Please complete your registration first")

        identity.password_hash = None
        logger.info(f"✅ Login for user {identity.id}")
        return identity, create_access_token(identity.id)

    async def get_user(self, user_id: str) -> Optional[Identity]:
        """Get an identity by id without its password hash."""
        return await self.store.get(user_id)

    async def update_profile(self, identity: Identity, request: UpdateProfileRequest) -> Identity:
        """Update profile fields of an active identity."""
        if not identity.is_verified:
            raise ValidationException("Please complete your registration first")

        changes = request.changes()
        if not changes:
            return identity

        updated = await self.store.update_fields(identity.id, changes)
        if updated is None:
            raise NotFoundException("User not found")
        return updated

    async def list_users(self, page: int, limit: int) -> Tuple[List[Identity], Pagination]:
        """Page through identities, newest first."""
        users, total = await self.store.list_page(skip=(page - 1) * limit, limit=limit)
        total_pages = math.ceil(total / limit)

        return users, Pagination(
            current_page=page,
            total_pages=total_pages,
            total_users=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

    async def delete_user(self, user_id: str) -> None:
        if not await self.store.delete(user_id):
            raise NotFoundException("User not found")
        logger.info(f"Deleted user {user_id}")
