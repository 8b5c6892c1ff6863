import asyncio
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

# Predictable settings for tests, set before the app is imported.
BASE_DIR = Path(__file__).resolve().parents[1]

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")

from identity_service.core.security import create_access_token, get_password_hash  # noqa: E402
from identity_service.features.users.dependencies import get_user_service  # noqa: E402
from identity_service.features.users.models import (  # noqa: E402
    CONTACT_FIELDS,
    ContactMethod,
    Identity,
    IdentityState,
    Role,
)
from identity_service.features.users.service import UserService  # noqa: E402
from identity_service.features.users.store import DuplicateIdentityError, UserStore  # noqa: E402
from identity_service.main import create_app  # noqa: E402


class InMemoryUserStore(UserStore):
    """UserStore fake. The lock plays the part of the registration transaction."""

    def __init__(self):
        self.documents: Dict[str, Identity] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(identity: Identity, include_secret: bool = False) -> Identity:
        copy = identity.model_copy(deep=True)
        if not include_secret:
            copy.password_hash = None
        return copy

    def add(self, identity: Identity) -> Identity:
        """Seed a document directly, bypassing the registration flow."""
        stored = identity.model_copy(deep=True)
        stored.id = stored.id or str(ObjectId())
        self.documents[stored.id] = stored
        return self._copy(stored)

    async def create_if_absent(self, identity: Identity, method: ContactMethod) -> Identity:
        field, _ = CONTACT_FIELDS[method]
        value = getattr(identity, field)
        async with self._lock:
            if any(getattr(doc, field) == value for doc in self.documents.values()):
                raise DuplicateIdentityError(field)
            # Yield between check and insert, as a round trip to the store would
            await asyncio.sleep(0)
            return self.add(identity)

    async def find_by_identifier(
        self, method: ContactMethod, value: str, include_secret: bool = False
    ) -> Optional[Identity]:
        field, _ = CONTACT_FIELDS[method]
        for doc in self.documents.values():
            if getattr(doc, field) == value:
                return self._copy(doc, include_secret)
        return None

    async def get(self, user_id: str, include_secret: bool = False) -> Optional[Identity]:
        doc = self.documents.get(user_id)
        return self._copy(doc, include_secret) if doc else None

    async def consume_otp(
        self, user_id: str, otp_code: str, now: datetime, changes: dict
    ) -> Optional[Identity]:
        doc = self.documents.get(user_id)
        if doc is None or doc.otp_code != otp_code or doc.otp_expires_at is None or doc.otp_expires_at < now:
            return None
        for key, value in changes.items():
            setattr(doc, key, value)
        doc.otp_code = None
        doc.otp_expires_at = None
        doc.updated_at = now
        return self._copy(doc)

    async def update_fields(self, user_id: str, fields: dict) -> Optional[Identity]:
        doc = self.documents.get(user_id)
        if doc is None:
            return None
        for key, value in fields.items():
            setattr(doc, key, value)
        doc.update_timestamp()
        return self._copy(doc)

    async def list_page(self, skip: int, limit: int) -> Tuple[List[Identity], int]:
        ordered = sorted(self.documents.values(), key=lambda doc: doc.created_at, reverse=True)
        return [self._copy(doc) for doc in ordered[skip:skip + limit]], len(ordered)

    async def delete(self, user_id: str) -> bool:
        return self.documents.pop(user_id, None) is not None


class RecordingOtpSender:
    """Captures dispatched passcodes instead of delivering them."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    async def send(self, contact_method: str, destination: str, otp_code: str) -> None:
        self.sent.append((contact_method, destination, otp_code))

    def last_code(self, destination: str) -> str:
        for _, sent_to, code in reversed(self.sent):
            if sent_to == destination:
                return code
        raise AssertionError(f"No OTP sent to {destination}")


def make_active_user(
    store: InMemoryUserStore,
    email: str = "active@example.com",
    password: str = "Abc123",
    role: Role = Role.USER,
) -> Identity:
    """Seed an identity that has finished registration."""
    return store.add(
        Identity(
            email=email,
            password_hash=get_password_hash(password),
            email_verified=True,
            state=IdentityState.ACTIVE,
            first_name="Ada",
            last_name="Lovelace",
            address="12 St James's Square",
            terms_accepted=True,
            terms_accepted_at=datetime.utcnow(),
            role=role,
        )
    )


def auth_header(identity: Identity) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity.id)}"}


@pytest.fixture()
def store():
    return InMemoryUserStore()


@pytest.fixture()
def otp_sender():
    return RecordingOtpSender()


@pytest.fixture()
def service(store, otp_sender):
    return UserService(store, otp_sender=otp_sender)


@pytest.fixture()
def app(store, otp_sender):
    """Application wired to the in-memory store. Lifespan (MongoDB) is not run."""
    application = create_app()
    application.dependency_overrides[get_user_service] = lambda: UserService(store, otp_sender=otp_sender)
    return application


@pytest.fixture()
def client(app):
    return TestClient(app)
