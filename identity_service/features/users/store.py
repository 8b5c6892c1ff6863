# Users Feature - Identity Store

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from beanie import PydanticObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from identity_service.features.users.models import (
    CONTACT_FIELDS,
    ContactMethod,
    Identity,
    IdentityFields,
    UserDocument,
)
from identity_service.core.logging import logger


STORED_FIELDS = set(IdentityFields.model_fields)


class DuplicateIdentityError(Exception):
    """An identity already holds the identifier being claimed."""

    def __init__(self, field: str):
        super().__init__(f"Identity with this {field} already exists")
        self.field = field


class UserStore(ABC):
    """Persistence contract for identities."""

    @abstractmethod
    async def create_if_absent(self, identity: Identity, method: ContactMethod) -> Identity:
        """
        Insert ``identity`` unless another identity already holds its identifier
        for ``method``. The check and the insert are one atomic unit.

        Raises:
            DuplicateIdentityError: If the identifier is taken
        """

    @abstractmethod
    async def find_by_identifier(
        self, method: ContactMethod, value: str, include_secret: bool = False
    ) -> Optional[Identity]:
        ...

    @abstractmethod
    async def get(self, user_id: str, include_secret: bool = False) -> Optional[Identity]:
        ...

    @abstractmethod
    async def consume_otp(
        self, user_id: str, otp_code: str, now: datetime, changes: dict
    ) -> Optional[Identity]:
        """
        Apply ``changes`` and clear the challenge, but only while the stored code
        still equals ``otp_code`` and has not expired at ``now``. Returns None if
        the condition no longer holds.
        """

    @abstractmethod
    async def update_fields(self, user_id: str, fields: dict) -> Optional[Identity]:
        ...

    @abstractmethod
    async def list_page(self, skip: int, limit: int) -> Tuple[List[Identity], int]:
        """Newest identities first, plus the total count."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        ...


def _object_id(user_id: str) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(user_id)
    except (InvalidId, TypeError):
        return None


def _encode(value):
    return value.value if isinstance(value, Enum) else value


class MongoUserStore(UserStore):
    """Identity store backed by the ``users`` collection."""

    def __init__(self, client: AsyncIOMotorClient):
        self.client = client

    @staticmethod
    def _to_identity(document: UserDocument, include_secret: bool = False) -> Identity:
        identity = Identity(id=str(document.id), **document.model_dump(include=STORED_FIELDS))
        if not include_secret:
            identity.password_hash = None
        return identity

    @staticmethod
    def _raw_to_identity(raw: dict) -> Identity:
        data = {key: value for key, value in raw.items() if key in STORED_FIELDS}
        data["password_hash"] = None
        return Identity(id=str(raw["_id"]), **data)

    async def create_if_absent(self, identity: Identity, method: ContactMethod) -> Identity:
        field, _ = CONTACT_FIELDS[method]
        value = getattr(identity, field)
        document = UserDocument(**identity.model_dump(include=STORED_FIELDS))

        async def insert_if_absent(session):
            existing = await UserDocument.find_one({field: value}, session=session)
            if existing is not None:
                raise DuplicateIdentityError(field)
            await document.insert(session=session)

        try:
            async with await self.client.start_session() as session:
                await session.with_transaction(insert_if_absent)
        except DuplicateKeyError:
            # Unique index caught a concurrent insert the transaction did not see
            logger.warning(f"Unique index rejected duplicate {field} on insert")
            raise DuplicateIdentityError(field)

        return self._to_identity(document)

    async def find_by_identifier(
        self, method: ContactMethod, value: str, include_secret: bool = False
    ) -> Optional[Identity]:
        field, _ = CONTACT_FIELDS[method]
        document = await UserDocument.find_one({field: value})
        if document is None:
            return None
        return self._to_identity(document, include_secret)

    async def get(self, user_id: str, include_secret: bool = False) -> Optional[Identity]:
        object_id = _object_id(user_id)
        if object_id is None:
            return None
        document = await UserDocument.get(object_id)
        if document is None:
            return None
        return self._to_identity(document, include_secret)

    async def consume_otp(
        self, user_id: str, otp_code: str, now: datetime, changes: dict
    ) -> Optional[Identity]:
        object_id = _object_id(user_id)
        if object_id is None:
            return None

        updates = {key: _encode(value) for key, value in changes.items()}
        updates["updated_at"] = now
        raw = await UserDocument.get_motor_collection().find_one_and_update(
            {
                "_id": object_id,
                "otp_code": otp_code,
                "otp_expires_at": {"$gte": now},
            },
            {
                "$set": updates,
                "$unset": {"otp_code": "", "otp_expires_at": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            return None
        return self._raw_to_identity(raw)

    async def update_fields(self, user_id: str, fields: dict) -> Optional[Identity]:
        object_id = _object_id(user_id)
        if object_id is None:
            return None

        # Only the named fields are written; concurrent updates to other fields survive
        updates = {key: _encode(value) for key, value in fields.items()}
        updates["updated_at"] = datetime.utcnow()
        raw = await UserDocument.get_motor_collection().find_one_and_update(
            {"_id": object_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            return None
        return self._raw_to_identity(raw)

    async def list_page(self, skip: int, limit: int) -> Tuple[List[Identity], int]:
        documents = await UserDocument.find_all().sort("-created_at").skip(skip).limit(limit).to_list()
        total = await UserDocument.find_all().count()
        return [self._to_identity(document) for document in documents], total

    async def delete(self, user_id: str) -> bool:
        object_id = _object_id(user_id)
        if object_id is None:
            return False
        document = await UserDocument.get(object_id)
        if document is None:
            return False
        await document.delete()
        return True
