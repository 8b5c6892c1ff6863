# Users Feature

from identity_service.features.users.models import Identity, UserDocument
from identity_service.features.users.router import router
from identity_service.features.users.service import UserService

__all__ = ["Identity", "UserDocument", "router", "UserService"]
