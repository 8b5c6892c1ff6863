"""MongoDB database connection manager."""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from typing import Optional

from identity_service.config import settings
from identity_service.core.logging import logger


class Database:
    """MongoDB database connection manager."""
    
    client: Optional[AsyncIOMotorClient] = None
    
    @classmethod
    async def connect_db(cls) -> AsyncIOMotorClient:
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)
        
        from identity_service.features.users.models import UserDocument
        
        # Creates the unique identifier indexes on first start
        await init_beanie(
            database=cls.client[settings.DATABASE_NAME],
            document_models=[UserDocument],
        )
        
        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")
        return cls.client
    
    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")
