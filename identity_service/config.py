"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Database
    MONGODB_URL: str
    DATABASE_NAME: str = "identity_service"
    
    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    
    # Credentials and one-time passcodes
    BCRYPT_ROUNDS: int = 12
    OTP_EXPIRE_MINUTES: int = 10
    
    # Rate limiting (fixed windows)
    OTP_RATE_LIMIT_MAX: int = 3
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    GENERAL_RATE_LIMIT_MAX: int = 100
    GENERAL_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 5 * 60
    
    # Application
    APP_NAME: str = "Identity Service"
    API_PREFIX: str = "/api"
    PORT: int = 5000
    
    # CORS
    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000"]'
    
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    
    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )
    
    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.BACKEND_CORS_ORIGINS)
        except json.JSONDecodeError:
            return ["http://localhost:3000"]
    
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
