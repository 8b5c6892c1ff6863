"""Identity Service - OTP registration and JWT authentication API."""

import uvicorn

from identity_service.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "identity_service.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )
