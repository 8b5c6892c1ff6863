"""One-time passcode dispatch."""

from identity_service.config import settings
from identity_service.core.logging import logger


class OtpSender:
    """
    Hands freshly issued passcodes to the delivery channel.

    No email or SMS transport is wired in; the code is only written to the
    log in development so the flow can be exercised end to end.
    """

    async def send(self, contact_method: str, destination: str, otp_code: str) -> None:
        logger.info(f"📧 Dispatching OTP via {contact_method} to {destination}")
        if settings.is_development:
            logger.info(f"   OTP for {destination}: {otp_code}")
