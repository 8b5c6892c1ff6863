from datetime import datetime, timedelta
from typing import Optional
from jose import jwt
from passlib.context import CryptContext
from identity_service.config import settings
import secrets


# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(subject_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token whose subject is the identity id."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    
    to_encode = {
        "sub": subject_id,
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and verify a JWT token.
    
    Raises:
        jose.ExpiredSignatureError: If the token is past its expiry
        jose.JWTError: If the token is malformed or the signature does not match
    """
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def generate_otp() -> str:
    """Generate a 6-digit OTP code in the range 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def dummy_verify_password() -> None:
    """Spend the same time as a real verify when there is no hash to check against."""
    pwd_context.dummy_verify()
