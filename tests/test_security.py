from datetime import timedelta

import pytest
from jose import ExpiredSignatureError, JWTError, jwt

from identity_service.core.security import (
    create_access_token,
    decode_token,
    generate_otp,
    get_password_hash,
    verify_password,
)


def test_password_hash_round_trip():
    hashed = get_password_hash("Abc123")

    assert hashed != "Abc123"
    assert verify_password("Abc123", hashed) is True
    assert verify_password("abc123", hashed) is False


def test_access_token_carries_subject():
    token = create_access_token("64b7f0c2a1b2c3d4e5f60718")

    payload = decode_token(token)
    assert payload["sub"] == "64b7f0c2a1b2c3d4e5f60718"
    assert payload["exp"] > payload["iat"]


def test_expired_token_is_rejected():
    token = create_access_token("64b7f0c2a1b2c3d4e5f60718", expires_delta=timedelta(seconds=-5))

    with pytest.raises(ExpiredSignatureError):
        decode_token(token)


def test_token_signed_with_other_key_is_rejected():
    forged = jwt.encode({"sub": "64b7f0c2a1b2c3d4e5f60718"}, "not-the-secret", algorithm="HS256")

    with pytest.raises(JWTError):
        decode_token(forged)


def test_garbage_token_is_rejected():
    with pytest.raises(JWTError):
        decode_token("not.a.jwt")


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999
