# 보안 유닛 테스트 (DB 의존성 없음)
from datetime import timedelta

import jwt
import pytest

from hijab_api.core.config import settings
from hijab_api.core.exceptions import AuthenticationError
from hijab_api.core.security import (
    create_access_token,
    create_refresh_token,
    create_token,
    decode_token,
    generate_one_time_token,
    get_password_hash,
    hash_token,
    token_hash_matches,
    verify_password,
)

def test_password_hash_and_verify():
    pw = "S3cure!Pass"
    hashed = get_password_hash(pw)
    assert verify_password(pw, hashed)
    assert not verify_password("wrong", hashed)

def test_create_access_token_carries_session_id():
    token = create_access_token("user123", "session-1")
    decoded = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    assert decoded["sub"] == "user123"
    assert decoded["sid"] == "session-1"
    assert decoded["type"] == "access"

def test_decode_token_checks_type():
    refresh = create_refresh_token("user123", "session-1")
    assert decode_token(refresh, expected_type="refresh")["sub"] == "user123"
    with pytest.raises(AuthenticationError):
        decode_token(refresh, expected_type="access")

def test_decode_token_rejects_expired_and_tampered_tokens():
    expired = create_token({"sub": "user123", "type": "access"}, timedelta(seconds=-1))
    with pytest.raises(AuthenticationError) as exc:
        decode_token(expired)
    assert exc.value.message == "Token has expired"

    forged = jwt.encode({"sub": "user123", "type": "access"}, "other-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        decode_token(forged)

def test_one_time_token_is_stored_as_hash():
    raw, digest = generate_one_time_token()
    assert raw != digest
    assert hash_token(raw) == digest
    assert token_hash_matches(raw, digest)
    assert not token_hash_matches("guess", digest)
    assert not token_hash_matches("", digest)
