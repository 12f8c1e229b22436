from datetime import timedelta

from jose import jwt
from starlette.requests import Request

from agenda import auth, config


def make_request(token=None):
    headers = []
    if token is not None:
        headers.append((b"cookie", f"{config.COOKIE_NAME}={token}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def test_password_hashing():
    hashed = auth.hash_password("secret1")

    assert hashed != "secret1"
    assert auth.verify_password("secret1", hashed)
    assert not auth.verify_password("secret2", hashed)
    assert not auth.verify_password("", hashed)


def test_password_with_nul_character_never_matches():
    hashed = auth.hash_password("secret1")
    assert auth.verify_password("secret1\x00", hashed) is False


def test_session_token_resolves_identity():
    token = auth.create_session_token(3, "a@b.com")

    identity = auth.get_session_identity(make_request(token))

    assert identity == auth.SessionIdentity(user_id=3, email="a@b.com")


def test_session_token_claims():
    token = auth.create_session_token(3, "a@b.com")
    claims = jwt.get_unverified_claims(token)

    assert claims["userId"] == "3"
    assert claims["email"] == "a@b.com"
    assert "exp" in claims


def test_missing_cookie_resolves_to_none():
    assert auth.get_session_identity(make_request()) is None


def test_expired_token_resolves_to_none():
    token = auth.create_access_token({"userId": "3", "email": "a@b.com"}, expires_delta=timedelta(seconds=-1))
    assert auth.get_session_identity(make_request(token)) is None


def test_token_signed_with_other_key_resolves_to_none():
    token = jwt.encode({"userId": "3", "email": "a@b.com"}, "another-key", algorithm=config.ALGORITHM)
    assert auth.get_session_identity(make_request(token)) is None


def test_token_without_identity_claims_resolves_to_none():
    token = auth.create_access_token({"sub": "3"})
    assert auth.get_session_identity(make_request(token)) is None

    token = auth.create_access_token({"userId": "abc", "email": "a@b.com"})
    assert auth.get_session_identity(make_request(token)) is None
