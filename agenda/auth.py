import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import PasswordValueError

from agenda import config

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class SessionIdentity:
    user_id: int
    email: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except PasswordValueError:
        # bcrypt cannot hash such a password, so it never matches a stored hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a signed access token.

    :param data: Claims to encode (the user id and email).
    :param expires_delta: Token lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default.
    :return: Encoded JWT.
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def create_session_token(user_id: int, email: str) -> str:
    return create_access_token({"userId": str(user_id), "email": email})


def verify_token(token: str) -> Optional[dict]:
    """
    Checks the signature and expiry of a JWT.

    :param token: Encoded token.
    :return: Token payload if the token is valid, otherwise None.
    """
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as exc:
        logger.warning("Invalid session token: %s", exc)
        return None


def get_session_identity(request: Request) -> Optional[SessionIdentity]:
    """
    Resolves the identity carried by the session cookie.

    Never raises: a missing, malformed, expired or forged token, or one
    without the identity claims, resolves to None.
    """
    token = request.cookies.get(config.COOKIE_NAME)
    if not token:
        return None

    payload = verify_token(token)
    if payload is None:
        return None

    user_id = payload.get("userId")
    email = payload.get("email")
    try:
        return SessionIdentity(user_id=int(user_id), email=str(email)) if email else None
    except (TypeError, ValueError):
        logger.warning("Session token carries an invalid user id: %r", user_id)
        return None


def get_current_identity(request: Request) -> SessionIdentity:
    identity = get_session_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized. Missing or invalid token.",
        )
    return identity
