import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
from passlib.context import CryptContext

import config
from errors import ForbiddenError, InvalidCredentialsError, InvalidTokenError, MissingTokenError
from schemas import Identity, UserRecord

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # malformed hash in the data file
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = identity.model_dump()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_access_token(token: str) -> Identity:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
        return Identity(id=payload["id"], email=payload["email"], role=payload["role"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise InvalidTokenError()


def authenticate(authorization: Optional[str]) -> Identity:
    """First gate: turn an Authorization header into the caller's identity."""
    if not authorization or not authorization.strip():
        raise MissingTokenError()
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise InvalidTokenError()
    return decode_access_token(parts[1])


def require_admin(identity: Identity) -> Identity:
    """Second gate: only admins get through."""
    if identity.role != "admin":
        raise ForbiddenError()
    return identity


def login(users: Iterable[UserRecord], email: str, password: str) -> tuple:
    """Check credentials and issue a token. Returns (token, user)."""
    user = next((u for u in users if u.email == email), None)
    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login for %s", email)
        raise InvalidCredentialsError()
    token = create_access_token(Identity(id=user.id, email=user.email, role=user.role))
    logger.info("User %s logged in", user.email)
    return token, user
