from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
import database
from database import serialize_doc, to_object_id
from errors import Forbidden, InvalidToken, TokenExpired, Unauthorized, ValidationError

# auto_error is off so a missing header goes through our own 401 envelope
security = HTTPBearer(auto_error=False)


# ----------------------- Passwords -----------------------
# bcrypt only looks at the first 72 bytes; newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # stored value is not a bcrypt hash
        return False


# ----------------------- Tokens -----------------------
def create_token(user: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign {id, email, role} for a user document (raw or serialized)."""
    user_id = user.get("id") or user.get("_id")
    exp = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.JWT_EXPIRE_MINUTES))
    to_encode = {"id": str(user_id), "email": user["email"], "role": user.get("role", "customer"), "exp": exp}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise InvalidToken()


def public_user(doc: dict) -> dict:
    user = serialize_doc(doc)
    user.pop("password_hash", None)
    return user


# ----------------------- Gates -----------------------
def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    """Resolve the bearer token to an existing user, or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    payload = decode_token(credentials.credentials)
    user_id = to_object_id(payload.get("id"))
    if user_id is None:
        raise InvalidToken("Invalid token payload")
    user = database.get_db()["user"].find_one({"_id": user_id})
    if not user:
        raise Unauthorized("User not found")
    return public_user(user)


def require_roles(*roles: str):
    """Build a dependency that lets through only users whose role is in `roles`."""

    def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise Forbidden()
        return user

    return checker


require_admin = require_roles("admin")
