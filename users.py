"""Credential store: signup, login, profile and admin user management."""
import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

import database
from database import create_document, to_object_id, utcnow
from errors import DuplicateEmail, InvalidCredentials, NotFound, ValidationError
from schemas import Profile, User, first_error_message
from security import create_token, hash_password, public_user, verify_password

logger = logging.getLogger(__name__)


def _users():
    return database.get_db()["user"]


def _find_user(user_id) -> dict:
    oid = to_object_id(user_id)
    user = _users().find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFound("User not found")
    return user


def _auth_result(user_doc: dict) -> dict:
    return {"user": public_user(user_doc), "token": create_token(user_doc)}


def register(name: str, email: str, password: str, role: str = "customer", profile: Optional[dict] = None) -> dict:
    email = email.strip().lower()
    if _users().find_one({"email": email}):
        raise DuplicateEmail()
    try:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
            profile=Profile(**(profile or {})),
        )
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e))
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise DuplicateEmail()
    logger.info("Registered %s user %s", role, user_id)
    return _auth_result(_users().find_one({"_id": to_object_id(user_id)}))


def create_admin(name: str, email: str, password: str) -> dict:
    return register(name, email, password, role="admin")


def authenticate(email: str, password: str) -> dict:
    user = _users().find_one({"email": email.strip().lower()})
    # same error for unknown email and bad password
    if not user or not verify_password(password, user.get("password_hash")):
        logger.warning("Failed login attempt")
        raise InvalidCredentials()
    logger.info("User %s logged in", user["_id"])
    return _auth_result(user)


def get_profile(user_id) -> dict:
    return public_user(_find_user(user_id))


def update_profile(user_id, patch: dict) -> dict:
    """Partial update of name and nested profile fields; other keys are ignored."""
    update = {}
    if patch.get("name") is not None:
        update["name"] = patch["name"]
    for key, value in (patch.get("profile") or {}).items():
        if key in Profile.model_fields:
            update[f"profile.{key}"] = value
    user = _find_user(user_id)
    if update:
        update["updated_at"] = utcnow()
        _users().update_one({"_id": user["_id"]}, {"$set": update})
        user = _users().find_one({"_id": user["_id"]})
    return public_user(user)


def change_password(user_id, current_password: str, new_password: str) -> None:
    user = _find_user(user_id)
    if not verify_password(current_password, user.get("password_hash")):
        raise InvalidCredentials("Current password is incorrect")
    _users().update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(new_password), "updated_at": utcnow()}},
    )
    logger.info("User %s changed password", user["_id"])


def list_all() -> List[dict]:
    return [public_user(u) for u in database.get_documents("user", sort=[("created_at", -1), ("_id", -1)])]


def delete(user_id) -> None:
    oid = to_object_id(user_id)
    res = _users().delete_one({"_id": oid}) if oid else None
    if res is None or res.deleted_count == 0:
        raise NotFound("User not found")
    logger.info("Deleted user %s", user_id)
