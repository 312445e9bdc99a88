# Overview: Service-layer operations for staff users; bcrypt password hashing and email uniqueness.

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Outlet, User
from .concurrency import run_with_retry
from .lookup import apply_patch, find_collision, flush_or_conflict, get_live

# Permissive: something@something.tld, no whitespace
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_FIELDS = {"name", "email", "phone", "outlet_id", "is_active"}


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Cost factor comes from BCRYPT_ROUNDS (default 12); tests lower it.
    """
    if not password:
        raise ValidationError("password cannot be blank")
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(value) -> str:
    email = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email is not a valid address")
    return email


def _check_outlet(outlet_id) -> None:
    if outlet_id is not None:
        get_live(Outlet, outlet_id, "Outlet")


def create_user(patch: dict, *, password: str, created_by: int | None = None) -> User:
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name cannot be blank")
    email = _normalize_email(patch.get("email"))
    password_hash = hash_password(password)

    def _op() -> User:
        _check_outlet(patch.get("outlet_id"))
        if find_collision(User, User.email, email):
            raise ConflictError("email already in use", {"email": email})
        user = User(password_hash=password_hash, created_by=created_by)
        apply_patch(user, {**patch, "name": name, "email": email}, USER_FIELDS)
        db.session.add(user)
        flush_or_conflict("email already in use")
        db.session.commit()
        return user

    return run_with_retry(_op)


def get_user(user_id: int, *, include_deleted: bool = False) -> User:
    return get_live(User, user_id, "User", include_deleted=include_deleted)


def list_users(*, outlet_id: int | None = None) -> list[User]:
    query = User.live()
    if outlet_id is not None:
        query = query.filter(User.outlet_id == outlet_id)
    return query.order_by(User.id.asc()).all()


def update_user(user_id: int, patch: dict) -> User:
    cleaned = dict(patch)
    if "email" in cleaned:
        cleaned["email"] = _normalize_email(cleaned["email"])
    if "name" in cleaned and not (cleaned["name"] or "").strip():
        raise ValidationError("name cannot be blank")

    def _op() -> User:
        user = get_user(user_id)
        if "outlet_id" in cleaned:
            _check_outlet(cleaned["outlet_id"])
        if "email" in cleaned and find_collision(User, User.email, cleaned["email"], exclude_id=user.id):
            raise ConflictError("email already in use", {"email": cleaned["email"]})
        apply_patch(user, cleaned, USER_FIELDS)
        flush_or_conflict("email already in use")
        db.session.commit()
        return user

    return run_with_retry(_op)


def change_password(user_id: int, *, current_password: str, new_password: str) -> User:
    """
    Replace a user's password after verifying the current one.

    The new hash is only written when the current secret verifies.
    """
    user = get_user(user_id)
    if not verify_password(current_password, user.password_hash):
        current_app.logger.warning("password change rejected for user %s: current password mismatch", user_id)
        raise ValidationError("current password is incorrect")
    new_hash = hash_password(new_password)

    def _op() -> User:
        target = get_user(user_id)
        target.password_hash = new_hash
        db.session.commit()
        return target

    return run_with_retry(_op)


def delete_user(user_id: int) -> None:
    def _op() -> None:
        user = get_user(user_id)
        user.soft_delete()
        db.session.commit()

    run_with_retry(_op)
