from __future__ import annotations

import logging
import re

from werkzeug.security import check_password_hash, generate_password_hash

from .. import storage
from ..constants import ROLES, ROLE_ATHLETE
from ..errors import AuthenticationError, BadRequestError, ConflictError, NotFoundError
from ..models import User

LOGGER = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def register_user(email: str, password: str, *, role: str = ROLE_ATHLETE) -> User:
    """Create a local account. The profile itself is filled in by the onboarding wizard."""
    address = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(address):
        raise BadRequestError("A valid email address is required.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Use a password with at least {MIN_PASSWORD_LENGTH} characters.")
    if role not in ROLES:
        raise BadRequestError(f"Unknown role: {role}")

    with storage.open_database() as conn:
        if storage.fetch_user_by_email(conn, address, include_deleted=True) is not None:
            raise ConflictError("Account already exists for that email.")
        with conn:
            user_id = storage.insert_user(
                conn, email=address, password_hash=generate_password_hash(password), role=role
            )
            storage.ensure_counters(conn, user_id)
        user = storage.fetch_user(conn, user_id)
    if user is None:
        raise NotFoundError("User not found")
    LOGGER.info("Registered user %s (%s)", user_id, role)
    return user


def authenticate(email: str, password: str) -> User:
    address = (email or "").strip().lower()
    with storage.open_database() as conn:
        user = storage.fetch_user_by_email(conn, address)
    if user is None or not check_password_hash(user.password_hash, password or ""):
        raise AuthenticationError("Invalid email or password.")
    return user


def get_user(user_id: int) -> User:
    with storage.open_database() as conn:
        user = storage.fetch_user(conn, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
