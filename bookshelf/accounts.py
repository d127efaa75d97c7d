"""Email based sign-in and registration.

Accounts have no password; an email address identifies the user.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from . import db
from .errors import DuplicateError, NotFoundError, ValidationError
from .models import Role, User, utc_now

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@company.com"


def list_users() -> List[User]:
    return db.load_records(db.USERS, User)


def get_user(user_id: str) -> Optional[User]:
    return next((u for u in list_users() if u.id == user_id), None)


def find_by_email(email: str) -> Optional[User]:
    return next((u for u in list_users() if u.email == email), None)


def login(email: str) -> User:
    """Sign in as the user registered with ``email``.

    Refreshes ``lastLogin`` on the stored record.

    Raises:
        NotFoundError: No user has this email.
    """
    found: List[User] = []
    now = utc_now()

    def reducer(items: List[dict]) -> List[dict]:
        result = []
        for item in items:
            if not found and item.get("email") == email:
                user = User.model_validate(item).model_copy(update={"last_login": now})
                found.append(user)
                item = user.to_json()
            result.append(item)
        return result

    db.update_collection(db.USERS, reducer)
    if not found:
        logger.info("Login refused for unknown email %s", email)
        raise NotFoundError("User not found. Please register first.")
    logger.info("User %s logged in", found[0].id)
    return found[0]


def register(email: str, name: str, company: Optional[str] = None,
             phone: Optional[str] = None) -> User:
    """Create a reader account.

    Raises:
        ValidationError: Email or name is empty.
        DuplicateError: The email is already registered.
    """
    if not email or not email.strip():
        raise ValidationError("Email is required")
    if not name or not name.strip():
        raise ValidationError("Name is required")
    user = User(email=email, name=name, company=company, phone=phone, role=Role.USER)

    def reducer(items: List[dict]) -> List[dict]:
        if any(item.get("email") == email for item in items):
            raise DuplicateError("User already exists. Please login instead.")
        return items + [user.to_json()]

    db.update_collection(db.USERS, reducer)
    logger.info("Registered user %s", user.id)
    return user


def seed_admin() -> bool:
    """Create the default administrator when there are no users at all."""
    if db.get_collection(db.USERS):
        return False
    admin = User(id="admin-1", email=ADMIN_EMAIL, name="Admin User", role=Role.ADMIN)
    db.save_records(db.USERS, [admin])
    logger.info("Seeded default admin account %s", ADMIN_EMAIL)
    return True
