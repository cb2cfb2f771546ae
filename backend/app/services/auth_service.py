# Overview: Service-layer operations for users, roles and password checks.

"""
Authentication Service

WHY: Every sale is attributed to an owning user, and the role on that user
decides what the access policy allows. Passwords are hashed with bcrypt.

Session tokens are managed separately (see session_service.py).
"""

import re

import bcrypt

from ..extensions import db
from ..models import Role, User
from app.time_utils import utcnow
from .access_policy import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER


DEFAULT_ROLES = [
    (ROLE_ADMIN, "Administrator with full access"),
    (ROLE_MANAGER, "Store management, stock and corrections"),
    (ROLE_CASHIER, "Handles sales and transactions"),
]


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with at least one letter and one digit.
    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_default_roles() -> list[Role]:
    """Create Admin, Manager and Cashier roles if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles


def create_user(
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    role_name: str,
    phone_number: str | None = None,
    bcrypt_rounds: int = 12,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If role doesn't exist or email is taken
        PasswordValidationError: If password doesn't meet requirements
    """
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ValueError("Email already exists")

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone_number=phone_number,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role_id=role.id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid and the account is active, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
