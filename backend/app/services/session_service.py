# Overview: Service-layer operations for bearer session tokens.

"""
Session Token Management Service

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage; the plaintext is returned once
- Absolute timeout from SESSION_TIMEOUT_HOURS
- Revocable on logout
"""

import hashlib
import secrets

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from app.time_utils import has_passed, utc_in, utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=utcnow(),
        expires_at=utc_in(current_app.config.get("SESSION_TIMEOUT_HOURS", 12)),
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Return the session's user if the token is valid.

    Returns None if the token is unknown, expired or revoked, or the user is
    deactivated.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if has_passed(session.expires_at):
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    # Release the read transaction before the request's unit of work begins
    db.session.commit()
    return user


def revoke_session(token: str) -> bool:
    """Revoke session token. Returns False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
