"""
Auth Service - Passwords and Session Tokens
============================================

Passwords are stored as "hash:salt" using PBKDF2-HMAC-SHA512.
Sessions are stateless JWTs signed with the application secret.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from jose import jwt, JWTError

from ..config import get_settings
from ..persistence import Database, User

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Authentication / registration failure with an HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    """Hash a password; a fresh random salt is used unless one is given."""
    settings = get_settings().auth
    salt = salt or secrets.token_hex(settings.salt_bytes)
    digest = hashlib.pbkdf2_hmac(
        "sha512",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        settings.hash_iterations,
        dklen=settings.hash_key_length,
    )
    return digest.hex(), salt


def make_password_hash(password: str) -> str:
    """Stored form: "hash:salt"."""
    digest, salt = hash_password(password)
    return f"{digest}:{salt}"


def verify_password(password: str, stored: str) -> bool:
    try:
        digest, salt = stored.split(":", 1)
    except ValueError:
        return False
    candidate, _ = hash_password(password, salt)
    return hmac.compare_digest(candidate, digest)


def create_token(user_id: int, remember_me: bool = False) -> str:
    """Create a signed session token for a user."""
    settings = get_settings().auth
    now = datetime.now(timezone.utc)
    lifetime = (timedelta(days=settings.remember_me_expire_days) if remember_me
                else timedelta(hours=settings.token_expire_hours))
    payload = {"sub": str(user_id), "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> Optional[int]:
    """User id from a valid token, None if invalid or expired."""
    settings = get_settings().auth
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None


class AuthService:
    """User registration, login and profile updates on top of Database."""

    def __init__(self, db: Database):
        self.db = db

    def register(self, email: str, username: str, password: str,
                 first_name: Optional[str] = None, last_name: Optional[str] = None) -> User:
        if self.db.get_user_by_email(email):
            raise AuthError("Email already in use", 409)
        if self.db.get_user_by_username(username):
            raise AuthError("Username already taken", 409)

        user_id = self.db.create_user(
            email=email,
            username=username,
            password_hash=make_password_hash(password),
            first_name=first_name or None,
            last_name=last_name or None,
        )
        if user_id is None:
            # Lost a race with a concurrent registration
            raise AuthError("Email already in use", 409)

        logger.info(f"Registered user {user_id} ({username})")
        return self.db.get_user_by_id(user_id)

    def login(self, email: str, password: str, remember_me: bool = False) -> Tuple[User, str]:
        user = self.db.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthError("Invalid email or password", 401)

        self.db.update_last_login(user.id)
        logger.info(f"User {user.id} logged in")
        return self.db.get_user_by_id(user.id), create_token(user.id, remember_me)

    def update_profile(self, user: User, email: Optional[str] = None,
                       username: Optional[str] = None, first_name: Optional[str] = None,
                       last_name: Optional[str] = None, profile_image: Optional[str] = None,
                       current_password: Optional[str] = None,
                       new_password: Optional[str] = None) -> User:
        """Apply the non-empty fields; password changes need the current password."""
        updates = {}

        if email and email != user.email:
            if self.db.get_user_by_email(email):
                raise AuthError("Email already in use", 409)
            updates["email"] = email
        if username and username != user.username:
            if self.db.get_user_by_username(username):
                raise AuthError("Username already taken", 409)
            updates["username"] = username
        if first_name:
            updates["first_name"] = first_name
        if last_name:
            updates["last_name"] = last_name
        if profile_image:
            updates["profile_image"] = profile_image

        if current_password and new_password:
            if not verify_password(current_password, user.password_hash):
                raise AuthError("Current password is incorrect", 400)
            updates["password_hash"] = make_password_hash(new_password)

        return self.db.update_user(user.id, **updates)
