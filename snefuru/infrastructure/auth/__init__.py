from .auth_service import (
    AuthError,
    AuthService,
    create_token,
    hash_password,
    make_password_hash,
    verify_password,
    verify_token,
)

__all__ = [
    "AuthError",
    "AuthService",
    "create_token",
    "hash_password",
    "make_password_hash",
    "verify_password",
    "verify_token",
]
