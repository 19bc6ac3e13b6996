"""Access gate for content-mutation routes (HTTP Basic credentials)."""

import base64
import binascii
import logging

from fastapi import Depends, Request

from psychprep.auth.utils import hash_password, now_ist, verify_password
from psychprep.db import ContentStore
from psychprep.errors import AuthError
from psychprep.models import UserAccount

logger = logging.getLogger(__name__)


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def decode_basic_credentials(header: str | None) -> tuple[str, str]:
    """Split a `Basic` Authorization header into (identity, password)."""
    if not header or not header.startswith("Basic "):
        raise AuthError("Unauthorized")
    try:
        decoded = base64.b64decode(header[len("Basic "):].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise AuthError("Unauthorized")

    # Passwords may contain colons, identities may not
    identity, sep, password = decoded.partition(":")
    if not sep or not identity:
        raise AuthError("Unauthorized")
    return identity, password


def find_account(store: ContentStore, identity: str) -> UserAccount | None:
    """Look an account up by email first, then by username."""
    return store.get_user_by_email(identity) or store.get_user_by_username(identity)


def verify_account(store: ContentStore, identity: str, password: str) -> UserAccount:
    user = find_account(store, identity)
    if not user:
        raise AuthError("You need to register first")
    if not verify_password(password, user.password, legacy=user.legacy_password):
        raise AuthError("Invalid credentials")

    if user.legacy_password:
        # Legacy plaintext credential: migrate it now that we know the password
        store.update_password(user.id, hash_password(password))
        logger.info(f"Re-hashed legacy password for user {user.id}")
    return user


def record_login(store: ContentStore, user: UserAccount) -> UserAccount:
    return store.update_last_login(user.id, now_ist()) or user


def authorize(store: ContentStore, header: str | None) -> UserAccount:
    """Return the admin account behind `header` or raise AuthError."""
    identity, password = decode_basic_credentials(header)
    try:
        user = verify_account(store, identity, password)
    except AuthError:
        logger.warning(f"Rejected admin credentials for {identity!r}")
        raise AuthError("Invalid credentials or not an admin")
    if not user.is_admin:
        logger.warning(f"Non-admin {identity!r} attempted a write")
        raise AuthError("Invalid credentials or not an admin")
    return record_login(store, user)


def require_admin(request: Request, store: ContentStore = Depends(get_store)) -> UserAccount:
    return authorize(store, request.headers.get("Authorization"))
