"""
auth.py
Authentication utilities (bcrypt hashing, verify, role login, change password).

This avoids passlib's bcrypt backend auto-detection issues on some Python 3.13 Windows setups.
"""

from __future__ import annotations

import logging

import bcrypt

from models import Manager, MemberLogin, NotFoundError, SuperAdmin, UserRole

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against stored bcrypt hash. No hash means no login.
    """
    if not password_hash:
        return False
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def login_super_admin(store, username: str, password: str) -> SuperAdmin | None:
    admin = store.get_admin_by_username(username)
    if not admin or not verify_password(password, admin["password_hash"]):
        return None
    return SuperAdmin(username=username)


def login_manager(store, gym_id: str, password: str) -> Manager | None:
    try:
        gym = store.get_gym(gym_id)
    except NotFoundError:
        return None
    if not verify_password(password, gym.manager_password_hash):
        return None
    return Manager(gym_id=gym.id)


def login_member(store, username: str, password: str, gym_id: str | None = None) -> MemberLogin | None:
    # Only the member's own password is accepted; there is no shared fallback password.
    member = store.find_member_by_username(username, gym_id)
    if not member:
        return None
    if not verify_password(password, member.password_hash):
        return None
    return MemberLogin(member_id=member.id)


def login(store, role: str, username: str, password: str, gym_id: str | None = None) -> UserRole | None:
    """
    Dispatch on the role picked on the login screen ('SUPER_ADMIN', 'MANAGER', 'MEMBER').
    """
    if role == "SUPER_ADMIN":
        user = login_super_admin(store, username, password)
    elif role == "MANAGER":
        user = login_manager(store, gym_id or "", password)
    elif role == "MEMBER":
        user = login_member(store, username, password, gym_id)
    else:
        raise ValueError(f"Unknown role: {role}")

    if user is None:
        logger.warning("Failed %s login for '%s'", role, username or gym_id)
    return user


def change_password(store, username: str, new_password: str) -> None:
    store.set_admin_password_hash(username, hash_password(new_password))
    store.clear_force_password_change()
