# Overview: Employee directory and password hashing; the only place password hashes live.

"""
Authentication Service

WHY: Every sale and refund must be attributable to an employee. Employees
sign in with their code and a password hashed with bcrypt.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, 12 by default)
- User records with hashes never leave UserDirectory; callers get UserView
- Unknown code and wrong password are indistinguishable to callers
"""

from __future__ import annotations

import uuid

import bcrypt

from ..models import User, UserView, ROLE_EMPLOYEE
from ..models.auth import ROLES

DEFAULT_BCRYPT_ROUNDS = 12
DEFAULT_MIN_PASSWORD_LENGTH = 4

USER_MUTABLE_FIELDS = {"code", "name", "role", "is_active"}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserDirectoryError(ValueError):
    """Raised for user directory errors (duplicate code, unknown user)."""


def validate_password_strength(password: str, min_length: int = DEFAULT_MIN_PASSWORD_LENGTH) -> None:
    """
    Validate password meets the terminal's requirements.

    Employees type these at a shared counter, so the policy is a minimum
    length and no surrounding whitespace.
    """
    if password is None or len(password) < min_length:
        raise PasswordValidationError(f"Password must be at least {min_length} characters long")

    if password != password.strip():
        raise PasswordValidationError("Password cannot start or end with whitespace")


def hash_password(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS,
                  min_length: int = DEFAULT_MIN_PASSWORD_LENGTH) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password, min_length)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class UserDirectory:
    def __init__(self, *, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
                 min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH):
        self._rounds = bcrypt_rounds
        self._min_length = min_password_length
        self._users: dict[str, User] = {}

    def create_user(self, code: str, name: str, password: str, role: str = ROLE_EMPLOYEE,
                    user_id: str | None = None, is_active: bool = True) -> UserView:
        """
        Create an employee. Codes are unique across the directory.

        Raises:
            UserDirectoryError: duplicate code or id, unknown role
            PasswordValidationError: weak password
        """
        code = (code or "").strip()
        if not code:
            raise UserDirectoryError("Employee code is required")
        if not (name or "").strip():
            raise UserDirectoryError("Employee name is required")
        if role not in ROLES:
            raise UserDirectoryError(f"Unknown role: {role}")
        if self._by_code(code) is not None:
            raise UserDirectoryError(f"Employee code {code} already exists")

        user_id = str(user_id or uuid.uuid4().hex)
        if user_id in self._users:
            raise UserDirectoryError(f"User {user_id} already exists")

        user = User(
            id=user_id,
            code=code,
            name=name.strip(),
            password_hash=hash_password(password, self._rounds, self._min_length),
            role=role,
            is_active=is_active,
        )
        self._users[user.id] = user
        return user.view()

    def update_user(self, user_id: str, patch: dict) -> UserView:
        user = self._require(user_id)
        if "code" in patch:
            other = self._by_code(patch["code"])
            if other is not None and other.id != user_id:
                raise UserDirectoryError(f"Employee code {patch['code']} already exists")
        if "role" in patch and patch["role"] not in ROLES:
            raise UserDirectoryError(f"Unknown role: {patch['role']}")
        for key, value in patch.items():
            if key in USER_MUTABLE_FIELDS:
                setattr(user, key, value)
        if "password" in patch:
            user.password_hash = hash_password(patch["password"], self._rounds, self._min_length)
        return user.view()

    def deactivate_user(self, user_id: str) -> UserView:
        return self.update_user(user_id, {"is_active": False})

    def authenticate(self, code: str, password: str) -> User | None:
        """
        Match code and password. Returns the record (active or not) or None.

        Account activity is left to the caller so it can report deactivated
        accounts distinctly.
        """
        user = self._by_code(code)
        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def get(self, user_id: str) -> UserView | None:
        user = self._users.get(user_id)
        return user.view() if user else None

    def get_record(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def list_users(self) -> list[UserView]:
        return [u.view() for u in self._users.values()]

    def to_state(self) -> list[dict]:
        return [u.to_dict() for u in self._users.values()]

    def load_state(self, rows: list[dict]) -> None:
        self._users = {}
        for row in rows or []:
            user = User.from_dict(row)
            self._users[user.id] = user

    def _by_code(self, code: str) -> User | None:
        for user in self._users.values():
            if user.code == code:
                return user
        return None

    def _require(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserDirectoryError(f"User {user_id} not found")
        return user
