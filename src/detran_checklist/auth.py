"""Authentication boundary and administrator account management."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import uuid
from pathlib import Path
from typing import Dict, List

from .config import Settings
from .models import User, UserAccount, UserInput

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
HASH_ITERATIONS = 240_000


class AuthError(Exception):
    """Base exception for authentication and authorisation failures."""


class AuthenticationError(AuthError):
    """Raised when an operation needs a logged-in user."""


class PermissionDeniedError(AuthError):
    """Raised when the current user is not an administrator."""


class UserManagementError(AuthError):
    """Raised when an account change is not allowed."""


def hash_password(password: str, *, salt: str | None = None, iterations: int = HASH_ITERATIONS) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, _ = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    candidate = hash_password(password, salt=salt, iterations=int(iterations))
    return hmac.compare_digest(candidate, encoded)


class UserStore:
    """Load/store user accounts from a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> Dict[str, UserAccount]:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        accounts = [UserAccount.model_validate(item) for item in payload.get("users", [])]
        return {account.id: account for account in accounts}

    def save(self, accounts: Dict[str, UserAccount]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(
                {"users": [account.model_dump(mode="json") for account in accounts.values()]},
                handle,
                ensure_ascii=False,
                indent=2,
            )


class AuthService:
    """Single-session login state plus the account registry.

    Only administrators may edit the catalog or manage accounts.
    """

    def __init__(self, store: UserStore) -> None:
        self._store = store
        self._accounts: Dict[str, UserAccount] = store.load()
        self._current: UserAccount | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthService":
        service = cls(UserStore(settings.users_path))
        if settings.admin_password:
            service.ensure_admin(
                email=settings.admin_email,
                password=settings.admin_password,
                name=settings.admin_name,
            )
        return service

    def ensure_admin(self, *, email: str, password: str, name: str) -> None:
        """Create the bootstrap administrator when no account exists yet."""

        if self._accounts:
            return
        account = UserAccount(
            id=str(uuid.uuid4()),
            email=email.strip().lower(),
            name=name,
            is_admin=True,
            password_hash=hash_password(password),
        )
        self._accounts[account.id] = account
        self._store.save(self._accounts)
        logger.info("admin_bootstrapped email=%s", account.email)

    def is_authenticated(self) -> bool:
        return self._current is not None

    def current_user(self) -> User | None:
        return self._current.public() if self._current else None

    def login(self, email: str, password: str) -> bool:
        wanted = email.strip().lower()
        for account in self._accounts.values():
            if account.email == wanted and verify_password(password, account.password_hash):
                self._current = account
                logger.info("login_succeeded email=%s", wanted)
                return True
        logger.info("login_failed email=%s", wanted)
        return False

    def logout(self) -> None:
        if self._current is not None:
            logger.info("logout email=%s", self._current.email)
        self._current = None

    def require_authenticated(self) -> User:
        if self._current is None:
            raise AuthenticationError("Login required.")
        return self._current.public()

    def require_admin(self) -> User:
        user = self.require_authenticated()
        if not user.is_admin:
            raise PermissionDeniedError("Administrator privileges required.")
        return user

    def list_users(self) -> List[User]:
        self.require_admin()
        return [account.public() for account in self._accounts.values()]

    def create_user(self, data: UserInput) -> User:
        self.require_admin()
        if any(account.email == data.email for account in self._accounts.values()):
            raise UserManagementError(f"An account for '{data.email}' already exists.")
        account = UserAccount(
            id=str(uuid.uuid4()),
            email=data.email,
            name=data.name,
            is_admin=data.is_admin,
            password_hash=hash_password(data.password),
        )
        self._accounts[account.id] = account
        self._store.save(self._accounts)
        logger.info("user_created email=%s admin=%s", account.email, account.is_admin)
        return account.public()

    def remove_user(self, user_id: str) -> None:
        current = self.require_admin()
        if user_id == current.id:
            raise UserManagementError("Administrators cannot remove their own account.")
        if user_id not in self._accounts:
            raise UserManagementError(f"User '{user_id}' not found.")
        removed = self._accounts.pop(user_id)
        self._store.save(self._accounts)
        logger.info("user_removed email=%s", removed.email)
