import logging
import secrets
from typing import Dict, Optional

from pydantic import ValidationError

from .config import Settings
from .database import KeyValueStore, StorageError
from .models import User

logger = logging.getLogger(__name__)

ADMIN_USER_ID = "1"


class AuthSession:
    """Single-admin login kept in a key-value store under ``user``."""

    def __init__(self, storage: KeyValueStore, settings: Settings, key: str = "user") -> None:
        self.storage = storage
        self.settings = settings
        self.key = key
        self.user: Optional[User] = self._load()

    def _load(self) -> Optional[User]:
        try:
            raw = self.storage.get(self.key)
            return User.model_validate_json(raw) if raw else None
        except (StorageError, ValidationError) as e:
            logger.error("Failed to restore login: %s", e)
            return None

    def login(self, username: str, password: str) -> bool:
        if not (
            secrets.compare_digest(username.encode(), self.settings.admin_username.encode())
            and secrets.compare_digest(password.encode(), self.settings.admin_password.encode())
        ):
            logger.info("rejected login for %r", username)
            return False
        self.user = User(id=ADMIN_USER_ID, username=username, is_admin=True)
        try:
            self.storage.set(self.key, self.user.model_dump_json())
        except StorageError as e:
            logger.warning("Login kept in memory only: %s", e)
        return True

    def logout(self) -> None:
        self.user = None
        try:
            self.storage.remove(self.key)
        except StorageError as e:
            logger.warning("Failed to clear stored login: %s", e)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin


class AdminTokens:
    """Opaque tokens handed out by the API after a successful admin login."""

    def __init__(self) -> None:
        self._tokens: Dict[str, User] = {}

    def issue(self, user: User) -> str:
        token = secrets.token_hex(16)
        self._tokens[token] = user
        return token

    def get(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        return self._tokens.get(token)

    def revoke(self, token: Optional[str]) -> None:
        if token:
            self._tokens.pop(token, None)

    def clear(self) -> None:
        self._tokens.clear()
