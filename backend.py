import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import bcrypt
import redis
from pydantic import ValidationError

from logging_config import get_logger
from redis_keys import REDIS_USERS_KEY
from schemas.users import UserRecord

logger = get_logger(__name__)


class UserStoreError(Exception):
    """Base class for credential store failures."""


class DuplicateUsername(UserStoreError):
    def __init__(self, username: str):
        super().__init__(f"Username already exists: {username}")
        self.username = username


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Stored password is not a valid bcrypt hash")
        return False


class UserStore(ABC):
    """Credential store consumed by the signup/login routes.

    The messaging core never talks to this directly; a client only reaches the
    chat page after a successful login.
    """

    @abstractmethod
    def get_user(self, username: str) -> Optional[UserRecord]:
        """Return the stored record for `username`, or None."""

    @abstractmethod
    def create_account(self, username: str, password_hash: str, profile_image: Optional[str] = None) -> UserRecord:
        """Persist a new account.

        Raises:
            DuplicateUsername: if the username is taken
        """

    def reload(self):
        """Refresh from the backing storage. No-op for stores that always read through."""

    def verify_credentials(self, username: str, password: str) -> bool:
        user = self.get_user(username)
        if user is None:
            return False
        return check_password(password, user.password)


class JsonFileUserStore(UserStore):
    """Users kept as a JSON list in a flat file, rewritten on every signup.

    Entries that do not validate are logged, skipped for login, and written
    back unchanged on the next save.
    """

    def __init__(self, db_file: str):
        self.db_file = db_file
        self._users: Dict[str, UserRecord] = {}
        self._invalid_entries: list = []
        self._lock = threading.Lock()
        self.reload()

    def _ensure_file(self):
        if os.path.exists(self.db_file):
            return
        directory = os.path.dirname(self.db_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.db_file, "w", encoding="utf-8") as f:
            json.dump([], f, indent=2)
        logger.info(f"Created empty user database at {self.db_file}")

    def reload(self):
        with self._lock:
            self._ensure_file()
            try:
                with open(self.db_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                # Keep whatever was loaded before rather than wiping known users
                logger.error(f"Error reading user database {self.db_file}: {e}", exc_info=True)
                return
            if not isinstance(data, list):
                logger.error(f"User database {self.db_file} is not a JSON list, keeping {len(self._users)} loaded users")
                return

            users: Dict[str, UserRecord] = {}
            invalid = []
            for index, entry in enumerate(data):
                try:
                    user = UserRecord.model_validate(entry)
                except ValidationError as e:
                    logger.warning(f"Skipping invalid entry #{index} in {self.db_file}: {e.error_count()} errors")
                    invalid.append(entry)
                    continue
                users[user.username] = user
            self._users = users
            # Written back untouched so a signup never deletes them
            self._invalid_entries = invalid
            logger.debug(f"Loaded {len(self._users)} users from {self.db_file}")

    def get_user(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            return self._users.get(username)

    def create_account(self, username: str, password_hash: str, profile_image: Optional[str] = None) -> UserRecord:
        with self._lock:
            if username in self._users:
                raise DuplicateUsername(username)
            user = UserRecord(username=username, password=password_hash, profile_image=profile_image)
            users = dict(self._users)
            users[username] = user
            self._write(users)
            self._users = users
        logger.info(f"User {username} saved to {self.db_file}")
        return user

    def _write(self, users: Dict[str, UserRecord]):
        payload = [user.to_storage() for user in users.values()] + self._invalid_entries
        tmp_path = f"{self.db_file}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, self.db_file)

    @property
    def user_count(self) -> int:
        return len(self._users)


class RedisUserStore(UserStore):
    """Users kept in a single Redis hash keyed by username."""

    def __init__(self, redis_client):
        self.redis_client = redis_client

    def get_user(self, username: str) -> Optional[UserRecord]:
        raw = self.redis_client.hget(REDIS_USERS_KEY, username)
        if not raw:
            return None
        return UserRecord.model_validate_json(raw)

    def create_account(self, username: str, password_hash: str, profile_image: Optional[str] = None) -> UserRecord:
        user = UserRecord(username=username, password=password_hash, profile_image=profile_image)
        created = self.redis_client.hsetnx(REDIS_USERS_KEY, username, json.dumps(user.to_storage()))
        if not created:
            raise DuplicateUsername(username)
        logger.info(f"User {username} saved to Redis hash {REDIS_USERS_KEY}")
        return user


def build_user_store(kind: str, db_file: str, redis_host: str = "localhost", redis_port: int = 6379,
                     redis_password: Optional[str] = None) -> UserStore:
    if kind == "json":
        logger.info(f"Using JSON file user store at {db_file}")
        return JsonFileUserStore(db_file)
    if kind == "redis":
        try:
            redis_client = redis.Redis(host=redis_host, port=redis_port, password=redis_password, decode_responses=True)
            redis_client.ping()
            logger.info(f"Redis client connected successfully to {redis_host}:{redis_port}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {redis_host}:{redis_port}: {e}", exc_info=True)
            raise
        return RedisUserStore(redis_client)
    raise ValueError(f"Unknown user store: {kind}")
