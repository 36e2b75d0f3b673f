"""
Local Persistence - durable key/value storage for the client.

Provides:
- FileStorage: JSON file on disk (default, works offline)
- RedisStorage: Upstash Redis (sync client) for shared/kiosk deployments
- MemoryStorage: process-local storage for tests and ephemeral sessions

All backends are synchronous so that cart and token mutations persist
before the mutating call returns.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from upstash_redis import Redis

from storefront.config import Settings, load_settings
from storefront.logging import get_logger

logger = get_logger(__name__)


class StorageKeys:
    """Named entries of the persisted client state."""

    ACCESS_TOKEN = "token"
    REFRESH_TOKEN = "refreshToken"
    CART = "cartItems"


class KeyValueStorage(Protocol):
    """Minimal storage contract used by TokenManager and CartStore."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Dict[str, str]) -> None: ...

    def delete(self, *keys: str) -> None: ...


class MemoryStorage:
    """Dictionary-backed storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def set_many(self, values: Dict[str, str]) -> None:
        self.data.update(values)

    def delete(self, *keys: str) -> None:
        for key in keys:
            self.data.pop(key, None)


class FileStorage:
    """
    JSON file storage.

    The whole document is rewritten through a temp file and os.replace, so
    a multi-key write is visible either completely or not at all.
    """

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._cache: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._cache is not None:
            return self._cache
        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(raw, dict):
                    data = {str(k): str(v) for k, v in raw.items()}
                else:
                    logger.warning("Ignoring malformed state file %s", self.path)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to read state file %s: %s", self.path, e)
        self._cache = data
        return data

    def _flush(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self._cache = data

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Dict[str, str]) -> None:
        data = dict(self._load())
        data.update(values)
        self._flush(data)

    def delete(self, *keys: str) -> None:
        data = dict(self._load())
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._flush(data)


class RedisStorage:
    """Upstash Redis storage. Keys are namespaced with a per-device prefix."""

    def __init__(self, client: Redis, prefix: str = "storefront:"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(self._key(key))
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value)

    def set_many(self, values: Dict[str, str]) -> None:
        # MSET is atomic on the server
        self.client.mset({self._key(k): v for k, v in values.items()})

    def delete(self, *keys: str) -> None:
        if keys:
            self.client.delete(*(self._key(k) for k in keys))


def create_storage(settings: Settings) -> KeyValueStorage:
    """Build the storage backend selected in settings."""
    if settings.storage_backend == "memory":
        return MemoryStorage()

    if settings.storage_backend == "redis":
        if not settings.redis_url or not settings.redis_token:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        return RedisStorage(Redis(url=settings.redis_url, token=settings.redis_token))

    return FileStorage(settings.state_path)


# Singleton instance
_storage: Optional[KeyValueStorage] = None


def get_storage() -> KeyValueStorage:
    """Get the configured storage (singleton)."""
    global _storage
    if _storage is None:
        _storage = create_storage(load_settings())
    return _storage
