"""
Key/value persistence for history, preferences and usage.

Two backends share one tiny interface (get / set / delete of JSON values):

- RedisStore     - Upstash Redis, used when credentials are configured.
- JsonFileStore  - one JSON document under settings.data_dir.

The Redis client is read from the integration module at call time so it
picks up the instance created during the FastAPI lifespan.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Optional

from app.config import settings
from app.integrations import redis_client as redis_module

logger = logging.getLogger(__name__)

KEY_PREFIX = "dfd"
STATE_FILE = "state.json"


class StateStore:
    backend = "none"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class JsonFileStore(StateStore):
    backend = "file"

    def __init__(self, data_dir: Optional[str] = None):
        self.path = os.path.join(data_dir or settings.data_dir, STATE_FILE)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[STATE] Unreadable state file {self.path}: {e}; starting empty")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._write(data)


class RedisStore(StateStore):
    backend = "redis"

    def _client(self):
        client = redis_module.client
        if client is None:
            raise RuntimeError("Redis client is not initialized")
        return client

    @staticmethod
    def _key(key: str) -> str:
        return f"{KEY_PREFIX}:{key}"

    def get(self, key: str) -> Optional[Any]:
        raw = self._client().get(self._key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.error(f"[STATE] Corrupt value at {self._key(key)}; ignoring")
            return None

    def set(self, key: str, value: Any) -> None:
        self._client().set(self._key(key), json.dumps(value))

    def delete(self, key: str) -> None:
        self._client().delete(self._key(key))


def build_state_store() -> StateStore:
    if redis_module.client is not None:
        logger.info("[STARTUP] State store: Upstash Redis")
        return RedisStore()
    logger.info(f"[STARTUP] State store: JSON file under {settings.data_dir}")
    return JsonFileStore()
