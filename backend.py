## Persistence gateways


# Both gateways store the whole store document and rewrite it on every flush.
# - `load()` returns the stored document, or None when nothing was stored yet
# - `flush(document)` overwrites whatever is stored
# - unreadable or non-JSON content raises StorageError, which stops startup
#
# There is no batching, write-ahead log or atomic rename. A crash in the middle
# of a file write can leave a truncated file behind, and the next start fails.
import json
from pathlib import Path
from typing import Optional

import redis

from constants import STORAGE_BACKEND, DATA_FILE, REDIS_HOST, REDIS_PORT, REDIS_PASSWORD
from errors import StorageError
from logging_config import get_logger
from redis_keys import KOVERS_STORE_KEY

logger = get_logger(__name__)


def _decode(raw: str, source: str) -> dict:
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"Stored data in {source} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise StorageError(f"Stored data in {source} is not a JSON object")
    return document


def _encode(document: dict) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


class FileSnapshotGateway:
    def __init__(self, path):
        self.path = Path(path)
        logger.info(f"Initializing FileSnapshotGateway with data file {self.path}")

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            logger.info(f"Data file {self.path} does not exist yet")
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read data file {self.path}: {e}") from e
        document = _decode(raw, str(self.path))
        logger.debug(f"Loaded {len(raw)} bytes from {self.path}")
        return document

    def flush(self, document: dict):
        raw = _encode(document)
        try:
            self.path.write_text(raw, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write data file {self.path}: {e}", exc_info=True)
            raise StorageError("Failed to save data") from e
        logger.debug(f"Flushed {len(raw)} bytes to {self.path}")


class RedisSnapshotGateway:
    """Keeps the store document as one JSON string under a single Redis key."""

    def __init__(self, client, key: str = KOVERS_STORE_KEY):
        self.redis_client = client
        self.key = key

    def load(self) -> Optional[dict]:
        try:
            raw = self.redis_client.get(self.key)
        except redis.RedisError as e:
            raise StorageError(f"Could not read {self.key} from Redis: {e}") from e
        if raw is None:
            logger.info(f"Redis key {self.key} does not exist yet")
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return _decode(raw, f"redis key {self.key}")

    def flush(self, document: dict):
        raw = _encode(document)
        try:
            self.redis_client.set(self.key, raw)
        except redis.RedisError as e:
            logger.error(f"Failed to write {self.key} to Redis: {e}", exc_info=True)
            raise StorageError("Failed to save data") from e
        logger.debug(f"Flushed {len(raw)} bytes to redis key {self.key}")


def build_gateway(backend: str = STORAGE_BACKEND):
    if backend == "file":
        return FileSnapshotGateway(DATA_FILE)
    if backend == "redis":
        try:
            client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
            client.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise StorageError(f"Could not connect to Redis at {REDIS_HOST}:{REDIS_PORT}") from e
        return RedisSnapshotGateway(client)
    raise ValueError(f"Unknown storage backend: {backend!r}")
