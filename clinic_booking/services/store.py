# Key-value store for rewards data
import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import redis

from clinic_booking.config import Settings

# Configure logging
logger = logging.getLogger(__name__)


# Store interface
class KeyValueStore(ABC):
    # Abstract base class for store implementations; values are JSON-compatible

    def __init__(self, namespace: str = ""):
        self.namespace = namespace

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        # Get data from store
        pass

    @abstractmethod
    def set(self, key: str, data: Any) -> None:
        # Set data in store
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        # Delete data from store
        pass

    @abstractmethod
    def items(self, prefix: str) -> List[Tuple[str, Any]]:
        # All (key, data) pairs whose key starts with prefix
        pass

    def get_key(self, prefix: str, identifier: str) -> str:
        # Generate a store key
        if self.namespace:
            return f"{self.namespace}:{prefix}:{identifier}"
        return f"{prefix}:{identifier}"

    def key_prefix(self, prefix: str) -> str:
        return self.get_key(prefix, "")


# In-memory store implementation
class MemoryStore(KeyValueStore):
    # Process-local store for tests and local development; not shared between workers

    def __init__(self, namespace: str = ""):
        super().__init__(namespace)
        self.data: Dict[str, Any] = {}
        logger.info("In-memory store initialized")

    def get(self, key: str) -> Optional[Any]:
        # Copies keep callers from mutating stored values in place
        if key not in self.data:
            return None
        return copy.deepcopy(self.data[key])

    def set(self, key: str, data: Any) -> None:
        self.data[key] = copy.deepcopy(data)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def items(self, prefix: str) -> List[Tuple[str, Any]]:
        return [(key, copy.deepcopy(value)) for key, value in self.data.items() if key.startswith(prefix)]


# Redis store implementation
class RedisStore(KeyValueStore):
    # Redis-based store; values are stored as JSON strings

    def __init__(self, redis_url: str, namespace: str = ""):
        super().__init__(namespace)
        self.redis_client = redis.from_url(redis_url)
        logger.info("Redis store initialized")

    def get(self, key: str) -> Optional[Any]:
        data = self.redis_client.get(key)
        if data is None:
            return None
        return json.loads(data)

    def set(self, key: str, data: Any) -> None:
        self.redis_client.set(key, json.dumps(data))

    def delete(self, key: str) -> None:
        self.redis_client.delete(key)

    def items(self, prefix: str) -> List[Tuple[str, Any]]:
        pairs = []
        for raw_key in self.redis_client.scan_iter(match=f"{prefix}*"):
            key = raw_key.decode() if isinstance(raw_key, bytes) else raw_key
            data = self.redis_client.get(key)
            if data is not None:
                pairs.append((key, json.loads(data)))
        return pairs


# Factory function to create the appropriate store
def create_store(settings: Settings) -> KeyValueStore:
    # Create store based on configuration
    store_type = settings.store_type.lower()

    if store_type == "redis" and settings.redis_url:
        logger.info("Using Redis store")
        return RedisStore(settings.redis_url, namespace=settings.store_key_prefix)

    if store_type == "redis":
        logger.warning("Redis store selected but no REDIS_URL provided. Falling back to in-memory store.")
    else:
        logger.info("Using in-memory store")
    return MemoryStore(namespace=settings.store_key_prefix)
