import json
import os
from typing import List, Optional

import redis

from content_search.logger import GLOBAL_LOGGER as log
from content_search.utils.hashing import hash_str

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))

redis_client = redis.Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    db=REDIS_DB,
    decode_responses=True,
    socket_timeout=2.0,
    socket_connect_timeout=2.0,
)


def _query_embedding_key(norm_query: str) -> str:
    """
    example : qemb:f7e9a1b04e<query_hash>
    The value is the JSON encoded embedding vector of the normalized query.
    """
    return f"qemb:{hash_str(norm_query)}"


def cache_query_embedding(norm_query: str, embedding: List[float], ttl: int = 3600):
    """
    Cache the embedding of a normalized search query.
    """
    key = _query_embedding_key(norm_query)
    try:
        redis_client.setex(key, ttl, json.dumps(embedding))
        log.debug("Cached query embedding | key=%s", key)
    except Exception as e:
        log.warning("Failed to cache query embedding | error=%s", str(e))


def get_cached_query_embedding(norm_query: str) -> Optional[List[float]]:
    """
    Retrieve a cached query embedding, None on miss or when Redis is unavailable.
    """
    key = _query_embedding_key(norm_query)
    try:
        value = redis_client.get(key)
        if not value:
            log.debug("Query embedding cache MISS | key=%s", key)
            return None
        log.debug("Query embedding cache HIT | key=%s", key)
        return json.loads(value)
    except Exception as e:
        log.warning("Failed to fetch cached query embedding | error=%s", str(e))
        return None
