"""
Redis utility module for centralized Redis configuration and connection logic.

Provides secure Redis URL validation for production deployments.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from rankstore.config import Config

logger = logging.getLogger(__name__)


class RedisUtils:
    """Centralized Redis configuration and connection utilities."""
    
    @staticmethod
    def validate_redis_security(redis_url: str) -> bool:
        """Validate that Redis URL meets security requirements."""
        if not redis_url:
            return False
        
        # For production, require secure protocol and authentication
        if not Config.DEBUG:
            if not redis_url.startswith('rediss://'):
                logger.error("Production Redis must use rediss:// (TLS) protocol")
                return False
            if '@' not in redis_url:
                logger.error("Production Redis must include authentication credentials")
                return False
        else:
            # Development mode - allow localhost for testing
            if redis_url.startswith('redis://localhost') or redis_url.startswith('redis://127.0.0.1'):
                return True
            if redis_url.startswith('rediss://'):
                return True
            logger.warning(f"Potentially insecure Redis URL in development: {redis_url}")
        
        return True
    
    @staticmethod
    def create_redis_client(redis_url: str) -> Optional['redis.Redis']:
        """Create a Redis client returning raw bytes, or None for an insecure URL."""
        if not RedisUtils.validate_redis_security(redis_url):
            return None
        return redis.from_url(redis_url, decode_responses=False)
