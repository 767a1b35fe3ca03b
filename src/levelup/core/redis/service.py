"""
RedisService: async Redis client for cross-process notifications.

Purpose
-------
Own the single `redis.asyncio` client used to fan progression events out to
other processes (web sockets, notification workers) over pub/sub.

Responsibilities
----------------
- Initialize and dispose a pooled async client (idempotent)
- Publish JSON payloads to channels
- Report health via PING

Non-Responsibilities
--------------------
- Authoritative state (the database owns learner stats)
- Retry policy (callers treat publishing as best-effort)

Configuration
-------------
- Config.REDIS_URL
- Config.REDIS_SOCKET_TIMEOUT
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from levelup.core.config.config import Config
from levelup.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisService:
    """Singleton holder of the async Redis client."""

    _client: Optional[AsyncRedis] = None
    _init_lock: asyncio.Lock = asyncio.Lock()
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the client and verify it with PING.

        Raises:
            RuntimeError: If the server cannot be reached.
        """
        if cls._client is not None:
            return

        async with cls._init_lock:
            if cls._client is not None:
                return

            redis_url = url or Config.REDIS_URL
            client: AsyncRedis = AsyncRedis.from_url(
                redis_url,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                decode_responses=True,
                health_check_interval=30,
            )
            try:
                await client.ping()
            except (RedisError, OSError) as exc:
                await client.aclose()
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": redis_url.split("://")[0],
                    },
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            cls._is_healthy = True
            logger.info(
                "RedisService initialized",
                extra={"url_scheme": redis_url.split("://")[0]},
            )

    @classmethod
    async def shutdown(cls) -> None:
        client, cls._client = cls._client, None
        cls._is_healthy = False
        if client is not None:
            await client.aclose()
            logger.info("RedisService shutdown complete")

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None

    @classmethod
    def is_healthy(cls) -> bool:
        """Cached health status; no I/O."""
        return cls._is_healthy

    @classmethod
    async def health_check(cls) -> bool:
        if cls._client is None:
            cls._is_healthy = False
            return False

        start = time.monotonic()
        try:
            cls._is_healthy = bool(await cls._client.ping())
        except (RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Redis health check",
            extra={
                "healthy": cls._is_healthy,
                "latency_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return cls._is_healthy

    @classmethod
    def client(cls) -> AsyncRedis:
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # PUB/SUB
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def publish(cls, channel: str, payload: dict[str, Any]) -> int:
        """
        Publish a JSON-encoded payload.

        Returns:
            Number of subscribers that received the message.

        Raises:
            RuntimeError: If not initialized.
            RedisError: On transport failure.
        """
        message = json.dumps(payload, default=str)
        receivers = await cls.client().publish(channel, message)
        logger.debug(
            "Redis publish",
            extra={"channel": channel, "receivers": receivers},
        )
        return int(receivers)
