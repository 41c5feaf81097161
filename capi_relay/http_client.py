"""
Shared HTTP client for Graph API calls.

One pooled ``httpx.AsyncClient`` for the lifetime of the server instead of a
TCP connection per relayed request. Requests made through it are single
attempts; the relay never retries.

Usage:
    from .http_client import get_http_client_manager, start_http_client

    await start_http_client()
    client = get_http_client_manager().client
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

# Connection pool settings
MAX_CONNECTIONS = int(os.environ.get('HTTP_MAX_CONNECTIONS', '20'))
MAX_KEEPALIVE = int(os.environ.get('HTTP_MAX_KEEPALIVE', '10'))
DEFAULT_TIMEOUT = float(os.environ.get('CAPI_UPSTREAM_TIMEOUT_SECONDS', '30'))


class HttpClientManager:
    """Owns a shared httpx.AsyncClient with connection pooling."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._started = False

    async def start(self) -> None:
        if self._started:
            return

        limits = httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=MAX_KEEPALIVE,
        )
        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )
        self._started = True
        logger.info(
            'HTTP client started (timeout=%ss, max_conn=%d)',
            self.timeout, MAX_CONNECTIONS,
        )

    async def stop(self) -> None:
        """Gracefully close the shared HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._started = False
        logger.info('HTTP client stopped')

    @property
    def started(self) -> bool:
        return self._started

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError('HTTP client not started. Call start() first.')
        return self._client

    def get_health(self) -> Dict[str, Any]:
        return {
            'started': self._started,
            'timeout_seconds': self.timeout,
            'max_connections': MAX_CONNECTIONS,
        }


# -------------------------------------------------------------------
# Global Instance
# -------------------------------------------------------------------

_manager: Optional[HttpClientManager] = None


def get_http_client_manager() -> Optional[HttpClientManager]:
    return _manager


def get_shared_client() -> Optional[httpx.AsyncClient]:
    """The shared client if the server started one, else None."""
    if _manager and _manager.started:
        return _manager.client
    return None


async def start_http_client(timeout: float = DEFAULT_TIMEOUT) -> HttpClientManager:
    global _manager
    if _manager is not None:
        return _manager
    _manager = HttpClientManager(timeout=timeout)
    await _manager.start()
    return _manager


async def stop_http_client() -> None:
    global _manager
    if _manager:
        await _manager.stop()
        _manager = None
