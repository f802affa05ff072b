"""
Handles the low-level HTTP work (JSON documents and file downloads) shared by
the remote catalog and downloader plugins.
"""

import asyncio
import logging
import os
from typing import Any

import aiofiles
import aiohttp

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_connections: int = 8) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_connections * 2,
            limit_per_host=max_connections,
            ttl_dns_cache=600,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"Accept-Encoding": "gzip, deflate"},
        )
        log.debug(f"Created HTTP pool with limit_per_host={max_connections}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared HTTP connection pool closed.")


class HttpFetcher:
    """Fetches JSON documents and files with retry logic."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.5):
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _with_retries(self, description: str, operation):
        last_exception = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Attempt {attempt}/{self.max_attempts} for '{description}' "
                    f"failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
        raise last_exception

    async def fetch_json(self, url: str) -> Any:
        """Downloads and decodes a JSON document."""

        async def _fetch():
            session = await get_connection_pool()
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                return await response.json(content_type=None)

        return await self._with_retries(url, _fetch)

    async def download_file(self, url: str, destination_path: str) -> int:
        """
        Streams a URL to `destination_path`, returning the number of bytes
        written. A partial file is removed when every attempt fails.
        """

        async def _download():
            session = await get_connection_pool()
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                bytes_downloaded = 0
                async with aiofiles.open(destination_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        bytes_downloaded += len(chunk)
                return bytes_downloaded

        try:
            return await self._with_retries(
                os.path.basename(destination_path), _download
            )
        except (aiohttp.ClientError, asyncio.TimeoutError):
            if os.path.exists(destination_path):
                os.remove(destination_path)
            raise
