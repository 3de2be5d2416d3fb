# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    blockchain_api.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# blockchain_api.py
'''
All requests against the mempool-style block explorer.

Each method issues exactly one request. There is no retry and no caching
here: retry lives in retry.py, caching is the job of the header chain.
Failures are raised as RemoteError (transport, timeout, non-200) or
DecodeError (unparsable payload).
'''

import asyncio
import logging
import time
from collections import deque
from typing import Optional

import aiohttp

from diffwatch.config import Config
from diffwatch.core_defs import BLOCK_ID_HEX_LENGTH, MAX_HEIGHT
from diffwatch.errors import DecodeError, RemoteError

MEASUREMENT_WINDOW_SECONDS = 60  # time for sliding average

logger = logging.getLogger(__name__)


async def _log_aiohttp_error(response: aiohttp.ClientResponse, context: str) -> str:
    """Logs detailed error information from an aiohttp response and returns the message."""
    try:
        error_message = (await response.text()).strip()
    except (aiohttp.ClientError, UnicodeDecodeError):
        error_message = "<unreadable body>"
    logger.error(f"Request failed for {context}: Status {response.status}, Error: {error_message}")
    return error_message


class BlockchainApi:
    """
    Client for the three explorer endpoints DiffWatch needs:
        GET /api/blocks/tip/height
        GET /api/block-height/{height}
        GET /api/block/{block_id}/header

    Owns one aiohttp session unless a session is passed in.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = (base_url or Config.api_base_url()).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.TIMEOUT_CONNECT)
        self._session = session
        self._owns_session = session is None
        self._call_timestamps = deque()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _record_api_call_and_get_rate(self) -> float:
        """Records the current timestamp and calculates the average rate over the window."""
        now = time.monotonic()
        self._call_timestamps.append(now)

        # remove time stamps older than a measuring window
        while self._call_timestamps and self._call_timestamps[0] < now - MEASUREMENT_WINDOW_SECONDS:
            self._call_timestamps.popleft()

        rate_per_minute = len(self._call_timestamps) * 60 / MEASUREMENT_WINDOW_SECONDS
        logger.debug(f"[API Rate] Calls in last {MEASUREMENT_WINDOW_SECONDS}s: {len(self._call_timestamps)}. Avg Rate: {rate_per_minute:.2f} calls/min.")
        return rate_per_minute

    async def _get_text(self, path: str, context: str) -> str:
        """Central GET helper. Returns the stripped body of a 200 response."""
        self._record_api_call_and_get_rate()
        url = f"{self.base_url}{path}"
        logger.debug(f"API Request URL ({context}): {url}")

        try:
            async with self._get_session().get(url, timeout=self.timeout) as response:
                if response.status != 200:
                    message = await _log_aiohttp_error(response, context)
                    raise RemoteError(f"{context}: HTTP {response.status}: {message}", status=response.status)
                return (await response.text()).strip()
        except UnicodeDecodeError as e:
            raise DecodeError(f"{context}: response body is not text") from e
        except asyncio.TimeoutError as e:
            raise RemoteError(f"{context}: request to {url} timed out after {self.timeout.total} seconds") from e
        except aiohttp.ClientError as e:
            raise RemoteError(f"{context}: {type(e).__name__}: {e}") from e

    async def fetch_tip_height(self) -> int:
        """Height of the current chain tip."""
        text = await self._get_text("/api/blocks/tip/height", "fetch_tip_height")
        try:
            height = int(text)
        except ValueError as e:
            raise DecodeError(f"Tip height is not an integer: {text[:80]!r}") from e
        if not 0 <= height <= MAX_HEIGHT:
            raise DecodeError(f"Tip height out of range: {height}")
        logger.info(f"Got tip: height {height}")
        return height

    async def fetch_block_id(self, height: int) -> str:
        """Block hash (display hex) of the block at `height`."""
        text = await self._get_text(f"/api/block-height/{height}", f"fetch_block_id for {height}")
        block_id = text.lower()
        if len(block_id) != BLOCK_ID_HEX_LENGTH:
            raise DecodeError(f"Block id for height {height} has length {len(block_id)}: {text[:80]!r}")
        try:
            bytes.fromhex(block_id)
        except ValueError as e:
            raise DecodeError(f"Block id for height {height} is not hex: {text[:80]!r}") from e
        return block_id

    async def fetch_header_bytes(self, block_id: str) -> bytes:
        """Raw serialized header of block `block_id`."""
        text = await self._get_text(f"/api/block/{block_id}/header", f"fetch_header_bytes for {block_id}")
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise DecodeError(f"Header of {block_id} is not valid hex: {text[:80]!r}") from e
