# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    blockchain_service.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# blockchain_service.py
# Keeps the sparse header chain in sync with the remote explorer.

import asyncio
import enum
import logging
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Optional

from diffwatch.blockchain_api import BlockchainApi
from diffwatch.header_chain import SparseHeaderChain
from diffwatch.header_fetcher import HeaderFetcher
from diffwatch.errors import BatchFetchFailed, RetryExhausted
from diffwatch.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

PROGRESS_LOG_EVERY = 10


class SyncState(enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class HeaderSynchronizer:
    """
    Sole writer of the chain. One cycle fetches the tip, commits it, then
    backfills every completed period that is not stored yet. run_forever()
    repeats the cycle every `interval` seconds; a failed cycle is logged and
    retried on the next tick.
    """

    def __init__(
        self,
        api: BlockchainApi,
        chain: SparseHeaderChain,
        policy: RetryPolicy,
        concurrency: int = 10,
        interval: float = 600,
    ):
        self.api = api
        self.chain = chain
        self.policy = policy
        self.fetcher = HeaderFetcher(api, policy, concurrency)
        self.interval = interval

        self.state = SyncState.IDLE
        self.cycles = 0
        self.last_success: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def sync_once(self) -> bool:
        """Runs one sync cycle. Returns True if the chain is caught up with the fetched tip."""
        self.state = SyncState.SYNCING
        self.cycles += 1
        try:
            ok = await self._sync_cycle()
        except Exception as e:
            logger.error(f"Sync cycle {self.cycles} failed unexpectedly: {e}", exc_info=True)
            self.last_error = f"{type(e).__name__}: {e}"
            ok = False
        finally:
            self.state = SyncState.IDLE

        if ok:
            self.last_success = datetime.now(timezone.utc)
            self.last_error = None
        return ok

    async def _sync_cycle(self) -> bool:
        try:
            new_tip_height = await retry_async(self.api.fetch_tip_height, self.policy, context="tip height")
        except RetryExhausted as e:
            logger.error(f"Tip: failed to fetch after {e.attempts} attempt(s). Chain left unchanged.")
            self.last_error = str(e)
            return False

        old_tip_height = await self.chain.set_tip_height(new_tip_height)
        first, last = await self.chain.missing_range()

        if first > last:
            logger.info(f"Headers up to date: {first} periods stored, tip height {new_tip_height}")
            return True

        logger.info(f"Syncing headers: height {old_tip_height} -> height {new_tip_height} (periods {first}..{last})")

        appended = 0
        try:
            async with aclosing(self.fetcher.fetch_range(first, last)) as headers:
                async for index, header in headers:
                    await self.chain.append(index, header)
                    appended += 1
                    if appended % PROGRESS_LOG_EVERY == 0:
                        logger.info(f"  Synced {appended} headers. Current period: {index}")
        except BatchFetchFailed as e:
            logger.error(f"Backfill stopped at period {e.index} (height {e.height}) after {appended} new headers: {e.__cause__}")
            self.last_error = str(e)
            return False

        logger.info(f"Completed sync: height {new_tip_height}. Added {appended} headers, {last + 1} periods stored.")
        return True

    async def run_forever(self):
        """Sync, sleep, repeat. Only cancellation ends this."""
        while True:
            await self.sync_once()
            logger.info(f"Waiting: {self.interval:g} seconds")
            await asyncio.sleep(self.interval)
