# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    header_fetcher.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# header_fetcher.py
'''
Bounded concurrent backfill of period headers.

A fixed pool of workers pulls period indices from a queue. Each worker
resolves height -> block id -> header bytes -> BlockHeader under one retry
budget and reports (index, header, error) to a collector. The collector
buffers out-of-order completions and releases headers strictly in
ascending index order, so the chain can append them without gaps.
'''

import asyncio
import logging
from typing import AsyncIterator, Dict, Optional, Tuple

from diffwatch.block_header import BlockHeader, decode_header
from diffwatch.blockchain_api import BlockchainApi
from diffwatch.core_defs import period_height
from diffwatch.errors import BatchFetchFailed, DecodeError, RetryExhausted
from diffwatch.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)

_Result = Tuple[int, Optional[BlockHeader], Optional[BaseException]]


class HeaderFetcher:

    def __init__(self, api: BlockchainApi, policy: RetryPolicy, concurrency: int = 10):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.api = api
        self.policy = policy
        self.concurrency = concurrency

    async def fetch_header(self, height: int) -> BlockHeader:
        """Two dependent requests: block id for the height, then its header."""
        block_id = await self.api.fetch_block_id(height)
        header = decode_header(await self.api.fetch_header_bytes(block_id))
        if header.block_hash != block_id:
            raise DecodeError(f"Header hash {header.block_hash} does not match block id {block_id} at height {height}")
        logger.debug(f"Got header: height {height}")
        return header

    async def fetch_header_with_retry(self, height: int) -> BlockHeader:
        return await retry_async(
            lambda: self.fetch_header(height),
            self.policy,
            context=f"header at height {height}",
        )

    async def fetch_range(self, first: int, last: int) -> AsyncIterator[Tuple[int, BlockHeader]]:
        """
        Yields (index, header) for every period index in [first, last], in order.

        Raises:
            BatchFetchFailed: the retries for one index were exhausted. All
                indices below it have been yielded before the raise.
        """
        if first > last:
            return

        pending: asyncio.Queue = asyncio.Queue()
        for index in range(first, last + 1):
            pending.put_nowait(index)
        results: asyncio.Queue = asyncio.Queue()
        # lowest index known to have failed; workers do not start anything above it
        failed_at = [last + 1]

        async def worker():
            while True:
                try:
                    index = pending.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if index > failed_at[0]:
                    continue
                try:
                    header = await self.fetch_header_with_retry(period_height(index))
                except Exception as e:
                    failed_at[0] = min(failed_at[0], index)
                    await results.put((index, None, e))
                else:
                    await results.put((index, header, None))

        workers = [asyncio.create_task(worker()) for _ in range(min(self.concurrency, last - first + 1))]
        buffered: Dict[int, _Result] = {}
        next_index = first
        try:
            while next_index <= last:
                index, header, error = await results.get()
                buffered[index] = (index, header, error)

                while next_index in buffered:
                    _, header, error = buffered.pop(next_index)
                    if error is not None:
                        if isinstance(error, RetryExhausted):
                            raise BatchFetchFailed(next_index, period_height(next_index)) from error
                        raise error
                    yield next_index, header
                    next_index += 1
        finally:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
