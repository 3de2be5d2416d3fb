# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    header_chain.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# header_chain.py
'''
The in-memory sparse header chain: one header per difficulty period plus
the last known tip height.

headers[i] is the header of the block at height i * PERIOD_SIZE. The list
never has gaps and only grows. The synchronizer is the only writer; HTTP
handlers read through read_difficulties(). The write lock is taken for a
single field update at a time, never across network I/O.
'''

import logging
from typing import List, Optional, Tuple

from diffwatch.block_header import BlockHeader, difficulty
from diffwatch.core_defs import PERIOD_SIZE, last_complete_period, period_height, round_down_to_period
from diffwatch.errors import ChainInvariantError
from diffwatch.rwlock import AsyncRWLock

logger = logging.getLogger(__name__)


class SparseHeaderChain:
    """
    Shared chain state guarded by an AsyncRWLock.
    Pass the same instance to the synchronizer and to the API server.
    """

    def __init__(self, lock: Optional[AsyncRWLock] = None):
        self.lock = lock or AsyncRWLock()
        self._tip_height = 0
        self._headers: List[BlockHeader] = []

    # --- read side ---

    async def tip_height(self) -> int:
        async with self.lock.reader():
            return self._tip_height

    async def length(self) -> int:
        async with self.lock.reader():
            return len(self._headers)

    async def snapshot(self) -> Tuple[int, Tuple[BlockHeader, ...]]:
        """Returns (tip_height, headers) as one consistent view."""
        async with self.lock.reader():
            return self._tip_height, tuple(self._headers)

    async def missing_range(self) -> Tuple[int, int]:
        """
        Period indices [first, last] that are complete on the remote chain
        but not stored yet. first > last means nothing is missing.
        """
        async with self.lock.reader():
            return len(self._headers), last_complete_period(self._tip_height)

    # --- write side (synchronizer only) ---

    async def set_tip_height(self, height: int) -> int:
        """
        Records a newly fetched tip and returns the previous one.
        A lower tip is ignored: lowering it could violate the coverage
        invariant of the stored headers.
        """
        async with self.lock.writer():
            old = self._tip_height
            if height < old:
                logger.warning(f"Remote tip went backwards ({old} -> {height}). Keeping {old}.")
                return old
            self._tip_height = height
            return old

    async def append(self, index: int, header: BlockHeader):
        """Appends the header of period `index`. Raises ChainInvariantError on a gap."""
        async with self.lock.writer():
            expected = len(self._headers)
            if index != expected:
                raise ChainInvariantError(f"Append at period {index}, expected period {expected}")
            if (expected + 1) * PERIOD_SIZE > round_down_to_period(self._tip_height):
                raise ChainInvariantError(
                    f"Period {index} (height {period_height(index)}) is not complete at tip {self._tip_height}"
                )
            self._headers.append(header)


async def read_difficulties(chain: SparseHeaderChain) -> List[float]:
    """Difficulty of every stored period header, ascending by height."""
    async with chain.lock.reader():
        return [difficulty(header) for header in chain._headers]
