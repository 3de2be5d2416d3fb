# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    errors.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# errors.py
'''
Exception types raised by the remote client, the retry layer and the
header fetch pipeline.
'''

from typing import Optional


class DiffWatchError(Exception):
    """Base class for all DiffWatch errors."""


class RemoteError(DiffWatchError):
    """Transport failure or non-success response from the block explorer."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DecodeError(DiffWatchError):
    """Malformed payload: bad integer, bad hex or bad header layout."""


class RetryExhausted(DiffWatchError):
    """The retry budget was spent without a successful call."""

    def __init__(self, context: str, attempts: int, last_error: Exception):
        super().__init__(f"{context}: gave up after {attempts} attempt(s): {last_error}")
        self.context = context
        self.attempts = attempts
        self.last_error = last_error


class BatchFetchFailed(DiffWatchError):
    """A header could not be fetched during backfill."""

    def __init__(self, index: int, height: int):
        super().__init__(f"Header fetch failed at period {index} (height {height})")
        self.index = index
        self.height = height


class ChainInvariantError(DiffWatchError):
    """An update would leave a gap in the sparse chain or run past the tip."""
