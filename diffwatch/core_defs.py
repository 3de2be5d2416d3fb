# core_defs.py
'''
Common definitions and constants shared between the header codec,
the fetch pipeline and the synchronizer.
'''

# --- CHAIN CONSTANTS ---
PERIOD_SIZE = 2016  # blocks per difficulty adjustment period
HEADER_SIZE = 80  # bytes of a serialized block header
MAX_HEIGHT = 2**32 - 1
BLOCK_ID_HEX_LENGTH = 64

# Target of bits 0x1d00ffff, i.e. difficulty 1.
DIFFICULTY_1_TARGET = 0xFFFF << 208


def round_down_to_period(height: int) -> int:
    """Returns the highest period boundary that is <= height."""
    return (height // PERIOD_SIZE) * PERIOD_SIZE


def period_height(index: int) -> int:
    """Block height stored at period index `index`."""
    return index * PERIOD_SIZE


def last_complete_period(tip_height: int) -> int:
    """
    Index of the newest period whose header may be stored for this tip.
    A period is complete once the tip has reached the next boundary.
    Returns -1 if no period is complete yet.
    """
    return tip_height // PERIOD_SIZE - 1
