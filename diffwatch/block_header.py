# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    block_header.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# block_header.py
'''
Decoding of the 80-byte Bitcoin block header and the difficulty derived
from its compact target ("bits") field.

Layout (all integers Little-Endian):
    version(4) | prev_block(32) | merkle_root(32) | time(4) | bits(4) | nonce(4)
'''

import struct
from dataclasses import dataclass

from bsv.hash import hash256

from diffwatch.core_defs import HEADER_SIZE, DIFFICULTY_1_TARGET
from diffwatch.errors import DecodeError

_HEADER_STRUCT = struct.Struct("<i32s32sIII")


@dataclass(frozen=True)
class BlockHeader:
    version: int
    prev_blockhash: str  # display (Big-Endian) hex
    merkle_root: str  # display (Big-Endian) hex
    time: int
    bits: int
    nonce: int
    raw: bytes

    @property
    def block_hash(self) -> str:
        """Double SHA256 of the raw header, reversed into display order."""
        return hash256(self.raw)[::-1].hex()

    @property
    def target(self) -> int:
        return bits_to_target(self.bits)

    @property
    def difficulty(self) -> float:
        return difficulty(self)


def bits_to_target(bits: int) -> int:
    """
    Converts the compact bits field into the target value.
    Raises DecodeError for a negative (sign bit set) target.
    """
    exponent = bits >> 24
    mantissa = bits & 0x007FFFFF
    if bits & 0x00800000 and mantissa:
        raise DecodeError(f"Negative compact target: bits={bits:#010x}")
    if exponent <= 3:
        return mantissa >> (8 * (3 - exponent))
    return mantissa << (8 * (exponent - 3))


def decode_header(data: bytes) -> BlockHeader:
    """Parses a serialized block header. Raises DecodeError on a bad layout."""
    if len(data) != HEADER_SIZE:
        raise DecodeError(f"Block header must be {HEADER_SIZE} bytes, got {len(data)}")

    version, prev_block, merkle_root, time, bits, nonce = _HEADER_STRUCT.unpack(data)

    if bits_to_target(bits) == 0:
        raise DecodeError(f"Zero target in header: bits={bits:#010x}")

    return BlockHeader(
        version=version,
        prev_blockhash=prev_block[::-1].hex(),
        merkle_root=merkle_root[::-1].hex(),
        time=time,
        bits=bits,
        nonce=nonce,
        raw=bytes(data),
    )


def difficulty(header: BlockHeader) -> float:
    """Difficulty relative to the difficulty-1 target (bits 0x1d00ffff)."""
    return DIFFICULTY_1_TARGET / bits_to_target(header.bits)
