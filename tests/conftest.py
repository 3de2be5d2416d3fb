# conftest.py
'''
Shared fakes: a scripted in-memory block explorer with deterministic
headers keyed by height, plus helpers to build raw headers.
'''

import asyncio
import struct
from collections import Counter

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from bsv.hash import hash256

from diffwatch.core_defs import PERIOD_SIZE
from diffwatch.errors import RemoteError
from diffwatch.retry import RetryPolicy

# Block 0 of mainnet.
GENESIS_HEADER_HEX = (
    "01000000"
    "0000000000000000000000000000000000000000000000000000000000000000"
    "3ba3edfd7a7b12b27ac72c3e67768f617fc81bc3888a51323a9fb8aa4b1e5e4a"
    "29ab5f49"
    "ffff001d"
    "1dac2b7c"
)
GENESIS_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"

ALWAYS = -1


def bits_for_height(height: int) -> int:
    """A distinct, valid compact target for every period."""
    return 0x1D00FFFF - (height // PERIOD_SIZE)


def make_raw_header(height: int) -> bytes:
    return struct.pack(
        "<i32s32sIII",
        1,
        b"\x00" * 32,
        height.to_bytes(32, "little"),
        1231006505 + height * 600,
        bits_for_height(height),
        height,
    )


def block_id_for(raw: bytes) -> str:
    return hash256(raw)[::-1].hex()


class FakeChainApi:
    """
    Stands in for BlockchainApi. Failures are scripted as remaining counts
    (ALWAYS for never-ending failure), delays per height in seconds.
    """

    def __init__(self, tip_height: int = 0):
        self.tip_height = tip_height
        self.calls = Counter()
        self.header_heights = []
        self.block_heights = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.delays = {}
        self.tip_failures = 0
        self.height_failures = {}
        self.corrupt_heights = set()

    @staticmethod
    def _consume(remaining: int) -> int:
        return remaining if remaining == ALWAYS else remaining - 1

    async def fetch_tip_height(self) -> int:
        self.calls["tip"] += 1
        if self.tip_failures:
            self.tip_failures = self._consume(self.tip_failures)
            raise RemoteError("tip unavailable", status=503)
        return self.tip_height

    async def fetch_block_id(self, height: int) -> str:
        self.calls["block_id"] += 1
        self.header_heights.append(height)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(height, 0))
            if self.height_failures.get(height):
                self.height_failures[height] = self._consume(self.height_failures[height])
                raise RemoteError(f"no block id for {height}", status=500)
            block_id = block_id_for(make_raw_header(height))
            self.block_heights[block_id] = height
            return block_id
        finally:
            self.in_flight -= 1

    async def fetch_header_bytes(self, block_id: str) -> bytes:
        self.calls["header"] += 1
        height = self.block_heights[block_id]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if height in self.corrupt_heights:
                return make_raw_header(height + 1)
            return make_raw_header(height)
        finally:
            self.in_flight -= 1


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(base_delay=0.0, multiplier=2.0, max_delay=0.0, max_attempts=3, max_elapsed=5.0)


@pytest.fixture
def fake_api() -> FakeChainApi:
    return FakeChainApi()


class ExplorerState:
    """Scripted behaviour of the HTTP fake explorer."""

    def __init__(self, tip_height: int = 0):
        self.tip_height = tip_height
        self.tip_body = None
        self.status = 200
        self.header_body = None
        self.delay = 0.0
        self.requests = []


def make_explorer_app(state: ExplorerState) -> web.Application:
    """aiohttp app serving the three mempool-style endpoints from deterministic headers."""
    headers_by_id = {}

    async def tip_height(request):
        state.requests.append(request.path)
        await asyncio.sleep(state.delay)
        if state.status != 200:
            return web.Response(status=state.status, text="Internal Server Error")
        body = state.tip_body if state.tip_body is not None else str(state.tip_height)
        return web.Response(text=body)

    async def block_height(request):
        state.requests.append(request.path)
        height = int(request.match_info["height"])
        if height > state.tip_height:
            return web.Response(status=404, text="Block not found")
        raw = make_raw_header(height)
        block_id = block_id_for(raw)
        headers_by_id[block_id] = raw
        return web.Response(text=block_id)

    async def block_header(request):
        state.requests.append(request.path)
        raw = headers_by_id.get(request.match_info["block_id"])
        if raw is None:
            return web.Response(status=404, text="Block not found")
        body = state.header_body if state.header_body is not None else raw.hex()
        return web.Response(text=body)

    app = web.Application()
    app.add_routes(
        [
            web.get("/api/blocks/tip/height", tip_height),
            web.get("/api/block-height/{height}", block_height),
            web.get("/api/block/{block_id}/header", block_header),
        ]
    )
    return app


@pytest_asyncio.fixture
async def explorer():
    state = ExplorerState()
    server = TestServer(make_explorer_app(state))
    await server.start_server()
    try:
        yield str(server.make_url("/")).rstrip("/"), state
    finally:
        await server.close()
