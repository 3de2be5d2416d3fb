"""Tests for the explorer client against a local fake explorer."""

import pytest

from conftest import block_id_for, make_raw_header
from diffwatch.blockchain_api import BlockchainApi
from diffwatch.config import Config
from diffwatch.errors import DecodeError, RemoteError


@pytest.mark.asyncio
async def test_fetch_tip_height(explorer):
    base_url, state = explorer
    state.tip_height = 881_000
    async with BlockchainApi(base_url) as api:
        assert await api.fetch_tip_height() == 881_000
    assert state.requests == ["/api/blocks/tip/height"]


@pytest.mark.asyncio
async def test_fetch_block_id_and_header(explorer):
    base_url, state = explorer
    state.tip_height = 4032
    async with BlockchainApi(base_url) as api:
        block_id = await api.fetch_block_id(2016)
        raw = await api.fetch_header_bytes(block_id)

    assert block_id == block_id_for(make_raw_header(2016))
    assert raw == make_raw_header(2016)
    assert state.requests == ["/api/block-height/2016", f"/api/block/{block_id}/header"]


@pytest.mark.asyncio
async def test_non_200_raises_remote_error(explorer):
    base_url, state = explorer
    state.status = 503
    async with BlockchainApi(base_url) as api:
        with pytest.raises(RemoteError) as excinfo:
            await api.fetch_tip_height()
    assert excinfo.value.status == 503


@pytest.mark.asyncio
async def test_unknown_height_raises_remote_error(explorer):
    base_url, state = explorer
    state.tip_height = 10
    async with BlockchainApi(base_url) as api:
        with pytest.raises(RemoteError) as excinfo:
            await api.fetch_block_id(2016)
    assert excinfo.value.status == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["not-a-number", "", "-5", str(2**32)])
async def test_bad_tip_body_raises_decode_error(explorer, body):
    base_url, state = explorer
    state.tip_body = body
    async with BlockchainApi(base_url) as api:
        with pytest.raises(DecodeError):
            await api.fetch_tip_height()


@pytest.mark.asyncio
async def test_bad_header_hex_raises_decode_error(explorer):
    base_url, state = explorer
    state.tip_height = 100
    state.header_body = "zz" * 80
    async with BlockchainApi(base_url) as api:
        block_id = await api.fetch_block_id(0)
        with pytest.raises(DecodeError):
            await api.fetch_header_bytes(block_id)


@pytest.mark.asyncio
async def test_timeout_raises_remote_error(explorer):
    base_url, state = explorer
    state.delay = 1.0
    async with BlockchainApi(base_url, timeout=0.1) as api:
        with pytest.raises(RemoteError, match="timed out"):
            await api.fetch_tip_height()


@pytest.mark.asyncio
async def test_connection_refused_raises_remote_error():
    async with BlockchainApi("http://127.0.0.1:1") as api:
        with pytest.raises(RemoteError):
            await api.fetch_tip_height()


def test_base_url_follows_network(monkeypatch):
    monkeypatch.setattr(Config, "REMOTE_SCHEME", "https")
    monkeypatch.setattr(Config, "REMOTE_HOST", "mempool.example")

    monkeypatch.setattr(Config, "ACTIVE_NETWORK_NAME", "main")
    assert Config.api_base_url() == "https://mempool.example"

    monkeypatch.setattr(Config, "ACTIVE_NETWORK_NAME", "test")
    assert BlockchainApi().base_url == "https://mempool.example/testnet"
