# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    api_server.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# api_server.py
'''
HTTP API over the cached header chain.

    GET /difficulties  JSON array of floats, one per stored period, ascending height
    GET /status        tip height, stored periods and synchronizer bookkeeping

Handlers only read the chain. They never wait on the network and never
trigger a sync.
'''

import logging
from typing import Optional

from aiohttp import web

from diffwatch.blockchain_service import HeaderSynchronizer
from diffwatch.header_chain import SparseHeaderChain, read_difficulties

logger = logging.getLogger(__name__)

CHAIN_KEY = web.AppKey("chain", SparseHeaderChain)
SYNCHRONIZER_KEY = web.AppKey("synchronizer", HeaderSynchronizer)


async def _handle_difficulties(request: web.Request) -> web.Response:
    difficulties = await read_difficulties(request.app[CHAIN_KEY])
    return web.json_response(difficulties)


async def _handle_status(request: web.Request) -> web.Response:
    tip_height, headers = await request.app[CHAIN_KEY].snapshot()
    status = {
        "tip_height": tip_height,
        "periods": len(headers),
        "state": None,
        "cycles": 0,
        "last_success": None,
        "last_error": None,
    }

    synchronizer = request.app.get(SYNCHRONIZER_KEY)
    if synchronizer is not None:
        status.update(
            state=synchronizer.state.value,
            cycles=synchronizer.cycles,
            last_success=synchronizer.last_success.isoformat() if synchronizer.last_success else None,
            last_error=synchronizer.last_error,
        )
    return web.json_response(status)


def create_app(chain: SparseHeaderChain, synchronizer: Optional[HeaderSynchronizer] = None) -> web.Application:
    app = web.Application()
    app[CHAIN_KEY] = chain
    if synchronizer is not None:
        app[SYNCHRONIZER_KEY] = synchronizer
    app.add_routes(
        [
            web.get("/difficulties", _handle_difficulties),
            web.get("/status", _handle_status),
        ]
    )
    return app


class ApiServer:
    """Runs the aiohttp application on host:port in the current event loop."""

    def __init__(self, app: web.Application, host: str = "0.0.0.0", port: int = 3000):
        self.app = app
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None

    async def start(self):
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"API server listening on {self.host}:{self.port}")

    async def stop(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
