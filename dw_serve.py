#!/usr/bin/env python3
# -----------------------------------------------------------------------------
# Project: DiffWatch v0.1
# File:    dw_serve.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# dw_serve.py
'''
Serves Bitcoin difficulty values per adjustment period.

A background task keeps a sparse header chain (one header every 2016 blocks)
in sync with a mempool-style explorer; the HTTP API answers from that cache.

Examples:
- Run the service:                  python dw_serve.py
- Other port and explorer:          python dw_serve.py --port 8080 --remote-host mempool.space
- Testnet:                          python dw_serve.py --network test
- One sync cycle, print and exit:   python dw_serve.py --once
'''

import argparse
import asyncio
import json
import logging
import os
import sys

from diffwatch.config import Config
from diffwatch.api_server import ApiServer, create_app
from diffwatch.blockchain_api import BlockchainApi
from diffwatch.blockchain_service import HeaderSynchronizer
from diffwatch.header_chain import SparseHeaderChain, read_difficulties

logger = logging.getLogger(__name__)


def setup_logging():
    log_dir = os.path.dirname(Config.LOG_FILE)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(Config.LOG_FILE, mode='a', encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Serve per-period Bitcoin difficulties from a locally synced header cache.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--host', type=str, help=f"Listen address (default: {Config.LISTEN_HOST}).")
    parser.add_argument('--port', type=int, help=f"Listen port (default: {Config.LISTEN_PORT}).")
    parser.add_argument('--network', type=str, choices=sorted(Config.NETWORK_API_PREFIXES), help="Override network selection.")
    parser.add_argument('--remote-host', type=str, help=f"Explorer host name (default: {Config.REMOTE_HOST}).")
    parser.add_argument('--interval', type=float, metavar='SECONDS', help=f"Seconds between sync cycles (default: {Config.SYNC_INTERVAL:g}).")
    parser.add_argument('--concurrency', type=int, metavar='N', help=f"Concurrent header fetches (default: {Config.FETCH_CONCURRENCY}).")
    parser.add_argument('--once', action='store_true', help="Run a single sync cycle, print the difficulties as JSON and exit.")
    return parser.parse_args(argv)


def apply_overrides(args: argparse.Namespace):
    """Command-line values take precedence over the environment."""
    if args.host:
        Config.LISTEN_HOST = args.host
    if args.port is not None:
        Config.LISTEN_PORT = args.port
    if args.network:
        Config.ACTIVE_NETWORK_NAME = args.network
    if args.remote_host:
        Config.REMOTE_HOST = args.remote_host
    if args.interval is not None:
        Config.SYNC_INTERVAL = args.interval
    if args.concurrency is not None:
        Config.FETCH_CONCURRENCY = args.concurrency
    Config.validate()


async def run_once() -> int:
    chain = SparseHeaderChain()
    async with BlockchainApi() as api:
        synchronizer = HeaderSynchronizer(api, chain, Config.retry_policy(), Config.FETCH_CONCURRENCY, Config.SYNC_INTERVAL)
        ok = await synchronizer.sync_once()
    print(json.dumps(await read_difficulties(chain)))
    return 0 if ok else 1


async def main_serve():
    logger.info(f"--- Starting DiffWatch (network: {Config.ACTIVE_NETWORK_NAME}, explorer: {Config.api_base_url()}) ---")

    chain = SparseHeaderChain()
    async with BlockchainApi() as api:
        synchronizer = HeaderSynchronizer(api, chain, Config.retry_policy(), Config.FETCH_CONCURRENCY, Config.SYNC_INTERVAL)
        server = ApiServer(create_app(chain, synchronizer), Config.LISTEN_HOST, Config.LISTEN_PORT)

        await server.start()
        sync_task = asyncio.create_task(synchronizer.run_forever())
        try:
            await sync_task
        finally:
            sync_task.cancel()
            await asyncio.gather(sync_task, return_exceptions=True)
            await server.stop()


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        apply_overrides(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging()

    if args.once:
        return asyncio.run(run_once())

    try:
        asyncio.run(main_serve())
    except KeyboardInterrupt:
        logger.info("--- DiffWatch stopped by user (Ctrl+C). ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
