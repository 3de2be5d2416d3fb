# diffwatch/config.py
import math
import os
from pathlib import Path
from dotenv import load_dotenv

from diffwatch.retry import RetryPolicy


class Config:
    """
    Central Configuration.
    Values are read once from the environment. A .env file in
    local_config/ (relative to the project root) is loaded first if present.
    """

    # --- PATH SETUP ---
    BASE_DIR = Path(__file__).resolve().parent.parent
    ENV_PATH = BASE_DIR / "local_config" / ".env"
    OUTPUT_DIR = BASE_DIR / "output"

    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)

    # --- Remote block explorer ---
    ACTIVE_NETWORK_NAME = os.getenv("NETWORK", "main").lower()

    NETWORK_API_PREFIXES = {
        "main": "",
        "test": "/testnet",
        "signet": "/signet",
    }

    if ACTIVE_NETWORK_NAME not in NETWORK_API_PREFIXES:
        raise ValueError(f"Invalid NETWORK '{ACTIVE_NETWORK_NAME}' specified. Use 'main', 'test' or 'signet'.")

    REMOTE_HOST = os.getenv("REMOTE_HOST", "mempool.sirion.io")
    REMOTE_SCHEME = os.getenv("REMOTE_SCHEME", "https").lower()
    TIMEOUT_CONNECT = float(os.getenv("TIMEOUT_CONNECT", 10.0))

    # --- Sync behaviour ---
    SYNC_INTERVAL = float(os.getenv("SYNC_INTERVAL", 600))
    FETCH_CONCURRENCY = int(os.getenv("FETCH_CONCURRENCY", 10))

    RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", 1.0))
    RETRY_MULTIPLIER = float(os.getenv("RETRY_MULTIPLIER", 2.0))
    RETRY_MAX_DELAY = float(os.getenv("RETRY_MAX_DELAY", 60.0))
    RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", 4))
    RETRY_MAX_ELAPSED = float(os.getenv("RETRY_MAX_ELAPSED", 300.0))

    # --- HTTP API ---
    LISTEN_HOST = os.getenv("LISTEN_HOST", "0.0.0.0")
    LISTEN_PORT = int(os.getenv("LISTEN_PORT", 3000))

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = str(OUTPUT_DIR / f"diffwatch_{ACTIVE_NETWORK_NAME}.log")

    @classmethod
    def api_base_url(cls) -> str:
        """Base URL of the explorer API for the active network, without trailing slash."""
        prefix = cls.NETWORK_API_PREFIXES[cls.ACTIVE_NETWORK_NAME]
        return f"{cls.REMOTE_SCHEME}://{cls.REMOTE_HOST}{prefix}"

    @classmethod
    def retry_policy(cls) -> RetryPolicy:
        return RetryPolicy(
            base_delay=cls.RETRY_BASE_DELAY,
            multiplier=cls.RETRY_MULTIPLIER,
            max_delay=cls.RETRY_MAX_DELAY,
            max_attempts=cls.RETRY_MAX_ATTEMPTS,
            max_elapsed=cls.RETRY_MAX_ELAPSED,
        )

    @classmethod
    def validate(cls):
        """Raises ValueError if a setting is out of range."""
        if cls.ACTIVE_NETWORK_NAME not in cls.NETWORK_API_PREFIXES:
            raise ValueError(f"Invalid NETWORK '{cls.ACTIVE_NETWORK_NAME}'.")
        if cls.REMOTE_SCHEME not in ("http", "https"):
            raise ValueError(f"Invalid REMOTE_SCHEME '{cls.REMOTE_SCHEME}'. Use 'http' or 'https'.")
        if not cls.REMOTE_HOST:
            raise ValueError("REMOTE_HOST must not be empty.")
        if not (cls.SYNC_INTERVAL > 0 and math.isfinite(cls.SYNC_INTERVAL)):
            raise ValueError(f"SYNC_INTERVAL must be a positive number of seconds, got {cls.SYNC_INTERVAL}.")
        if cls.FETCH_CONCURRENCY < 1:
            raise ValueError(f"FETCH_CONCURRENCY must be at least 1, got {cls.FETCH_CONCURRENCY}.")
        if cls.TIMEOUT_CONNECT <= 0:
            raise ValueError(f"TIMEOUT_CONNECT must be positive, got {cls.TIMEOUT_CONNECT}.")
        if not 0 < cls.LISTEN_PORT < 65536:
            raise ValueError(f"LISTEN_PORT out of range: {cls.LISTEN_PORT}.")
        # RetryPolicy checks its own fields
        cls.retry_policy()
