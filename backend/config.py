"""Runtime configuration loaded from the environment and backend/.env."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

DEFAULT_PROGRAM_ID = "4jSY2cSGsnft5hEUMq3abVKTnoo9bBZJC4Zxx5NYYZ4p"

NETWORK_RPC_URLS = {
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int, min_value: int, max_value: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw not in (None, "") else default
    except Exception:
        value = default
    return max(min_value, min(max_value, value))


def _env_float(name: str, default: float, min_value: float, max_value: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw not in (None, "") else default
    except Exception:
        value = default
    return max(min_value, min(max_value, value))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


class PostRatingThresholds(BaseModel):
    """Minimum like counts for each post tier."""

    bronze: int = 5
    silver: int = 20
    gold: int = 50
    platinum: int = 150
    diamond: int = 500
    ace: int = 1000
    conqueror: int = 1_000_000


class CreditTiers(BaseModel):
    """Credit-rating tier floors, in rating units (not hundredths)."""

    top_contributor: float = 4.20
    valuable_contributor: float = 0.69
    average_contributor: float = 0.01
    # Below this is spam_user.
    low_value: float = -0.03


class BlocksConfig(BaseModel):
    network: str = "devnet"
    rpc_url: str = NETWORK_RPC_URLS["devnet"]
    program_id: str = DEFAULT_PROGRAM_ID
    rpc_timeout_sec: float = 30.0

    fetch_batch_size: int = 100
    fetch_base_delay_sec: float = 0.2
    fetch_max_delay_sec: float = 2.0
    fetch_max_retries: int = 4
    scan_max_age_sec: float = 30.0

    kill_zone_window_sec: int = 24 * 60 * 60
    kill_zone_min_likes: int = 1
    ucr_min: float = -0.10
    ucr_max: float = 5.0
    max_communities_per_creator: int = 3
    community_min_credit: float = 2.5

    post_rating: PostRatingThresholds = PostRatingThresholds()
    credit_tiers: CreditTiers = CreditTiers()

    pinata_jwt: Optional[str] = None
    pinata_api_url: str = "https://api.pinata.cloud"
    pinata_gateway: str = "https://gateway.pinata.cloud/ipfs/"
    max_upload_bytes: int = 5 * 1024 * 1024

    database_url: str = "sqlite:///./blocks.db"
    session_secret_key: str = "change-me-in-production"


def load_config() -> BlocksConfig:
    network = _env("SOLANA_NETWORK", "devnet")
    if network not in NETWORK_RPC_URLS:
        network = "devnet"
    return BlocksConfig(
        network=network,
        rpc_url=_env("SOLANA_RPC_URL", NETWORK_RPC_URLS[network]),
        program_id=_env("BLOCKS_PROGRAM_ID", DEFAULT_PROGRAM_ID),
        rpc_timeout_sec=_env_float("RPC_TIMEOUT_SEC", 30.0, 1.0, 120.0),
        # getMultipleAccounts accepts at most 100 keys per call.
        fetch_batch_size=_env_int("FETCH_BATCH_SIZE", 100, 1, 100),
        fetch_base_delay_sec=_env_float("FETCH_BASE_DELAY_SEC", 0.2, 0.0, 5.0),
        fetch_max_delay_sec=_env_float("FETCH_MAX_DELAY_SEC", 2.0, 0.0, 60.0),
        fetch_max_retries=_env_int("FETCH_MAX_RETRIES", 4, 0, 10),
        scan_max_age_sec=_env_float("SCAN_MAX_AGE_SEC", 30.0, 0.0, 3600.0),
        kill_zone_window_sec=_env_int("KILL_ZONE_WINDOW_SEC", 24 * 60 * 60, 60, 30 * 24 * 60 * 60),
        kill_zone_min_likes=_env_int("KILL_ZONE_MIN_LIKES", 1, 0, 1000),
        ucr_min=_env_float("UCR_MIN", -0.10, -100.0, 0.0),
        ucr_max=_env_float("UCR_MAX", 5.0, 0.0, 100.0),
        max_communities_per_creator=_env_int("MAX_COMMUNITIES_PER_CREATOR", 3, 1, 100),
        community_min_credit=_env_float("COMMUNITY_MIN_CREDIT", 2.5, -1.0, 100.0),
        pinata_jwt=_env("PINATA_JWT"),
        pinata_api_url=_env("PINATA_API_URL", "https://api.pinata.cloud"),
        pinata_gateway=_env("PINATA_GATEWAY", "https://gateway.pinata.cloud/ipfs/"),
        database_url=_env("DATABASE_URL", "sqlite:///./blocks.db"),
        session_secret_key=_env("SESSION_SECRET_KEY", "change-me-in-production"),
    )


def telemetry_enabled() -> bool:
    return _env_bool("LEDGER_TELEMETRY_ENABLED", True)


settings = load_config()
