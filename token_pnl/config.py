import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# === Well-known mints & units ===
WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
LAMPORTS_PER_SOL = 1_000_000_000

# === Endpoints ===
HELIUS_RPC_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_API_URL = "https://api.helius.xyz/v0"
JUPITER_PRICE_URL = "https://api.jup.ag/price/v2"

# Helius caps /v0/transactions at 100 signatures per call
MAX_TRANSACTION_BATCH = 100


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    helius_api_key: str = ""
    helius_rpc_url: str = ""
    helius_api_url: str = HELIUS_API_URL
    jupiter_price_url: str = JUPITER_PRICE_URL

    signature_page_size: int = 500
    transaction_batch_size: int = MAX_TRANSACTION_BATCH
    signature_max_retries: int = 3
    signature_retry_delay: float = 1.0
    max_pages: Optional[int] = None

    helius_rps: int = 10
    jupiter_rps: int = 1
    rate_limit_period: float = 1.0

    http_timeout: float = 30.0
    http_max_retries: int = 5
    http_backoff_base: float = 2.0

    pnl_timeout: float = 300.0
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.helius_rpc_url:
            object.__setattr__(self, "helius_rpc_url", HELIUS_RPC_URL_TEMPLATE.format(key=self.helius_api_key))
        if not 0 < self.transaction_batch_size <= MAX_TRANSACTION_BATCH:
            object.__setattr__(self, "transaction_batch_size", MAX_TRANSACTION_BATCH)
        if self.signature_max_retries < 1:
            object.__setattr__(self, "signature_max_retries", 1)

    @classmethod
    def from_env(cls) -> "Settings":
        max_pages = _env_int("MAX_SIGNATURE_PAGES", 0)
        return cls(
            helius_api_key=os.getenv("HELIUS_API_KEY", ""),
            helius_rpc_url=os.getenv("HELIUS_RPC_URL", ""),
            helius_api_url=os.getenv("HELIUS_API_URL", HELIUS_API_URL),
            jupiter_price_url=os.getenv("JUPITER_PRICE_URL", JUPITER_PRICE_URL),
            signature_page_size=_env_int("SIGNATURE_PAGE_SIZE", 500),
            transaction_batch_size=_env_int("TRANSACTION_BATCH_SIZE", MAX_TRANSACTION_BATCH),
            signature_max_retries=_env_int("SIGNATURE_MAX_RETRIES", 3),
            signature_retry_delay=_env_float("SIGNATURE_RETRY_DELAY", 1.0),
            max_pages=max_pages or None,
            helius_rps=_env_int("HELIUS_RPS", 10),
            jupiter_rps=_env_int("JUPITER_RPS", 1),
            rate_limit_period=_env_float("RATE_LIMIT_PERIOD", 1.0),
            http_timeout=_env_float("HTTP_TIMEOUT", 30.0),
            http_max_retries=_env_int("HTTP_MAX_RETRIES", 5),
            http_backoff_base=_env_float("HTTP_BACKOFF_BASE", 2.0),
            pnl_timeout=_env_float("PNL_TIMEOUT", 300.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Settings loaded from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# === Utility Functions ===
_BASE58_CHARS = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


def is_valid_solana_address(address: str) -> bool:
    """Validate if an address is a proper Solana address format."""
    if not address or not isinstance(address, str):
        return False
    # base58 encoded 32-byte keys are 32-44 characters long
    if len(address) < 32 or len(address) > 44:
        return False
    return all(c in _BASE58_CHARS for c in address)
