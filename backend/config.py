"""
Configuration for the Paper Trader
Contains the token registry, API endpoints, and environment overrides.
"""

import os
from dataclasses import dataclass

# ============================================================================
# TOKEN REGISTRY
# ============================================================================

# Solana ecosystem basket - CoinGecko id -> display info
TOKENS = [
    {"id": "solana", "symbol": "SOL", "name": "Solana"},
    {"id": "bonk", "symbol": "BONK", "name": "Bonk"},
    {"id": "dogwifcoin", "symbol": "WIF", "name": "dogwifhat"},
    {"id": "jupiter-exchange-solana", "symbol": "JUP", "name": "Jupiter"},
    {"id": "popcat", "symbol": "POPCAT", "name": "Popcat"},
    {"id": "render-token", "symbol": "RENDER", "name": "Render"},
]

TOKEN_IDS = {t["id"]: t["symbol"] for t in TOKENS}
TOKEN_NAMES = {t["symbol"]: t["name"] for t in TOKENS}


def get_token_name(symbol: str) -> str:
    """Display name for a symbol, falls back to the symbol itself"""
    return TOKEN_NAMES.get(symbol.upper(), symbol.upper())


# ============================================================================
# API ENDPOINTS
# ============================================================================

class CoinGeckoAPI:
    REST = "https://api.coingecko.com/api/v3"

    SIMPLE_PRICE = f"{REST}/simple/price"

    # Quote currency requested from the provider
    VS_CURRENCY = "usd"


# ============================================================================
# ENVIRONMENT
# ============================================================================

@dataclass
class ServerSettings:
    variant: str = "autonomous"       # "manual" or "autonomous"
    starting_balance: float = 1000.0
    poll_interval_sec: float = 15.0
    usd_to_eur_rate: float = 0.92
    log_dir: str = "logs"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            variant=os.getenv("TRADER_VARIANT", cls.variant).lower().strip(),
            starting_balance=float(os.getenv("STARTING_BALANCE", cls.starting_balance)),
            poll_interval_sec=float(os.getenv("POLL_INTERVAL_SEC", cls.poll_interval_sec)),
            usd_to_eur_rate=float(os.getenv("USD_TO_EUR_RATE", cls.usd_to_eur_rate)),
            log_dir=os.getenv("LOG_DIR", cls.log_dir),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
        )


DEFAULT_SETTINGS = ServerSettings()
