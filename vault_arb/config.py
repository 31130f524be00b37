# vault_arb/config.py
"""
Vault Arbitrage Configuration
Environment is loaded per invocation key: .env.<key> first, then .env
"""

import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# -----------------------------
# Variants
# -----------------------------
VARIANT_BORROW = "borrow"   # collateral borrowed from the vault (4 messages)
VARIANT_WALLET = "wallet"   # collateral taken from wallet balance (2 messages)
VARIANTS = (VARIANT_BORROW, VARIANT_WALLET)

# -----------------------------
# Timing (epoch ms)
# -----------------------------
COOLDOWN_MS = 7_200_000         # 2h pause after an on-chain revert
REPORT_INTERVAL_MS = 7_200_000  # 2h between statistics reports

# -----------------------------
# Sizing & Slippage
# -----------------------------
SLIPPAGE_FACTOR = 0.99999
BORROW_LIQUIDITY_SHARE = 0.05   # max share of pool base reserve per trade
WALLET_LIQUIDITY_SHARE = 0.01
BORROW_SAFETY_FACTOR = 0.98     # stay below max borrow value
QUERY_LENGTH_CAP = 100

# -----------------------------
# Gas
# -----------------------------
DEFAULT_GAS_LIMITS = {
    VARIANT_BORROW: 4_000_000,
    VARIANT_WALLET: 2_000_000,
}
DEFAULT_FEE_DENOM = "uscrt"

# -----------------------------
# Transport
# -----------------------------
SOFT_QUERY_ERROR = "invalid json response"
TX_LOG_LABEL = "xToken"


@dataclass(frozen=True)
class ContractRef:
    """Address + code hash pair of a deployed contract"""
    address: str
    code_hash: str


@dataclass(frozen=True)
class Settings:
    """Everything one invocation needs, built once and passed around"""
    key: str
    variant: str

    node_url: str
    chain_id: str
    mnemonic: Optional[str]
    wallet_address: Optional[str]

    money_market: ContractRef
    amm_pair: ContractRef
    base_token: ContractRef
    x_token: ContractRef
    batch_query: ContractRef
    oracle: Optional[ContractRef]
    oracle_key: Optional[str]
    permit: Optional[dict]
    viewing_key: Optional[str]

    decimals: int
    minimum_profit: float

    gas_limit: int
    fee_denom: str

    state_dir: Path
    tx_log_path: Path
    log_dir: Path
    log_timezone: str
    report_window_seconds: float = 10.0
    report_startup_seconds: float = 15.0
    dry_run: bool = False

    @property
    def is_borrow(self) -> bool:
        return self.variant == VARIANT_BORROW


# -----------------------------
# Loading
# -----------------------------

def load_environment(key: str, base_dir: Path = Path(".")) -> None:
    """Load .env.<key> then .env; earlier files win"""
    load_dotenv(base_dir / f".env.{key}")
    load_dotenv(base_dir / ".env")


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} not set in .env")
    return value


def _contract(prefix: str, address_name: str = None, hash_name: str = None) -> ContractRef:
    return ContractRef(
        address=_require(address_name or f"{prefix}_ADDRESS"),
        code_hash=_require(hash_name or f"{prefix}_CODE_HASH"),
    )


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(key: str) -> Settings:
    """
    Build Settings from the current environment
    Raises RuntimeError naming the first missing variable
    """
    variant = os.getenv("BOT_VARIANT", VARIANT_BORROW).strip().lower()
    if variant not in VARIANTS:
        raise RuntimeError(f"BOT_VARIANT must be one of {VARIANTS}, got {variant!r}")

    oracle = oracle_key = permit = viewing_key = None
    wallet_address = os.getenv("WALLET_ADDRESS")

    if variant == VARIANT_BORROW:
        oracle = _contract("ORACLE")
        oracle_key = _require("ORACLE_KEY")
        try:
            permit = json.loads(_require("SHADE_MASTER_PERMIT"))
        except json.JSONDecodeError as e:
            raise RuntimeError(f"SHADE_MASTER_PERMIT is not valid JSON: {e}") from e
    else:
        viewing_key = _require("VIEWING_KEY")
        wallet_address = _require("WALLET_ADDRESS")

    try:
        decimals = int(_require("DECIMALS"))
        minimum_profit = float(_require("MINIMUM_PROFIT"))
    except ValueError as e:
        raise RuntimeError(f"DECIMALS / MINIMUM_PROFIT must be numeric: {e}") from e

    gas_limit = os.getenv("GAS_LIMIT")

    return Settings(
        key=key,
        variant=variant,
        node_url=_require("NODE"),
        chain_id=_require("CHAIN_ID"),
        mnemonic=os.getenv("WALLET_MNEMONIC"),
        wallet_address=wallet_address,
        money_market=_contract("MONEY_MARKET"),
        amm_pair=_contract("SHADESWAP"),
        base_token=_contract("BASE_TOKEN"),
        x_token=_contract("XTOKEN"),
        batch_query=_contract(
            "BATCH_QUERY",
            address_name="BATCH_QUERY_CONTRACT",
            hash_name="BATCH_QUERY_HASH",
        ),
        oracle=oracle,
        oracle_key=oracle_key,
        permit=permit,
        viewing_key=viewing_key,
        decimals=decimals,
        minimum_profit=minimum_profit,
        gas_limit=int(gas_limit) if gas_limit else DEFAULT_GAS_LIMITS[variant],
        fee_denom=os.getenv("FEE_DENOM", DEFAULT_FEE_DENOM),
        state_dir=Path(os.getenv("STATE_DIR", ".")),
        tx_log_path=Path(os.getenv("TX_LOG_PATH", "../transactions.txt")),
        log_dir=Path(os.getenv("LOG_DIR", "logs")),
        log_timezone=os.getenv("LOG_TIMEZONE", "America/Chicago"),
        report_window_seconds=float(os.getenv("REPORT_WINDOW_SECONDS", "10")),
        report_startup_seconds=float(os.getenv("REPORT_STARTUP_SECONDS", "15")),
        dry_run=_flag("DRY_RUN"),
    )
