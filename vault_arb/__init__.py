# vault_arb/__init__.py
"""
Vault / AMM Arbitrage Bot
Two-leg arbitrage between a lending vault's share token and its AMM pair

Modules:
- config: Environment loading and Settings
- codec: base64 JSON wire helpers
- state: Persistent per-key statistics
- market_data: Batched on-chain queries and swap simulation
- profit_calculator: Trade sizing and path selection
- executor: Message sequence building and broadcast
- runner: One-tick orchestration
- client: secret-sdk chain adapter
- main: Entry point
"""

__version__ = "1.0.0"

from vault_arb.config import (
    VARIANT_BORROW,
    VARIANT_WALLET,
    ContractRef,
    Settings,
)
from vault_arb.state import StateStore, StrategyState
from vault_arb.runner import RunLoop, RunOutcome

__all__ = [
    "VARIANT_BORROW",
    "VARIANT_WALLET",
    "ContractRef",
    "Settings",
    "StateStore",
    "StrategyState",
    "RunLoop",
    "RunOutcome",
]
