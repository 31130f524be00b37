# vault_arb/profit_calculator.py
"""
Profit Evaluator
Sizes the trade and prices both orderings against the vault:
- swap first: base -> shares on the AMM, then redeem shares at the vault
- mint first: supply base to the vault, then sell minted shares on the AMM
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional

from vault_arb.codec import to_amount_string
from vault_arb.config import (
    BORROW_LIQUIDITY_SHARE,
    BORROW_SAFETY_FACTOR,
    SLIPPAGE_FACTOR,
    WALLET_LIQUIDITY_SHARE,
    Settings,
)
from vault_arb.market_data import MarketSnapshot, TransientQueryError

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class CandidatePlan:
    """One execution ordering and what it is expected to return"""
    swap_first: bool
    trade_amount: float
    second_action_input: float
    result: float
    profit: float

    @property
    def label(self) -> str:
        return "swap-first" if self.swap_first else "mint-first"


@dataclass
class Evaluation:
    """Both candidates plus the winner"""
    trade_amount: float
    swap_first: CandidatePlan
    mint_first: CandidatePlan
    chosen: CandidatePlan
    failed_simulations: int = 0


# =============================================================================
# EVALUATOR
# =============================================================================

class ProfitEvaluator:
    """
    Prices the two orderings with one swap simulation each

    All amounts are floats in raw token units; contract-bound values are
    truncated to integer strings.
    """

    def __init__(self, fetcher, settings: Settings, slippage_factor: float = SLIPPAGE_FACTOR):
        self.fetcher = fetcher
        self.settings = settings
        self.slippage_factor = slippage_factor
        self._failed_simulations = 0

    # -----------------------------
    # Sizing
    # -----------------------------

    def size_trade(self, snapshot: MarketSnapshot) -> float:
        if self.settings.is_borrow:
            liquidity_cap = snapshot.base_token_amount * BORROW_LIQUIDITY_SHARE
            borrow_cap = math.floor(
                (snapshot.max_borrow_usd * BORROW_SAFETY_FACTOR / snapshot.price)
                * 10 ** self.settings.decimals
            )
            return min(liquidity_cap, borrow_cap)

        percent_of_pool = snapshot.base_token_amount * WALLET_LIQUIDITY_SHARE
        return min(snapshot.wallet_balance, percent_of_pool)

    def profit_value(self, result: float, spent: float, snapshot: MarketSnapshot) -> float:
        """Borrow variant reports in USD via oracle price, wallet variant in raw units"""
        if self.settings.is_borrow:
            return (result - spent) * snapshot.price / 10 ** self.settings.decimals
        return result - spent

    def _simulate(self, token, amount: float) -> Optional[float]:
        """Simulated return after slippage; None counts as a failed query"""
        if amount <= 0:
            return 0.0
        returned = self.fetcher.simulate_swap(token, amount)
        if returned is None:
            self._failed_simulations += 1
            return None
        return returned * self.slippage_factor

    # -----------------------------
    # Candidates
    # -----------------------------

    def swap_first(self, snapshot: MarketSnapshot, trade_amount: float) -> CandidatePlan:
        shares = self._simulate(self.settings.base_token, trade_amount) or 0.0
        result = float(to_amount_string(
            shares * snapshot.vault_total_assets / snapshot.x_token_supply
        ))
        return CandidatePlan(
            swap_first=True,
            trade_amount=trade_amount,
            second_action_input=shares,
            result=result,
            profit=self.profit_value(result, trade_amount, snapshot),
        )

    def mint_first(self, snapshot: MarketSnapshot, trade_amount: float) -> CandidatePlan:
        amount = trade_amount
        if snapshot.supply_cap < amount:
            amount = snapshot.supply_cap if snapshot.supply_cap > 0 else 0.0

        minted = amount * snapshot.x_token_supply / snapshot.vault_total_assets
        result = self._simulate(self.settings.x_token, minted) or 0.0
        return CandidatePlan(
            swap_first=False,
            trade_amount=amount,
            second_action_input=minted,
            result=result,
            profit=self.profit_value(result, amount, snapshot),
        )

    def evaluate(self, snapshot: MarketSnapshot) -> Evaluation:
        """Run both simulations and pick the more profitable ordering"""
        self._failed_simulations = 0
        trade_amount = self.size_trade(snapshot)

        try:
            swap_plan = self.swap_first(snapshot, trade_amount)
            mint_plan = self.mint_first(snapshot, trade_amount)
        except TransientQueryError as e:
            e.failed_simulations = self._failed_simulations
            raise

        # ties go to mint-first
        chosen = swap_plan if swap_plan.profit > mint_plan.profit else mint_plan

        logger.debug(
            f"trade={to_amount_string(trade_amount)} "
            f"swap-first={swap_plan.profit:.6f} mint-first={mint_plan.profit:.6f} "
            f"-> {chosen.label}"
        )

        return Evaluation(
            trade_amount=trade_amount,
            swap_first=swap_plan,
            mint_first=mint_plan,
            chosen=chosen,
            failed_simulations=self._failed_simulations,
        )

    def is_executable(self, plan: CandidatePlan) -> bool:
        """Threshold gate; empty legs never pass"""
        if plan.trade_amount <= 0 or plan.second_action_input <= 0:
            return False
        return plan.profit >= self.settings.minimum_profit
