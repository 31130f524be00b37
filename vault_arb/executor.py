# vault_arb/executor.py
"""
Execution Planner
Turns the winning plan into an ordered contract-call list and broadcasts it
as one transaction. Borrow variant: borrow -> leg1 -> leg2 -> repay.
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from vault_arb.codec import encode_json_to_b64, to_amount_string
from vault_arb.config import TX_LOG_LABEL, ContractRef, Settings
from vault_arb.profit_calculator import CandidatePlan

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class ExecutionStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"      # broadcast went through, messages reverted
    SKIPPED = "skipped"    # dry run


@dataclass
class ContractCall:
    """A single execute message, still in plaintext"""
    contract: str
    code_hash: str
    msg: dict


@dataclass
class BroadcastResult:
    code: int
    tx_hash: Optional[str]
    raw_log: str = ""
    logs: Any = None


@dataclass
class ExecutionResult:
    """Result of an arbitrage execution attempt"""
    status: ExecutionStatus
    tx_hash: Optional[str] = None
    code: Optional[int] = None
    raw_log: str = ""
    calls: List[ContractCall] = field(default_factory=list)


# =============================================================================
# MESSAGE BUILDERS
# =============================================================================

def send_msg(recipient: ContractRef, amount: float, instruction: dict) -> dict:
    """Token send carrying a base64 instruction for the recipient"""
    return {
        "send": {
            "recipient": recipient.address,
            "recipient_code_hash": recipient.code_hash,
            "amount": to_amount_string(amount),
            "msg": encode_json_to_b64(instruction),
        }
    }


def swap_instruction(expected_return: float) -> dict:
    return {"swap_tokens": {"expected_return": to_amount_string(expected_return)}}


# =============================================================================
# PLANNER
# =============================================================================

class ExecutionPlanner:
    """
    Builds and submits the message sequence for a CandidatePlan

    client must provide broadcast(calls, gas_limit, fee_denom) -> BroadcastResult
    """

    def __init__(self, client, settings: Settings):
        self.client = client
        self.settings = settings

    def build_calls(self, plan: CandidatePlan) -> List[ContractCall]:
        s = self.settings

        if plan.swap_first:
            first = send_msg(s.amm_pair, plan.trade_amount, swap_instruction(plan.second_action_input))
            second = send_msg(s.money_market, plan.second_action_input, {"withdraw_supply": {}})
        else:
            first = send_msg(s.money_market, plan.trade_amount, {"supply": {}})
            second = send_msg(s.amm_pair, plan.second_action_input, swap_instruction(plan.result))

        calls = [
            ContractCall(s.base_token.address, s.base_token.code_hash, first),
            ContractCall(s.x_token.address, s.x_token.code_hash, second),
        ]

        if s.is_borrow:
            borrow = ContractCall(
                s.money_market.address,
                s.money_market.code_hash,
                {
                    "borrow": {
                        "token": s.base_token.address,
                        "amount": to_amount_string(plan.trade_amount),
                    }
                },
            )
            repay = ContractCall(
                s.base_token.address,
                s.base_token.code_hash,
                send_msg(s.money_market, plan.result, {"repay": {}}),
            )
            calls = [borrow] + calls + [repay]

        return calls

    def execute(self, plan: CandidatePlan, now_ms: int) -> ExecutionResult:
        """
        Broadcast the plan as one atomic transaction

        A non-zero code is a normal outcome (revert), not an exception.
        """
        calls = self.build_calls(plan)

        if self.settings.dry_run:
            logger.info(
                f"DRY RUN - would execute {plan.label} "
                f"({len(calls)} msgs, expected profit {plan.profit:.6f})"
            )
            logger.debug(json.dumps([c.msg for c in calls], indent=2))
            return ExecutionResult(status=ExecutionStatus.SKIPPED, calls=calls)

        response = self.client.broadcast(calls, self.settings.gas_limit, self.settings.fee_denom)

        if self.settings.is_borrow and response.tx_hash:
            self.append_tx_log(now_ms, response.tx_hash)

        if response.code == 0:
            logger.info(f"✅ ARBITRAGE ATTEMPT SUCCESSFUL - {response.tx_hash}")
            logger.info(json.dumps(response.logs, indent=2, default=str))
            status = ExecutionStatus.SUCCESS
        else:
            logger.info(f"❌ ARBITRAGE ATTEMPT FAILED - {response.tx_hash}")
            logger.info(json.dumps(response.raw_log))
            status = ExecutionStatus.FAILED

        return ExecutionResult(
            status=status,
            tx_hash=response.tx_hash,
            code=response.code,
            raw_log=response.raw_log,
            calls=calls,
        )

    def append_tx_log(self, now_ms: int, tx_hash: str) -> None:
        """Shared across keys; failure here never fails the run"""
        path = Path(self.settings.tx_log_path)
        try:
            with path.open("a", newline="") as f:
                csv.writer(f, lineterminator="\n").writerow([now_ms, tx_hash, TX_LOG_LABEL])
        except OSError as e:
            logger.error(f"Failed to append transaction hash: {e}")
