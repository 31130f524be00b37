# vault_arb/market_data.py
"""
Market Data Fetcher
One batched query (oracle, share supply, pool reserves, vault accounting,
trade-sizing balance) decoded into a MarketSnapshot, plus swap simulations.
"""

import math
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from vault_arb.codec import decode_b64_to_json, encode_json_to_b64, to_amount_string
from vault_arb.config import SOFT_QUERY_ERROR, ContractRef, Settings

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class TransientQueryError(Exception):
    """Transport hiccup (malformed JSON from the node); retry next tick"""

    # simulations already counted as failed before this error aborted the run
    failed_simulations = 0


class MarketDataError(ValueError):
    """Batch response is missing data or carries values that are not numbers"""


# =============================================================================
# DATA CLASSES
# =============================================================================

class QueryType(Enum):
    BALANCE = "balance"
    TOKEN_INFO = "token_info"
    PAIR = "pair"
    VAULT = "vault"
    ORACLE = "oracle"


@dataclass
class BatchQuery:
    """One sub-query of a batch, correlated by id"""
    id: QueryType
    contract: ContractRef
    query: dict

    def to_msg(self) -> dict:
        return {
            "id": encode_json_to_b64(self.id.value),
            "contract": {
                "address": self.contract.address,
                "code_hash": self.contract.code_hash,
            },
            "query": encode_json_to_b64(self.query),
        }


@dataclass
class MarketSnapshot:
    """Decoded on-chain state for a single run; never persisted"""
    x_token_supply: float
    base_token_amount: float
    x_token_amount: float
    vault_total_assets: float
    supply_cap: float
    price: Optional[float] = None           # borrow variant
    max_borrow_usd: Optional[float] = None  # borrow variant
    wallet_balance: Optional[float] = None  # wallet variant
    block_height: Optional[int] = None


def _number(value: Any, name: str) -> float:
    """Parse a contract value into a finite float"""
    if value is None:
        raise MarketDataError(f"Missing {name} in batch response")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MarketDataError(f"{name} is not a number: {value!r}") from e
    if not math.isfinite(number):
        raise MarketDataError(f"{name} is not finite: {value!r}")
    return number


def vault_totals(vault: dict) -> tuple:
    """
    (vault_total_assets, supply_cap) from a get_vault response

    total = loanable + lent + (interest_owed - interest_paid)
    """
    loanable = _number(vault.get("loanable"), "vault.loanable")
    lent = _number(vault.get("lent_amount"), "vault.lent_amount")
    interest_paid = _number(vault.get("lifetime_interest_paid"), "vault.lifetime_interest_paid")
    interest_owed = _number(vault.get("lifetime_interest_owed"), "vault.lifetime_interest_owed")
    max_supply = _number(vault.get("max_supply"), "vault.max_supply")

    total_assets = loanable + lent + (interest_owed - interest_paid)
    return total_assets, max_supply - total_assets


# =============================================================================
# FETCHER
# =============================================================================

class MarketDataFetcher:
    """
    Issues the batch query and swap simulations against injected client

    client must provide query_contract(address, code_hash, query) -> dict
    """

    def __init__(self, client, settings: Settings):
        self.client = client
        self.settings = settings
        self.last_block_height: Optional[int] = None

    def _query(self, contract: ContractRef, query: dict) -> Any:
        try:
            return self.client.query_contract(contract.address, contract.code_hash, query)
        except Exception as e:
            if SOFT_QUERY_ERROR in str(e).lower():
                raise TransientQueryError(str(e)) from e
            raise

    # -----------------------------
    # Batch
    # -----------------------------

    def fetch_batch(self, queries: List[BatchQuery]) -> Dict[QueryType, Any]:
        """
        Submit all sub-queries in one aggregated query

        Returns decoded sub-responses keyed by their QueryType tag.
        Responses are matched on decoded id, never on position.
        """
        msg = {"batch": {"queries": [q.to_msg() for q in queries]}}
        response = self._query(self.settings.batch_query, msg)

        if response is None:
            raise TransientQueryError("Empty batch query response")

        try:
            sub_responses = response["batch"]["responses"]
        except (KeyError, TypeError) as e:
            raise MarketDataError(f"Malformed batch response: {e}") from e
        if not isinstance(sub_responses, list):
            raise MarketDataError(f"Malformed batch response: responses={sub_responses!r}")

        decoded: Dict[QueryType, Any] = {}
        for sub in sub_responses:
            try:
                tag = decode_b64_to_json(sub["id"])
                payload = decode_b64_to_json(sub["response"]["response"])
            except (KeyError, TypeError, ValueError) as e:
                raise MarketDataError(f"Undecodable sub-response: {e}") from e
            try:
                decoded[QueryType(tag)] = payload
            except ValueError as e:
                raise MarketDataError(f"Unknown response id {tag!r}") from e

        self.last_block_height = response["batch"].get("block_height")
        return decoded

    def build_queries(self) -> List[BatchQuery]:
        """Sub-queries for the configured variant"""
        s = self.settings
        queries = []

        if s.is_borrow:
            queries.append(BatchQuery(
                id=QueryType.ORACLE,
                contract=s.oracle,
                query={"get_price": {"key": s.oracle_key}},
            ))
            queries.append(BatchQuery(
                id=QueryType.BALANCE,
                contract=s.money_market,
                query={"user_position": {"authentication": {"permit": s.permit}}},
            ))
        else:
            queries.append(BatchQuery(
                id=QueryType.BALANCE,
                contract=s.base_token,
                query={"balance": {"address": s.wallet_address, "key": s.viewing_key}},
            ))

        queries += [
            BatchQuery(
                id=QueryType.TOKEN_INFO,
                contract=s.x_token,
                query={"token_info": {}},
            ),
            BatchQuery(
                id=QueryType.PAIR,
                contract=s.amm_pair,
                query={"get_pair_info": {}},
            ),
            BatchQuery(
                id=QueryType.VAULT,
                contract=s.money_market,
                query={"get_vault": {"token": s.base_token.address}},
            ),
        ]
        return queries

    def fetch_snapshot(self) -> MarketSnapshot:
        """Batch query + decode; raises MarketDataError on any gap"""
        queries = self.build_queries()
        return self.decode_snapshot(self.fetch_batch(queries), queries)

    def decode_snapshot(
        self,
        responses: Dict[QueryType, Any],
        queries: Optional[List[BatchQuery]] = None,
    ) -> MarketSnapshot:
        expected = queries if queries is not None else self.build_queries()
        missing = [q.id.value for q in expected if q.id not in responses]
        if missing:
            raise MarketDataError(f"Missing required data from batch query response: {missing}")

        try:
            pair = responses[QueryType.PAIR]["get_pair_info"]
            token_info = responses[QueryType.TOKEN_INFO]["token_info"]
            balance = responses[QueryType.BALANCE]
            vault = responses[QueryType.VAULT]

            total_assets, supply_cap = vault_totals(vault)
            snapshot = MarketSnapshot(
                x_token_supply=_number(token_info.get("total_supply"), "token_info.total_supply"),
                base_token_amount=_number(pair.get("amount_0"), "pair.amount_0"),
                x_token_amount=_number(pair.get("amount_1"), "pair.amount_1"),
                vault_total_assets=total_assets,
                supply_cap=supply_cap,
                block_height=self.last_block_height,
            )

            if self.settings.is_borrow:
                rate = responses[QueryType.ORACLE]["data"]["rate"]
                snapshot.price = _number(rate, "oracle.rate") / 10 ** 18
                snapshot.max_borrow_usd = _number(balance.get("max_borrow_value"), "balance.max_borrow_value")
            else:
                snapshot.wallet_balance = _number(balance["balance"].get("amount"), "balance.amount")
        except (KeyError, TypeError, AttributeError) as e:
            raise MarketDataError(f"Missing required data from batch query response: {e}") from e

        # share price is undefined otherwise
        if snapshot.x_token_supply <= 0 or snapshot.vault_total_assets <= 0:
            raise MarketDataError(
                f"Vault cannot be priced: supply={snapshot.x_token_supply} "
                f"assets={snapshot.vault_total_assets}"
            )
        if snapshot.price is not None and snapshot.price <= 0:
            raise MarketDataError(f"Oracle price must be positive, got {snapshot.price}")

        return snapshot

    # -----------------------------
    # Swap simulation
    # -----------------------------

    def simulate_swap(self, token: ContractRef, amount: float) -> Optional[float]:
        """
        Simulated AMM return for offering `amount` of `token`
        Returns None when the response carries no return_amount
        """
        query = {
            "swap_simulation": {
                "offer": {
                    "amount": to_amount_string(amount),
                    "token": {
                        "custom_token": {
                            "contract_addr": token.address,
                            "token_code_hash": token.code_hash,
                        }
                    },
                }
            }
        }
        response = self._query(self.settings.amm_pair, query)

        try:
            return_amount = response["swap_simulation"]["result"]["return_amount"]
        except (KeyError, TypeError):
            logger.warning(f"Swap simulation returned no amount: {response!r}")
            return None
        if return_amount is None:
            return None
        return _number(return_amount, "swap_simulation.return_amount")
