import pytest

from vault_arb.codec import encode_json_to_b64
from vault_arb.config import (
    DEFAULT_GAS_LIMITS,
    VARIANT_BORROW,
    VARIANT_WALLET,
    ContractRef,
    Settings,
)
from vault_arb.executor import BroadcastResult


MONEY_MARKET = ContractRef("secret1moneymarket", "mmhash")
AMM_PAIR = ContractRef("secret1pair", "pairhash")
BASE_TOKEN = ContractRef("secret1base", "basehash")
X_TOKEN = ContractRef("secret1xtoken", "xhash")
BATCH = ContractRef("secret1batch", "batchhash")
ORACLE = ContractRef("secret1oracle", "oraclehash")


def make_settings(tmp_path, variant=VARIANT_BORROW, **overrides) -> Settings:
    values = dict(
        key="test",
        variant=variant,
        node_url="http://localhost:1317",
        chain_id="secret-4",
        mnemonic=None,
        wallet_address="secret1bot",
        money_market=MONEY_MARKET,
        amm_pair=AMM_PAIR,
        base_token=BASE_TOKEN,
        x_token=X_TOKEN,
        batch_query=BATCH,
        oracle=ORACLE if variant == VARIANT_BORROW else None,
        oracle_key="USDC" if variant == VARIANT_BORROW else None,
        permit={"params": {"permit_name": "arb"}} if variant == VARIANT_BORROW else None,
        viewing_key="vk" if variant == VARIANT_WALLET else None,
        decimals=6,
        minimum_profit=5.0,
        gas_limit=DEFAULT_GAS_LIMITS[variant],
        fee_denom="uscrt",
        state_dir=tmp_path,
        tx_log_path=tmp_path / "transactions.txt",
        log_dir=tmp_path / "logs",
        log_timezone="America/Chicago",
    )
    values.update(overrides)
    return Settings(**values)


def market_payloads(
    base_token_amount=1_000_000,
    x_token_amount=900_000,
    x_token_supply=500_000,
    loanable=300_000,
    lent=180_000,
    interest_owed=0,
    interest_paid=0,
    max_supply=530_000,
    rate="1000000000000000000",
    max_borrow_value=10_000,
    wallet_amount=None,
):
    """Decoded sub-responses; defaults give assets=480_000, cap=50_000, price=1.0"""
    payloads = {
        "token_info": {"token_info": {"total_supply": str(x_token_supply)}},
        "pair": {"get_pair_info": {
            "amount_0": str(base_token_amount),
            "amount_1": str(x_token_amount),
        }},
        "vault": {
            "loanable": str(loanable),
            "lent_amount": str(lent),
            "lifetime_interest_owed": str(interest_owed),
            "lifetime_interest_paid": str(interest_paid),
            "max_supply": str(max_supply),
        },
    }
    if wallet_amount is None:
        payloads["oracle"] = {"data": {"rate": rate}}
        payloads["balance"] = {"max_borrow_value": str(max_borrow_value)}
    else:
        payloads["balance"] = {"balance": {"amount": str(wallet_amount)}}
    return payloads


def batch_response(payloads: dict, block_height=123) -> dict:
    return {
        "batch": {
            "block_height": block_height,
            "responses": [
                {
                    "id": encode_json_to_b64(tag),
                    "contract": {"address": "x", "code_hash": "y"},
                    "response": {"response": encode_json_to_b64(payload)},
                }
                for tag, payload in payloads.items()
            ],
        }
    }


class FakeChainClient:
    """
    Scripted stand-in for ChainClient

    swap_returns maps offered token address -> return_amount
    (None = omit, an exception instance = raise it)
    """

    address = "secret1bot"

    def __init__(self, payloads=None, swap_returns=None, batch_error=None,
                 swap_error=None, broadcast_code=0, tx_hash="ABC123", raw_batch=None):
        self.raw_batch = raw_batch
        self.payloads = payloads if payloads is not None else market_payloads()
        self.swap_returns = swap_returns or {}
        self.batch_error = batch_error
        self.swap_error = swap_error
        self.broadcast_code = broadcast_code
        self.tx_hash = tx_hash
        self.queries = []
        self.broadcasts = []

    def query_contract(self, address, code_hash, query):
        self.queries.append((address, code_hash, query))
        if "batch" in query:
            if self.batch_error:
                raise self.batch_error
            if self.raw_batch is not None:
                return self.raw_batch
            return batch_response(self.payloads)
        if "swap_simulation" in query:
            if self.swap_error:
                raise self.swap_error
            token = query["swap_simulation"]["offer"]["token"]["custom_token"]["contract_addr"]
            amount = self.swap_returns.get(token)
            if isinstance(amount, Exception):
                raise amount
            if amount is None:
                return {"swap_simulation": {"result": {}}}
            return {"swap_simulation": {"result": {"return_amount": str(amount)}}}
        raise AssertionError(f"unexpected query {query}")

    def broadcast(self, calls, gas_limit, fee_denom):
        self.broadcasts.append((calls, gas_limit, fee_denom))
        return BroadcastResult(
            code=self.broadcast_code,
            tx_hash=self.tx_hash,
            raw_log="" if self.broadcast_code == 0 else "out of slippage",
            logs=[],
        )


class FixedClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def wallet_settings(tmp_path):
    return make_settings(tmp_path, variant=VARIANT_WALLET, minimum_profit=100.0)


@pytest.fixture
def clock():
    return FixedClock()
