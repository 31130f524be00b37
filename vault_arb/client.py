# vault_arb/client.py
"""
Chain client
Thin adapter over secret-sdk: contract queries and multi-message broadcast.
Built once per process and injected into the fetcher and executor.
"""

import logging
from typing import List

from secret_sdk.client.lcd import LCDClient
from secret_sdk.key.mnemonic import MnemonicKey

from vault_arb.config import Settings
from vault_arb.executor import BroadcastResult, ContractCall

logger = logging.getLogger(__name__)


class ChainClient:
    """
    Query / broadcast surface used by the strategy

    Transport errors are not caught here; callers decide whether an
    error is transient.
    """

    def __init__(self, settings: Settings):
        if not settings.mnemonic:
            raise RuntimeError("WALLET_MNEMONIC not set in .env")

        self.lcd = LCDClient(url=settings.node_url, chain_id=settings.chain_id)
        self.wallet = self.lcd.wallet(MnemonicKey(mnemonic=settings.mnemonic))
        logger.info(f"Connected to {settings.chain_id} via {settings.node_url}")

    @property
    def address(self) -> str:
        return self.wallet.key.acc_address

    def query_contract(self, address: str, code_hash: str, query: dict) -> dict:
        return self.lcd.wasm.contract_query(address, query, code_hash)

    def broadcast(
        self,
        calls: List[ContractCall],
        gas_limit: int,
        fee_denom: str,
    ) -> BroadcastResult:
        """Encrypt each call and submit them as one transaction"""
        msgs = [
            self.lcd.wasm.contract_execute_msg(
                self.address,
                call.contract,
                call.msg,
                None,
                call.code_hash,
            )
            for call in calls
        ]
        tx = self.wallet.create_and_broadcast_tx(
            msg_list=msgs,
            gas=str(gas_limit),
            fee_denoms=[fee_denom],
        )
        return BroadcastResult(
            code=tx.code or 0,
            tx_hash=tx.txhash,
            raw_log=tx.raw_log,
            logs=tx.logs,
        )
