"""
Wiring of the RPS ledger client components.
"""

import logging
from typing import Any, Callable, Dict, Optional

from blockchain import (
    ContractInvoker,
    LedgerReader,
    LocalAccountWallet,
    TransactionWatcher,
    get_contract,
    get_web3_connection,
)
from config import ClientConfig
from database import TransactionJournal
from game_manager import GameManager
from tracker import GameStateTracker


logger = logging.getLogger(__name__)


class RPSClient:
    """Builds the game manager and its collaborators from configuration."""

    def __init__(
        self,
        config: ClientConfig,
        approve: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ):
        self.config = config

        # Initialize blockchain connection
        self.web3 = get_web3_connection(config.rpc_url, poa_chain=config.poa_chain)
        self.contract = get_contract(self.web3, config.contract_address)

        self.wallet = LocalAccountWallet(
            self.web3,
            config.private_key,
            chain_id=config.chain_id,
            gas_buffer_percent=config.gas_buffer_percent,
            approve=approve,
        )

        self.journal = TransactionJournal(config.db_path)

        self.game_manager = GameManager(
            invoker=ContractInvoker(self.contract, self.wallet),
            watcher=TransactionWatcher(
                self.web3,
                timeout_seconds=config.confirmation_timeout_seconds,
                poll_interval_seconds=config.poll_interval_seconds,
            ),
            tracker=GameStateTracker(),
            ledger=LedgerReader(self.web3, self.contract, from_block=config.deploy_block),
            journal=self.journal,
            contract_address=self.contract.address,
        )

        logger.info(f"Client ready for account {self.wallet.address}")

    def get_statistics(self) -> dict:
        """Get transaction statistics."""
        return self.journal.get_statistics()

    def get_history(self, limit: int = 100) -> list:
        """Get transaction history."""
        return self.journal.get_history(limit)
