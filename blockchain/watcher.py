"""
Awaiting transaction receipts with a bounded deadline.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from web3 import Web3
from web3.exceptions import TransactionNotFound

from errors import NetworkError, Reverted, TimedOutWaiting
from .transactions import TRANSPORT_ERRORS


logger = logging.getLogger(__name__)


class TxStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    TIMED_OUT_WAITING = "timed_out_waiting"


@dataclass
class TransactionRecord:
    """State of one awaited transaction."""
    tx_hash: str
    status: TxStatus = TxStatus.PENDING
    receipt: Optional[Dict[str, Any]] = None
    attempts: int = 0


class TransactionWatcher:
    """Polls for a transaction receipt until inclusion or deadline."""

    def __init__(self, web3: Web3, timeout_seconds: float = 120.0, poll_interval_seconds: float = 2.0):
        self.web3 = web3
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds

    async def _fetch_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.web3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            return None

    async def wait(self, tx_hash: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Wait for ``tx_hash`` to be mined and return its receipt.

        Raises Reverted for a failed receipt, TimedOutWaiting when the
        deadline passes first and NetworkError when the node is unreachable.
        """
        timeout = self.timeout_seconds if timeout is None else timeout
        record = TransactionRecord(tx_hash)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        logger.info(f"Waiting up to {timeout:g}s for {tx_hash}")
        while True:
            record.attempts += 1
            try:
                receipt = await self._fetch_receipt(tx_hash)
            except TRANSPORT_ERRORS as exc:
                raise NetworkError(f"Failed to fetch receipt for {tx_hash}: {exc}")

            if receipt is not None:
                record.receipt = receipt
                break

            remaining = deadline - loop.time()
            if remaining <= 0:
                record.status = TxStatus.TIMED_OUT_WAITING
                logger.warning(f"Gave up waiting for {tx_hash} after {record.attempts} attempts")
                raise TimedOutWaiting(tx_hash, timeout)
            await asyncio.sleep(min(self.poll_interval_seconds, remaining))

        if receipt["status"] != 1:
            record.status = TxStatus.REVERTED
            logger.warning(f"Transaction reverted: {tx_hash}")
            raise Reverted(f"Transaction reverted: {tx_hash}", tx_hash=tx_hash, receipt=receipt)

        record.status = TxStatus.CONFIRMED
        logger.info(f"Transaction {tx_hash} confirmed in block {receipt.get('blockNumber')}")
        return receipt
