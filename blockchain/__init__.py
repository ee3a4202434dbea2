"""
Blockchain utilities for the RPS ledger client.
"""

from .connection import get_web3_connection, get_contract
from .events import (
    CONTRACT_EVENTS,
    EventRecord,
    decode_receipt_events,
    resolve_game_id,
)
from .game import Choice, LedgerReader, get_game_counter, get_game_events
from .transactions import ContractInvoker, LocalAccountWallet, OperationRequest
from .units import from_ledger_units, to_ledger_units
from .watcher import TransactionWatcher, TxStatus

__all__ = [
    "get_web3_connection",
    "get_contract",
    "CONTRACT_EVENTS",
    "EventRecord",
    "decode_receipt_events",
    "resolve_game_id",
    "Choice",
    "LedgerReader",
    "get_game_counter",
    "get_game_events",
    "ContractInvoker",
    "LocalAccountWallet",
    "OperationRequest",
    "from_ledger_units",
    "to_ledger_units",
    "TransactionWatcher",
    "TxStatus",
]
