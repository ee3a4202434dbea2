"""
Shared fixtures: raw log builders and fakes for the wallet, watcher and ledger.
"""

from unittest.mock import MagicMock

import pytest
from eth_abi import encode
from hexbytes import HexBytes

from blockchain import ContractInvoker
from blockchain.events import EventSpec, decode_logs
from database import TransactionJournal
from game_manager import GameManager
from tracker import GameStateTracker


CONTRACT = "0x" + "5" * 40
OTHER_CONTRACT = "0x" + "9" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40
CAROL = "0x" + "3" * 40
ZERO = "0x" + "0" * 40
TX_HASH = "0x" + "ab" * 32


def make_log(spec: EventSpec, address: str = CONTRACT, block_number: int = 1, log_index: int = 0, **args):
    """Raw log entry as a node would return it."""
    topics = [spec.topic]
    plain_types, plain_values = [], []
    for name, abi_type, indexed in spec.inputs:
        if indexed:
            topics.append(HexBytes(encode([abi_type], [args[name]])))
        else:
            plain_types.append(abi_type)
            plain_values.append(args[name])
    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(encode(plain_types, plain_values)) if plain_types else HexBytes(b""),
        "transactionHash": HexBytes(TX_HASH),
        "blockNumber": block_number,
        "logIndex": log_index,
    }


def foreign_log(address: str = OTHER_CONTRACT):
    """A log from some unrelated contract."""
    return {
        "address": address,
        "topics": [HexBytes(b"\xaa" * 32), HexBytes(b"\x00" * 31 + b"\x07")],
        "data": HexBytes(b""),
        "transactionHash": HexBytes(TX_HASH),
        "blockNumber": 1,
        "logIndex": 0,
    }


def make_receipt(*logs, status: int = 1):
    return {
        "status": status,
        "transactionHash": HexBytes(TX_HASH),
        "blockNumber": 10,
        "logs": list(logs),
    }


def events_of(*logs):
    return decode_logs(list(logs), CONTRACT)


class FakeWallet:
    """Wallet adapter recording submissions."""

    def __init__(self, address: str = ALICE, tx_hash: str = TX_HASH, error: Exception = None):
        self.address = address
        self.tx_hash = tx_hash
        self.error = error
        self.submitted = []

    def submit(self, function_call, value: int = 0) -> str:
        if self.error is not None:
            raise self.error
        self.submitted.append((function_call, value))
        return self.tx_hash


class FakeWatcher:
    """Watcher returning a preset receipt or raising a preset error."""

    def __init__(self, outcome=None):
        self.outcome = outcome
        self.calls = []

    async def wait(self, tx_hash, timeout=None):
        self.calls.append((tx_hash, timeout))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FakeLedger:
    """Ledger reader serving canned event histories."""

    def __init__(self, histories=None, counter: int = 0):
        self.histories = histories or {}
        self.counter = counter
        self.queried = []

    def game_counter(self) -> int:
        return self.counter

    def game_events(self, game_id: int):
        self.queried.append(game_id)
        return list(self.histories.get(game_id, []))


@pytest.fixture
def contract():
    mock = MagicMock()
    mock.address = CONTRACT
    return mock


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def watcher():
    return FakeWatcher()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def tracker():
    return GameStateTracker()


@pytest.fixture
def journal(tmp_path):
    return TransactionJournal(str(tmp_path / "journal.db"))


@pytest.fixture
def manager(contract, wallet, watcher, tracker, ledger, journal):
    return GameManager(
        invoker=ContractInvoker(contract, wallet),
        watcher=watcher,
        tracker=tracker,
        ledger=ledger,
        journal=journal,
        contract_address=CONTRACT,
    )
