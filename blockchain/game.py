"""
Game-related blockchain functions.
"""

import logging
from enum import IntEnum
from typing import List, Union

from web3 import Web3
from web3.contract import Contract

from errors import UnknownChoiceError, ValidationError
from .events import CONTRACT_EVENTS, EventRecord, decode_logs


logger = logging.getLogger(__name__)


class Choice(IntEnum):
    """Move enum, numbered as the contract's ``Choice`` enum."""
    NONE = 0
    ROCK = 1
    PAPER = 2
    SCISSORS = 3

    @classmethod
    def parse(cls, value: Union[str, int, "Choice"]) -> "Choice":
        """Parse a user supplied move name (case-insensitive) or member."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                names = ", ".join(c.name.capitalize() for c in cls if c is not cls.NONE)
                raise ValidationError(f"Unknown move {value!r}, expected one of {names}")
        raise ValidationError(f"Unknown move {value!r}")

    @classmethod
    def decode(cls, value: int) -> "Choice":
        """Decode the contract's integer representation."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownChoiceError(f"Unknown choice value from ledger: {value!r}")

    @property
    def label(self) -> str:
        return self.name.capitalize()


def get_game_counter(contract: Contract) -> int:
    """Get the contract's monotonic game counter. Display only."""
    return contract.functions.gameCounter().call()


def get_game_events(web3: Web3, contract: Contract, game_id: int, from_block: int = 0) -> List[EventRecord]:
    """Fetch a game's full event history in ledger order."""
    id_topic = Web3.to_hex(game_id.to_bytes(32, "big"))
    logs = web3.eth.get_logs({
        "address": contract.address,
        "fromBlock": from_block,
        "toBlock": "latest",
        "topics": [[Web3.to_hex(spec.topic) for spec in CONTRACT_EVENTS], id_topic],
    })
    logs = sorted(logs, key=lambda log: (log["blockNumber"], log["logIndex"]))
    return decode_logs(logs, contract.address)


class LedgerReader:
    """Read-only queries against the game contract."""

    def __init__(self, web3: Web3, contract: Contract, from_block: int = 0):
        self.web3 = web3
        self.contract = contract
        self.from_block = from_block

    def game_counter(self) -> int:
        return get_game_counter(self.contract)

    def game_events(self, game_id: int) -> List[EventRecord]:
        events = get_game_events(self.web3, self.contract, game_id, self.from_block)
        logger.info(f"Fetched {len(events)} events for game {game_id}")
        return events
