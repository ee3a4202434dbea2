"""
Decoding of game contract events and resolution of new game ids.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode
from hexbytes import HexBytes
from web3 import Web3

from errors import EventNotFound


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventSpec:
    """Signature of one contract event.

    ``inputs`` lists ``(name, abi_type, indexed)`` in declaration order.
    """
    name: str
    inputs: Tuple[Tuple[str, str, bool], ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(abi_type for _, abi_type, _ in self.inputs)})"

    @property
    def topic(self) -> HexBytes:
        return HexBytes(Web3.keccak(text=self.signature))

    def matches(self, log: Dict[str, Any]) -> bool:
        topics = log.get("topics") or []
        return bool(topics) and HexBytes(topics[0]) == self.topic

    def decode(self, log: Dict[str, Any]) -> "EventRecord":
        """Decode a raw log entry into an EventRecord."""
        topics = [HexBytes(t) for t in log["topics"]]
        indexed = [(n, t) for n, t, is_indexed in self.inputs if is_indexed]
        plain = [(n, t) for n, t, is_indexed in self.inputs if not is_indexed]

        if len(topics) != len(indexed) + 1:
            raise EventNotFound(
                f"{self.name} log has {len(topics) - 1} indexed fields, expected {len(indexed)}"
            )

        args: Dict[str, Any] = {}
        for (arg_name, abi_type), topic in zip(indexed, topics[1:]):
            args[arg_name] = decode([abi_type], bytes(topic))[0]

        if plain:
            values = decode([t for _, t in plain], bytes(HexBytes(log.get("data") or b"")))
            for (arg_name, _), value in zip(plain, values):
                args[arg_name] = value

        # eth_abi returns lowercase hex for addresses
        for arg_name, abi_type, _ in self.inputs:
            if abi_type == "address":
                args[arg_name] = Web3.to_checksum_address(args[arg_name])

        tx_hash = log.get("transactionHash")
        return EventRecord(
            name=self.name,
            args=args,
            address=log.get("address"),
            tx_hash=Web3.to_hex(HexBytes(tx_hash)) if tx_hash is not None else None,
            block_number=log.get("blockNumber"),
            log_index=log.get("logIndex"),
        )


@dataclass
class EventRecord:
    """A decoded, confirmed contract event."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    address: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    log_index: Optional[int] = None

    @property
    def game_id(self) -> int:
        return self.args["gameId"]


GAME_CREATED = EventSpec("GameCreated", (
    ("gameId", "uint256", True),
    ("creator", "address", True),
    ("stake", "uint256", False),
))
GAME_JOINED = EventSpec("GameJoined", (
    ("gameId", "uint256", True),
    ("opponent", "address", True),
))
MOVE_PLAYED = EventSpec("MovePlayed", (
    ("gameId", "uint256", True),
    ("player", "address", True),
    ("choice", "uint8", False),
))
GAME_RESOLVED = EventSpec("GameResolved", (
    ("gameId", "uint256", True),
    ("winner", "address", True),
    ("creatorChoice", "uint8", False),
    ("opponentChoice", "uint8", False),
))
GAME_TIMED_OUT = EventSpec("GameTimedOut", (
    ("gameId", "uint256", True),
    ("claimant", "address", True),
))

CONTRACT_EVENTS: Tuple[EventSpec, ...] = (
    GAME_CREATED,
    GAME_JOINED,
    MOVE_PLAYED,
    GAME_RESOLVED,
    GAME_TIMED_OUT,
)


def _from_contract(log: Dict[str, Any], contract_address: Optional[str]) -> bool:
    if contract_address is None:
        return True
    address = log.get("address")
    return address is not None and address.lower() == contract_address.lower()


def find_event_spec(log: Dict[str, Any]) -> Optional[EventSpec]:
    for spec in CONTRACT_EVENTS:
        if spec.matches(log):
            return spec
    return None


def decode_logs(
    logs: Sequence[Dict[str, Any]],
    contract_address: Optional[str] = None,
) -> List[EventRecord]:
    """Decode the known game events out of raw logs, keeping log order."""
    events = []
    for log in logs:
        if not _from_contract(log, contract_address):
            continue
        spec = find_event_spec(log)
        if spec is None:
            logger.debug(f"Skipping unknown log with topics {log.get('topics')}")
            continue
        events.append(spec.decode(log))
    return events


def decode_receipt_events(
    receipt: Dict[str, Any],
    contract_address: Optional[str] = None,
) -> List[EventRecord]:
    """Decode the game events a confirmed receipt carries."""
    return decode_logs(receipt.get("logs") or [], contract_address)


def resolve_game_id(receipt: Dict[str, Any], contract_address: Optional[str] = None) -> int:
    """Return the id of the game created by a confirmed createGame receipt.

    Only the receipt's own GameCreated record is trusted. Reading the game
    counter after confirmation races with other players' creations.
    """
    created = [
        log for log in receipt.get("logs") or []
        if _from_contract(log, contract_address) and GAME_CREATED.matches(log)
    ]
    if len(created) != 1:
        raise EventNotFound(
            f"Expected exactly one {GAME_CREATED.signature} event in receipt, found {len(created)}"
        )
    game_id = GAME_CREATED.decode(created[0]).game_id
    logger.debug(f"Resolved game id {game_id} from receipt logs")
    return game_id
