from unittest.mock import MagicMock

import pytest
from web3 import Web3

from blockchain.connection import load_abi
from blockchain.events import (
    CONTRACT_EVENTS,
    GAME_CREATED,
    GAME_JOINED,
    GAME_RESOLVED,
    MOVE_PLAYED,
    decode_receipt_events,
    resolve_game_id,
)
from blockchain.game import Choice, get_game_events
from conftest import ALICE, BOB, CONTRACT, OTHER_CONTRACT, ZERO, foreign_log, make_log, make_receipt
from errors import EventNotFound


def test_created_topic_is_signature_hash():
    assert GAME_CREATED.signature == "GameCreated(uint256,address,uint256)"
    assert GAME_CREATED.topic == Web3.keccak(text="GameCreated(uint256,address,uint256)")


def test_event_specs_match_shipped_abi():
    abi_events = {
        entry["name"]: tuple((i["name"], i["type"], i["indexed"]) for i in entry["inputs"])
        for entry in load_abi()
        if entry["type"] == "event"
    }
    assert abi_events == {spec.name: spec.inputs for spec in CONTRACT_EVENTS}


def test_resolves_id_from_second_log():
    receipt = make_receipt(
        foreign_log(),
        make_log(GAME_CREATED, gameId=7, creator=ALICE, stake=10 ** 16, log_index=1),
    )
    assert resolve_game_id(receipt, CONTRACT) == 7


def test_concurrent_creations_resolve_independently():
    mine = make_receipt(make_log(GAME_CREATED, gameId=8, creator=ALICE, stake=1))
    theirs = make_receipt(make_log(GAME_CREATED, gameId=7, creator=BOB, stake=1))
    assert resolve_game_id(mine, CONTRACT) == 8
    assert resolve_game_id(theirs, CONTRACT) == 7


def test_missing_creation_event():
    receipt = make_receipt(foreign_log(), make_log(GAME_JOINED, gameId=7, opponent=BOB))
    with pytest.raises(EventNotFound):
        resolve_game_id(receipt, CONTRACT)


def test_creation_event_from_other_contract_is_ignored():
    receipt = make_receipt(make_log(GAME_CREATED, address=OTHER_CONTRACT, gameId=7, creator=ALICE, stake=1))
    with pytest.raises(EventNotFound):
        resolve_game_id(receipt, CONTRACT)


def test_ambiguous_creation_events():
    receipt = make_receipt(
        make_log(GAME_CREATED, gameId=7, creator=ALICE, stake=1),
        make_log(GAME_CREATED, gameId=8, creator=ALICE, stake=1, log_index=1),
    )
    with pytest.raises(EventNotFound):
        resolve_game_id(receipt, CONTRACT)


def test_decodes_receipt_events_in_order():
    receipt = make_receipt(
        make_log(MOVE_PLAYED, gameId=3, player=BOB, choice=int(Choice.ROCK)),
        foreign_log(),
        make_log(GAME_RESOLVED, gameId=3, winner=ZERO, creatorChoice=1, opponentChoice=1, log_index=2),
    )
    events = decode_receipt_events(receipt, CONTRACT)

    assert [e.name for e in events] == ["MovePlayed", "GameResolved"]
    played, resolved = events
    assert played.game_id == 3
    assert played.args["player"] == BOB
    assert played.args["choice"] == 1
    assert resolved.args["winner"] == ZERO
    assert resolved.args["opponentChoice"] == 1
    assert resolved.log_index == 2
    assert resolved.address == CONTRACT


def test_game_history_query_filters_by_game_and_sorts():
    web3 = MagicMock()
    contract = MagicMock()
    contract.address = CONTRACT
    web3.eth.get_logs.return_value = [
        make_log(GAME_JOINED, gameId=5, opponent=BOB, block_number=12, log_index=0),
        make_log(GAME_CREATED, gameId=5, creator=ALICE, stake=3, block_number=11, log_index=4),
    ]

    events = get_game_events(web3, contract, 5, from_block=100)

    assert [e.name for e in events] == ["GameCreated", "GameJoined"]
    params = web3.eth.get_logs.call_args[0][0]
    assert params["address"] == CONTRACT
    assert params["fromBlock"] == 100
    assert params["topics"][1] == "0x" + "00" * 31 + "05"
    assert len(params["topics"][0]) == len(CONTRACT_EVENTS)
