import asyncio
from unittest.mock import MagicMock

import pytest
import requests
from web3.exceptions import TransactionNotFound

from blockchain.watcher import TransactionWatcher
from conftest import TX_HASH, make_receipt
from errors import NetworkError, Reverted, TimedOutWaiting


def _watcher(*receipts):
    web3 = MagicMock()
    web3.eth.get_transaction_receipt.side_effect = list(receipts)
    return TransactionWatcher(web3, timeout_seconds=5, poll_interval_seconds=0.01), web3


def test_waits_until_receipt_appears():
    receipt = make_receipt()
    watcher, web3 = _watcher(TransactionNotFound("pending"), TransactionNotFound("pending"), receipt)

    assert asyncio.run(watcher.wait(TX_HASH)) is receipt
    assert web3.eth.get_transaction_receipt.call_count == 3


def test_failed_receipt_raises_reverted():
    receipt = make_receipt(status=0)
    watcher, _ = _watcher(receipt)

    with pytest.raises(Reverted) as excinfo:
        asyncio.run(watcher.wait(TX_HASH))
    assert excinfo.value.tx_hash == TX_HASH
    assert excinfo.value.receipt is receipt
    assert excinfo.value.submitted is True


def test_deadline_raises_timed_out_waiting():
    web3 = MagicMock()
    web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")
    watcher = TransactionWatcher(web3, timeout_seconds=0.05, poll_interval_seconds=0.01)

    with pytest.raises(TimedOutWaiting) as excinfo:
        asyncio.run(watcher.wait(TX_HASH))
    assert excinfo.value.tx_hash == TX_HASH
    assert web3.eth.get_transaction_receipt.call_count >= 2


def test_explicit_timeout_overrides_default():
    web3 = MagicMock()
    web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")
    watcher = TransactionWatcher(web3, timeout_seconds=3600, poll_interval_seconds=0.01)

    with pytest.raises(TimedOutWaiting):
        asyncio.run(watcher.wait(TX_HASH, timeout=0.03))


def test_transport_failure_raises_network_error():
    watcher, _ = _watcher(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(NetworkError):
        asyncio.run(watcher.wait(TX_HASH))
