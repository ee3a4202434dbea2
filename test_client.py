from unittest.mock import MagicMock

import client
from config import ClientConfig
from conftest import ALICE, CONTRACT


def test_client_wires_components(monkeypatch, tmp_path):
    web3 = MagicMock()
    web3.eth.account.from_key.return_value = MagicMock(address=ALICE)
    contract = MagicMock()
    contract.address = CONTRACT
    monkeypatch.setattr(client, "get_web3_connection", lambda rpc_url, poa_chain=False: web3)
    monkeypatch.setattr(client, "get_contract", lambda w3, address: contract)

    config = ClientConfig(
        rpc_url="http://localhost:8545",
        private_key="0x" + "01" * 32,
        chain_id=31337,
        confirmation_timeout_seconds=15,
        poll_interval_seconds=0.5,
        deploy_block=42,
        db_path=str(tmp_path / "client.db"),
    )
    approve = lambda tx: True
    rps = client.RPSClient(config, approve=approve)

    manager = rps.game_manager
    assert manager.account == ALICE
    assert manager.contract_address == CONTRACT
    assert manager.watcher.timeout_seconds == 15
    assert manager.watcher.poll_interval_seconds == 0.5
    assert manager.ledger.from_block == 42
    assert rps.wallet.chain_id == 31337
    assert rps.wallet.approve is approve
    assert rps.get_statistics() == {"total": 0, "flows": {}}
    assert rps.get_history() == []
