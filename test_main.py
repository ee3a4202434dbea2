import json
from types import SimpleNamespace

import pytest
from click.testing import CliRunner

import main
from game_manager import FlowResult
from errors import ValidationError


class FakeManager:
    def __init__(self):
        self.calls = []

    async def create_game(self, stake):
        self.calls.append(("create", stake))
        return FlowResult.success(gameId=7, phase="AwaitingOpponent")

    async def play(self, game_id, choice):
        self.calls.append(("play", game_id, choice))
        return FlowResult.failure(ValidationError("A move is required"), gameId=int(game_id))


@pytest.fixture
def fake_client(monkeypatch, tmp_path):
    monkeypatch.setenv("RPS_RPC_URL", "http://localhost:8545")
    monkeypatch.setenv("RPS_PRIVATE_KEY", "01" * 32)
    monkeypatch.setenv("RPS_DB_PATH", str(tmp_path / "cli.db"))

    created = []

    def factory(config, approve=None):
        client = SimpleNamespace(config=config, approve=approve, game_manager=FakeManager())
        created.append(client)
        return client

    monkeypatch.setattr(main, "RPSClient", factory)
    # Keep the root logger free of handlers bound to the runner's streams
    monkeypatch.setattr(main, "setup_logging", lambda verbose=False: None)
    return created


def test_create_prints_result(fake_client):
    result = CliRunner().invoke(main.cli, ["--yes", "create", "--stake", "0.01"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"ok": True, "gameId": 7, "phase": "AwaitingOpponent"}
    client = fake_client[0]
    assert client.approve is None
    assert client.game_manager.calls == [("create", "0.01")]


def test_signing_prompt_is_used_without_yes(fake_client):
    CliRunner().invoke(main.cli, ["create", "--stake", "1"])
    assert fake_client[0].approve is main.confirm_transaction


def test_failed_flow_exits_non_zero(fake_client):
    result = CliRunner().invoke(main.cli, ["--yes", "play", "3", "rock"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["errorKind"] == "ValidationError"


def test_pending_lists_journal(fake_client):
    result = CliRunner().invoke(main.cli, ["pending"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"ok": True, "transactions": []}


def test_bad_private_key_is_reported(fake_client, monkeypatch):
    def factory(config, approve=None):
        raise ValidationError("Private key is not a valid 32 byte hex key")

    monkeypatch.setattr(main, "RPSClient", factory)
    result = CliRunner().invoke(main.cli, ["--yes", "create", "--stake", "1"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["errorKind"] == "ValidationError"
