"""
Game manager driving the create / join / play / timeout lifecycle.
"""

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from blockchain import (
    Choice,
    ContractInvoker,
    EventRecord,
    LedgerReader,
    OperationRequest,
    TransactionWatcher,
    decode_receipt_events,
    from_ledger_units,
    resolve_game_id,
    to_ledger_units,
)
from blockchain.transactions import TRANSPORT_ERRORS, parse_game_id
from database import TransactionEntry, TransactionJournal
from errors import (
    EventNotFound,
    InvalidTransition,
    NetworkError,
    OperationInProgress,
    Reverted,
    RPSClientError,
    TimedOutWaiting,
    UnknownChoiceError,
    ValidationError,
)
from tracker import Game, GameStateTracker


logger = logging.getLogger(__name__)

# Errors meaning the local view no longer matches the contract
CONSISTENCY_ERRORS = (EventNotFound, InvalidTransition, UnknownChoiceError)


@dataclass
class FlowResult:
    """Uniform outcome of a lifecycle operation."""
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, **data) -> "FlowResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: RPSClientError, **data) -> "FlowResult":
        return cls(ok=False, data=data, error_kind=error.kind, message=str(error))

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, **self.data}
        return {"ok": False, "errorKind": self.error_kind, "message": self.message, **self.data}


@dataclass
class _FlowContext:
    flow: str
    game_id: Optional[int] = None
    tx_hash: Optional[str] = None
    confirmed: bool = False
    refreshed: bool = False


class GameManager:
    """Runs the four lifecycle flows against the game contract.

    Each flow is validate -> encode -> submit -> await -> interpret and
    always ends in a FlowResult. The tracker only changes after a confirmed
    receipt.
    """

    def __init__(
        self,
        invoker: ContractInvoker,
        watcher: TransactionWatcher,
        tracker: GameStateTracker,
        ledger: LedgerReader,
        journal: TransactionJournal,
        contract_address: str,
    ):
        self.invoker = invoker
        self.watcher = watcher
        self.tracker = tracker
        self.ledger = ledger
        self.journal = journal
        self.contract_address = contract_address

        # Game ids with an operation in flight
        self._in_flight: Set[int] = set()

    @property
    def account(self) -> str:
        return self.invoker.account

    # Lifecycle flows

    async def create_game(self, stake) -> FlowResult:
        """Create a game staking ``stake`` ether."""
        return await self._run("create", lambda: self.invoker.prepare_create(to_ledger_units(stake)))

    async def join_game(self, game_id, stake) -> FlowResult:
        """Join an open game staking ``stake`` ether."""
        return await self._run("join", lambda: self.invoker.prepare_join(game_id, to_ledger_units(stake)))

    async def play(self, game_id, choice) -> FlowResult:
        """Play Rock, Paper or Scissors in a joined game."""
        return await self._run("play", lambda: self.invoker.prepare_play(game_id, choice))

    async def handle_timeout(self, game_id) -> FlowResult:
        """Claim a timeout against an unresponsive counterpart."""
        return await self._run("timeout", lambda: self.invoker.prepare_timeout(game_id))

    async def rewatch(self, tx_hash: str, timeout: Optional[float] = None) -> FlowResult:
        """Resume waiting on a journaled transaction whose wait timed out."""
        ctx = _FlowContext("watch")
        try:
            entry = self.journal.get_transaction(tx_hash)
            if entry is None:
                raise ValidationError(f"Unknown transaction {tx_hash}")
            if entry.status not in ("pending", "timed_out_waiting"):
                raise ValidationError(f"Transaction {tx_hash} already {entry.status}")
            ctx.flow = entry.flow
            ctx.game_id = entry.game_id
            ctx.tx_hash = tx_hash
            with self._claim(ctx.game_id):
                return await self._confirm(ctx, timeout)
        except RPSClientError as exc:
            return self._fail(ctx, exc)

    # Queries

    async def refresh_game(self, game_id) -> Optional[Game]:
        """Rebuild a game's record from its ledger event history."""
        game_id = parse_game_id(game_id)
        events = await self._call_ledger(self.ledger.game_events, game_id)
        game = self.tracker.rebuild(game_id, events)
        if game is None:
            logger.info(f"Game {game_id} has no history on the ledger")
        else:
            logger.info(f"Game {game_id} rebuilt from {len(events)} events: {game.phase.value}")
        return game

    async def game_counter(self) -> int:
        """Read the contract's game counter. Informational only."""
        return await self._call_ledger(self.ledger.game_counter)

    def snapshot(self, game_id: int) -> Optional[Game]:
        return self.tracker.snapshot(game_id)

    # Internals

    @contextmanager
    def _claim(self, game_id: Optional[int]):
        if game_id is None:
            yield
            return
        if game_id in self._in_flight:
            raise OperationInProgress(f"Another operation on game {game_id} is still running")
        self._in_flight.add(game_id)
        try:
            yield
        finally:
            self._in_flight.discard(game_id)

    async def _call_ledger(self, func: Callable, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func, *args)
        except TRANSPORT_ERRORS as exc:
            raise NetworkError(f"Ledger query failed: {exc}")

    async def _run(self, flow: str, prepare: Callable[[], OperationRequest]) -> FlowResult:
        ctx = _FlowContext(flow)
        try:
            request = prepare()
            ctx.game_id = request.game_id
            with self._claim(ctx.game_id):
                ctx.tx_hash = await self._submit(flow, request)
                return await self._confirm(ctx)
        except RPSClientError as exc:
            return self._fail(ctx, exc)

    async def _submit(self, flow: str, request: OperationRequest) -> str:
        logger.info(f"\033[94m🚀 {flow}: calling {request.function_name}\033[0m")
        loop = asyncio.get_running_loop()
        tx_hash = await loop.run_in_executor(None, self.invoker.submit, request)
        self._journal(self.journal.record_submission, TransactionEntry(
            tx_hash=tx_hash,
            flow=flow,
            account=self.account,
            submitted_at=datetime.now(),
            game_id=request.game_id,
            value=request.value,
        ))
        return tx_hash

    async def _confirm(self, ctx: _FlowContext, timeout: Optional[float] = None) -> FlowResult:
        receipt = await self.watcher.wait(ctx.tx_hash, timeout)
        ctx.confirmed = True

        if ctx.flow == "create":
            ctx.game_id = resolve_game_id(receipt, self.contract_address)
        self._journal(self.journal.update_status, ctx.tx_hash, "confirmed", game_id=ctx.game_id)

        events = [
            event for event in decode_receipt_events(receipt, self.contract_address)
            if event.game_id == ctx.game_id
        ]
        game = await self._apply_confirmed(ctx, events)

        data: Dict[str, Any] = {"gameId": ctx.game_id, "txHash": ctx.tx_hash}
        if ctx.flow == "create":
            created = next(e for e in events if e.name == "GameCreated")
            data["stake"] = created.args["stake"]
            data["stakeEther"] = str(from_ledger_units(created.args["stake"]))
        for event in events:
            if event.name == "MovePlayed" and event.args["player"].lower() == self.account.lower():
                data["choice"] = Choice.decode(event.args["choice"]).label
        data["phase"] = game.phase.value if game is not None else None
        data["game"] = game.to_dict() if game is not None else None
        if ctx.refreshed:
            data["refreshed"] = True

        logger.info(f"\033[92m✅ {ctx.flow} confirmed for game {ctx.game_id}: {data['phase']}\033[0m")
        return FlowResult.success(**data)

    async def _apply_confirmed(self, ctx: _FlowContext, events: List[EventRecord]) -> Optional[Game]:
        """Apply a receipt's events, or rebuild games not tracked yet."""
        game_id = ctx.game_id
        if not self.tracker.has(game_id) and not any(e.name == "GameCreated" for e in events):
            # e.g. joining someone else's game: the history includes this receipt
            try:
                return await self.refresh_game(game_id)
            except NetworkError as exc:
                logger.warning(f"Confirmed, but could not load history of game {game_id}: {exc}")
                return None

        try:
            for event in events:
                self.tracker.apply_event(event)
        except CONSISTENCY_ERRORS as exc:
            # Usually a counterpart's transaction we never saw
            logger.warning(f"\033[33m🔄 Game {game_id} diverged from ledger ({exc}), refreshing\033[0m")
            try:
                game = await self.refresh_game(game_id)
            except RPSClientError as refresh_exc:
                logger.error(f"Refresh of game {game_id} failed: {refresh_exc}")
                raise exc
            if game is None:
                raise exc
            ctx.refreshed = True
            return game
        return self.tracker.snapshot(game_id)

    def _journal(self, write: Callable, *args, **kwargs):
        """Journal writes never abort a flow whose transaction is already out."""
        try:
            write(*args, **kwargs)
        except sqlite3.Error as exc:
            logger.error(f"\033[31m💾 Journal write failed: {exc}\033[0m")

    def _fail(self, ctx: _FlowContext, exc: RPSClientError) -> FlowResult:
        if isinstance(exc, CONSISTENCY_ERRORS):
            logger.error(f"\033[31m❌ {ctx.flow} failed: {exc.kind}: {exc}\033[0m")
        else:
            logger.warning(f"\033[33m⚠️  {ctx.flow} failed: {exc.kind}: {exc}\033[0m")

        if ctx.tx_hash is not None:
            if ctx.confirmed:
                status = "confirmed"
            elif isinstance(exc, Reverted):
                status = "reverted"
            elif isinstance(exc, TimedOutWaiting):
                status = "timed_out_waiting"
            else:
                status = "pending"
            self._journal(
                self.journal.update_status,
                ctx.tx_hash, status, game_id=ctx.game_id, detail=f"{exc.kind}: {exc}",
            )

        data = {}
        if ctx.game_id is not None:
            data["gameId"] = ctx.game_id
        if ctx.tx_hash is not None:
            data["txHash"] = ctx.tx_hash
        return FlowResult.failure(exc, **data)
