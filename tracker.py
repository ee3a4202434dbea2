"""
Local view of game lifecycles, driven only by confirmed ledger events.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from blockchain.events import EventRecord
from blockchain.game import Choice
from errors import InvalidTransition


logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


class Phase(str, Enum):
    AWAITING_OPPONENT = "AwaitingOpponent"
    AWAITING_MOVES = "AwaitingMoves"
    AWAITING_RESOLUTION = "AwaitingResolution"
    RESOLVED = "Resolved"
    TIMED_OUT = "TimedOut"

    @property
    def terminal(self) -> bool:
        return self in (Phase.RESOLVED, Phase.TIMED_OUT)


class EventKind(str, Enum):
    CREATED = "Created"
    JOINED = "Joined"
    PLAYED = "Played"
    RESOLVED = "Resolved"
    TIMED_OUT = "TimedOut"


EVENT_KINDS = {
    "GameCreated": EventKind.CREATED,
    "GameJoined": EventKind.JOINED,
    "MovePlayed": EventKind.PLAYED,
    "GameResolved": EventKind.RESOLVED,
    "GameTimedOut": EventKind.TIMED_OUT,
}


@dataclass
class Game:
    """Locally tracked game."""
    game_id: int
    creator: str
    stake: int
    phase: Phase = Phase.AWAITING_OPPONENT
    opponent: Optional[str] = None
    moves: Dict[str, Choice] = field(default_factory=dict)
    winner: Optional[str] = None
    outcome: Optional[str] = None  # "creator", "opponent" or "draw"
    timed_out_by: Optional[str] = None

    def move_of(self, participant: str) -> Choice:
        return self.moves.get(participant.lower(), Choice.NONE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gameId": self.game_id,
            "creator": self.creator,
            "opponent": self.opponent,
            "stake": self.stake,
            "phase": self.phase.value,
            "creatorMove": self.move_of(self.creator).label,
            "opponentMove": self.move_of(self.opponent).label if self.opponent else Choice.NONE.label,
            "winner": self.winner,
            "outcome": self.outcome,
            "timedOutBy": self.timed_out_by,
        }


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a.lower() == b.lower()


class GameStateTracker:
    """Holds one Game record per id.

    Records change only through ``apply``; replaying a game's event history
    through ``rebuild`` uses the very same transitions.
    """

    def __init__(self):
        self._games: Dict[int, Game] = {}

    def has(self, game_id: int) -> bool:
        return game_id in self._games

    def tracked_ids(self) -> List[int]:
        return sorted(self._games)

    def snapshot(self, game_id: int) -> Optional[Game]:
        """Copy of the tracked record, or None."""
        game = self._games.get(game_id)
        return copy.deepcopy(game) if game is not None else None

    def forget(self, game_id: int) -> None:
        self._games.pop(game_id, None)

    def apply_event(self, event: EventRecord) -> Game:
        """Apply a decoded contract event."""
        try:
            kind = EVENT_KINDS[event.name]
        except KeyError:
            raise InvalidTransition(f"Unknown event {event.name}")
        return self.apply(kind, event.args)

    def apply(self, kind: EventKind, payload: Dict[str, Any]) -> Game:
        """Apply one confirmed event to the game named in ``payload``."""
        game_id = payload["gameId"]
        game = self._games.get(game_id)

        if kind is EventKind.CREATED:
            if game is not None:
                raise InvalidTransition(f"Game {game_id} already tracked")
            game = Game(game_id=game_id, creator=payload["creator"], stake=payload["stake"])
            self._games[game_id] = game
            logger.debug(f"Game {game_id}: created by {game.creator}")
            return game

        if game is None:
            raise InvalidTransition(f"{kind.value} for untracked game {game_id}")

        if kind is EventKind.JOINED:
            self._require_phase(game, kind, Phase.AWAITING_OPPONENT)
            game.opponent = payload["opponent"]
            game.phase = Phase.AWAITING_MOVES

        elif kind is EventKind.PLAYED:
            self._require_phase(game, kind, Phase.AWAITING_MOVES)
            player = payload["player"]
            if not (_same(player, game.creator) or _same(player, game.opponent)):
                raise InvalidTransition(f"Game {game_id}: {player} is not a participant")
            if player.lower() in game.moves:
                raise InvalidTransition(f"Game {game_id}: {player} already played")
            game.moves[player.lower()] = Choice.decode(payload["choice"])
            if len(game.moves) == 2:
                game.phase = Phase.AWAITING_RESOLUTION

        elif kind is EventKind.RESOLVED:
            self._require_phase(game, kind, Phase.AWAITING_RESOLUTION)
            winner = payload["winner"]
            if _same(winner, ZERO_ADDRESS):
                game.winner = None
                game.outcome = "draw"
            elif _same(winner, game.creator):
                game.winner = winner
                game.outcome = "creator"
            elif _same(winner, game.opponent):
                game.winner = winner
                game.outcome = "opponent"
            else:
                raise InvalidTransition(f"Game {game_id}: winner {winner} is not a participant")
            game.phase = Phase.RESOLVED

        elif kind is EventKind.TIMED_OUT:
            if game.phase.terminal:
                raise InvalidTransition(f"Game {game_id}: TimedOut in terminal phase {game.phase.value}")
            game.timed_out_by = payload.get("claimant")
            game.phase = Phase.TIMED_OUT

        logger.debug(f"Game {game_id}: {kind.value} -> {game.phase.value}")
        return game

    @staticmethod
    def _require_phase(game: Game, kind: EventKind, expected: Phase) -> None:
        if game.phase is not expected:
            raise InvalidTransition(
                f"Game {game.game_id}: {kind.value} requires {expected.value}, "
                f"tracked phase is {game.phase.value}"
            )

    def rebuild(self, game_id: int, events: Iterable[EventRecord]) -> Optional[Game]:
        """Replace a game's record by replaying its full event history.

        The existing record is kept if the replay fails.
        """
        replay = GameStateTracker()
        for event in events:
            if event.game_id == game_id:
                replay.apply_event(event)
        game = replay._games.get(game_id)
        if game is None:
            self._games.pop(game_id, None)
        else:
            self._games[game_id] = game
        return copy.deepcopy(game) if game is not None else None
