"""
Turn sequencing for hex conquest.

A round is the human turn followed by each AI in registration order:

    HUMAN_TURN --advance_turn--> AI_TURN(1) ... AI_TURN(n) --> HUMAN_TURN

advance_turn() runs the whole round: refresh human units, collect income,
let every AI act, bump the round, notify tier progression, evaluate win/lose
and persist. AI turns and persistence suspend.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from .config import HUMAN_PLAYER
from .errors import PersistenceError
from .map import HexGrid
from .persistence import PersistenceGateway
from .progression import TierProgression
from .units import UnitRegistry

logger = logging.getLogger(__name__)

GOLD_PER_TILE = 5


class Phase(Enum):
    HUMAN_TURN = "human_turn"
    AI_TURN = "ai_turn"


class MatchOutcome(Enum):
    ONGOING = "ongoing"
    WIN = "win"
    LOSE = "lose"


class TurnTaker(Protocol):
    """What the engine needs from an AI opponent."""
    name: str

    def new_turn(self) -> None: ...

    def take_turn(self) -> None: ...


@dataclass(frozen=True)
class TurnOrder:
    """Ordered player identifiers: the human first, then "AI 1".."AI n"."""
    players: tuple[str, ...]

    @classmethod
    def for_enemies(cls, num_enemies: int) -> "TurnOrder":
        return cls((HUMAN_PLAYER,) + tuple(f"AI {i}" for i in range(1, num_enemies + 1)))

    @property
    def human(self) -> str:
        return self.players[0]

    @property
    def ais(self) -> tuple[str, ...]:
        return self.players[1:]

    def __len__(self) -> int:
        return len(self.players)

    def __getitem__(self, index: int) -> str:
        return self.players[index]


@dataclass
class TurnState:
    round: int = 1
    turn_index: int = 0
    gold: int = 100

    def to_dict(self) -> dict:
        return {"round": self.round, "turn": self.turn_index, "gold": self.gold}


@dataclass
class TurnReport:
    """What one advance_turn call did."""
    round: int
    turn_index: int
    gold: int
    income: int = 0
    advanced: bool = False
    outcome: MatchOutcome = MatchOutcome.ONGOING
    ai_errors: dict[str, str] = field(default_factory=dict)
    persisted: bool = False


class TurnEngine:
    """Owns the turn state and drives each round."""

    def __init__(
        self,
        level: str,
        grid: HexGrid,
        registry: UnitRegistry,
        turn_order: TurnOrder,
        opponents: list[TurnTaker] | None = None,
        progression: Optional[TierProgression] = None,
        gateway: Optional[PersistenceGateway] = None,
        starting_gold: int = 100,
    ):
        self.level = level
        self.grid = grid
        self.registry = registry
        self.turn_order = turn_order
        self.opponents: list[TurnTaker] = list(opponents or [])
        self.progression = progression
        self.gateway = gateway
        self.starting_gold = starting_gold

        self.state = TurnState(gold=starting_gold)
        self.outcome = MatchOutcome.ONGOING
        self._advancing = False

    # State machine
    @property
    def busy(self) -> bool:
        """True while a round is being advanced."""
        return self._advancing

    @property
    def phase(self) -> Phase:
        return Phase.HUMAN_TURN if self.state.turn_index == 0 else Phase.AI_TURN

    def current_player(self) -> str:
        return self.turn_order[self.state.turn_index % len(self.turn_order)]

    def next_player(self) -> str:
        return self.turn_order[(self.state.turn_index + 1) % len(self.turn_order)]

    async def advance_turn(self) -> Optional[TurnReport]:
        """End the human turn and play the round through.

        Returns None when a previous advance is still running.
        """
        if self._advancing:
            logger.warning("advance_turn ignored: previous round still running")
            return None

        self._advancing = True
        try:
            report = TurnReport(
                round=self.state.round, turn_index=self.state.turn_index, gold=self.state.gold
            )

            if self.phase == Phase.HUMAN_TURN:
                human = self.turn_order.human

                # Refresh movement
                for unit in self.registry.all_owned_by(human):
                    self.registry.increment_turn(unit, human)

                # Gold income
                income = GOLD_PER_TILE * self.grid.count_owned_by(human)
                self.state.gold += income
                report.income = income

                # AIs act
                for index, opponent in enumerate(self.opponents, start=1):
                    self.state.turn_index = index
                    error = await self._run_opponent(opponent)
                    if error:
                        report.ai_errors[opponent.name] = error

                # Round advance and unlocks
                self.state.round += 1
                self.state.turn_index = 0
                if self.progression:
                    self.progression.apply_round(self.state.round)
                report.advanced = True
                logger.info(f"Round {self.state.round} begins: gold {self.state.gold} (+{income})")

            report.outcome = self.check_win_lose()
            report.persisted = await self.persist()

            report.round = self.state.round
            report.turn_index = self.state.turn_index
            report.gold = self.state.gold
            return report
        finally:
            self._advancing = False

    async def _run_opponent(self, opponent: TurnTaker) -> Optional[str]:
        """Run one AI turn. Failures are logged and do not stop the round.

        take_turn runs in the default executor so a slow policy (a model
        call) does not stall the event loop. AIs still act one at a time.
        """
        try:
            opponent.new_turn()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, opponent.take_turn)
        except Exception as e:
            logger.exception(f"{opponent.name} turn failed: {e}")
            return str(e)
        return None

    # Win / lose
    def check_win_lose(self) -> MatchOutcome:
        """Evaluate the match from current tile ownership."""
        human_tiles = self.grid.count_owned_by(self.turn_order.human)
        ai_tiles = self.grid.count_owned_by(self.turn_order.ais)

        if ai_tiles == 0:
            self.outcome = MatchOutcome.WIN
        elif human_tiles == 0:
            self.outcome = MatchOutcome.LOSE
        else:
            self.outcome = MatchOutcome.ONGOING

        if self.outcome != MatchOutcome.ONGOING:
            logger.info(f"Match over: {self.outcome.value} (human {human_tiles}, AI {ai_tiles} tiles)")
        return self.outcome

    @property
    def game_over(self) -> bool:
        return self.outcome != MatchOutcome.ONGOING

    # Reset / load
    def reset(self):
        self.state = TurnState(gold=self.starting_gold)
        self.outcome = MatchOutcome.ONGOING
        if self.progression:
            self.progression.apply_round(self.state.round)

    def restore(self, saved: dict):
        """Apply a loaded turn_state record."""
        self.state.round = saved["round"]
        self.state.turn_index = saved["turn"]
        if "gold" in saved:
            self.state.gold = saved["gold"]

    # Persistence
    def tile_rows(self) -> list[dict]:
        return [
            {"q": t.q, "r": t.r, "color": t.base_color, "owner": t.owner}
            for t in self.grid.all_tiles()
        ]

    async def persist(self) -> bool:
        """Save turn state, tiles and units. Failures are logged, never raised."""
        if not self.gateway:
            return False
        ok = True
        try:
            await self.gateway.save_turn_state(self.level, self.state.to_dict())
        except PersistenceError as e:
            logger.error(f"saveTurnState error: {e}")
            ok = False
        try:
            await self.gateway.save_tiles(self.level, self.tile_rows())
        except PersistenceError as e:
            logger.error(f"saveTiles error: {e}")
            ok = False
        try:
            await self.gateway.save_units(self.registry.to_rows())
        except PersistenceError as e:
            logger.error(f"saveUnits error: {e}")
            ok = False
        return ok

    def get_stats(self) -> dict:
        return {
            "round": self.state.round,
            "turn": self.state.turn_index,
            "gold": self.state.gold,
            "current_player": self.current_player(),
            "outcome": self.outcome.value,
        }
