"""
Game session runner for hex conquest.

GameSession builds a level (grid, roster, AIs, turn engine), restores any
saved state and turns interaction events (end turn, unit selected, move,
spawn, reset, save, load) into engine calls. Run this module to play a
headless match.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

from hexcore import (
    GameConfig, HUMAN_PLAYER, HexGrid, LevelData, LevelRepository,
    UnitCatalog, UnitRegistry, CombatResolver, CombatResult, GameActions,
    TierProgression, PersistenceGateway, JsonFileStore, PersistenceError,
    TurnEngine, TurnOrder, TurnReport, Phase, ActionError,
)
from hexcore.persistence import StoreClient
from opponents import Opponent, OpponentConfig, ExpansionistOpponent, create_opponent

logger = logging.getLogger(__name__)


class GameSession:
    """One level being played by the human against its AI opponents."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        store: Optional[StoreClient] = None,
        opponent_factory: Optional[Callable[[OpponentConfig, GameActions], Opponent]] = None,
    ):
        self.config = config or GameConfig.load()
        self.levels = LevelRepository(
            self.config.level_dir,
            attempts=self.config.level_fetch_attempts,
            delay=self.config.level_fetch_delay,
        )
        self.catalog = UnitCatalog.load(self.config.units_path)
        self.gateway = PersistenceGateway(store or JsonFileStore(self.config.save_dir))
        self.opponent_factory = opponent_factory or create_opponent

        self.level_name: Optional[str] = None
        self.level: Optional[LevelData] = None
        self.grid: Optional[HexGrid] = None
        self.registry: Optional[UnitRegistry] = None
        self.actions: Optional[GameActions] = None
        self.progression: Optional[TierProgression] = None
        self.engine: Optional[TurnEngine] = None
        self.opponents: list[Opponent] = []

        self.selected_unit_id: Optional[int] = None
        self.diagnostic: Optional[str] = None
        self.unlocked_tiers: list[int] = []
        self._lock = asyncio.Lock()

    # Setup
    async def setup(self, level_name: str) -> bool:
        """Build the scene for a level. Failures are kept in self.diagnostic."""
        self.diagnostic = None
        try:
            await self._build(level_name)
        except Exception as e:
            logger.exception(f"Session setup failed for {level_name!r}")
            self.engine = None
            self.diagnostic = f"Create failed: {e}"
            return False
        logger.info(f"Game ready: {level_name}")
        return True

    async def _build(self, level_name: str):
        level = await self.levels.fetch(level_name)
        turn_order = TurnOrder.for_enemies(level.num_enemies)

        grid = HexGrid.from_level(level, self.config.palette)
        registry = UnitRegistry(self.catalog)
        resolver = CombatResolver(grid, registry)
        progression = TierProgression(
            self.catalog,
            turns_per_tier=self.config.turns_per_tier,
            on_tier_unlock=self.unlocked_tiers.append,
        )
        actions = GameActions(grid, registry, resolver, progression)

        opponents = [
            self.opponent_factory(
                OpponentConfig(name=ai, archetype=self.config.opponent_for(ai)), actions
            )
            for ai in turn_order.ais
        ]

        engine = TurnEngine(
            level_name, grid, registry, turn_order,
            opponents=opponents,
            progression=progression,
            gateway=self.gateway,
            starting_gold=self.config.starting_gold,
        )

        self.level_name = level_name
        self.level = level
        self.grid = grid
        self.registry = registry
        self.actions = actions
        self.progression = progression
        self.opponents = opponents
        self.engine = engine
        self.selected_unit_id = None

        logger.info(f"Players: {', '.join(turn_order.players)}")
        await self._load_persisted()
        progression.apply_round(engine.state.round)

    @property
    def ready(self) -> bool:
        return self.engine is not None

    @property
    def busy(self) -> bool:
        """True while a trigger is running; other triggers are refused."""
        return self._lock.locked() or (self.engine is not None and self.engine.busy)

    def _require_ready(self):
        if not self.ready:
            raise ActionError(self.diagnostic or "No game in progress")

    def _require_human_turn(self):
        self._require_ready()
        if self.engine.game_over:
            raise ActionError(f"Match is over: {self.engine.outcome.value}")
        if self.engine.phase != Phase.HUMAN_TURN:
            raise ActionError(f"Not your turn ({self.engine.current_player()} is playing)")

    # Persistence triggers
    async def _load_persisted(self) -> dict[str, bool]:
        """Restore saved turn state, tiles and units. Each part may fail alone."""
        loaded = {"turn_state": False, "tiles": False, "units": False}

        try:
            saved = await self.gateway.load_turn_state(self.level_name)
            if saved:
                self.engine.restore(saved)
                loaded["turn_state"] = True
        except PersistenceError as e:
            logger.warning(f"loadTurnState: {e}")

        players = set(self.engine.turn_order.players)
        try:
            for row in await self.gateway.load_tiles(self.level_name):
                owner = row["owner"]
                if owner is not None and owner not in players:
                    logger.warning(f"Tile ({row['q']}, {row['r']}) owner {owner!r} not in this level, cleared")
                    owner = None
                self.grid.set_color(row["q"], row["r"], row["color"])
                self.grid.set_owner(row["q"], row["r"], owner)
                loaded["tiles"] = True
        except PersistenceError as e:
            logger.warning(f"loadTiles: {e}")

        try:
            rows = await self.gateway.load_units()
            if rows is not None:
                self.registry.load_rows(rows, self.grid)
                loaded["units"] = True
        except PersistenceError as e:
            logger.warning(f"loadUnitData: {e}")

        return loaded

    async def save(self) -> bool:
        """Manual checkpoint."""
        self._require_ready()
        if self.busy:
            logger.warning("Save ignored: turn in progress")
            return False
        async with self._lock:
            return await self.engine.persist()

    async def load(self) -> dict[str, bool]:
        """Reload the last checkpoint over the current state."""
        self._require_ready()
        if self.busy:
            logger.warning("Load ignored: turn in progress")
            return {}
        async with self._lock:
            self._clear_selection()
            loaded = await self._load_persisted()
            self.progression.apply_round(self.engine.state.round)
            self.engine.check_win_lose()
            return loaded

    async def reset(self) -> bool:
        """Wipe saved state and restart the level from its initial layout."""
        self._require_ready()
        if self.busy:
            logger.warning("Reset ignored: turn in progress")
            return False
        async with self._lock:
            try:
                await self.gateway.clear(self.level_name)
            except PersistenceError as e:
                logger.error(f"Reset could not clear saved state: {e}")

            self._clear_selection()
            self.engine.reset()
            self.grid.reset_from_level(self.level)
            self.registry.clear()
            logger.info("Reset complete.")
            return True

    # Turn triggers
    async def end_turn(self) -> Optional[TurnReport]:
        """Hand the round over to the AIs."""
        self._require_ready()
        if self.engine.game_over:
            logger.info("End turn ignored: match is over")
            return None
        if self.busy:
            logger.warning("End turn ignored: previous turn still running")
            return None
        async with self._lock:
            self._clear_selection()
            return await self.engine.advance_turn()

    # Unit triggers
    def _clear_selection(self):
        self.selected_unit_id = None
        if self.grid:
            self.grid.clear_highlights()

    async def select_unit(self, unit_id: int) -> dict:
        """Handle a click on a unit: select own unit, or attack an enemy."""
        self._require_human_turn()
        if self.busy:
            raise ActionError("Turn in progress")

        unit = self.registry.find_by_id(unit_id)
        if unit is None:
            self._clear_selection()
            raise ActionError(f"Unit {unit_id} not found")

        human = self.engine.current_player()
        if unit.owner == human:
            if self.selected_unit_id == unit_id:
                self._clear_selection()
                return {"selected": None}
            self.selected_unit_id = unit_id
            reachable = self.actions.reachable(unit_id)
            self.grid.highlight(
                (self.grid.get(*k) for k in sorted(reachable)), self.config.highlight_color
            )
            return {"selected": unit_id, "reachable": sorted(reachable)}

        if self.selected_unit_id is None:
            return {"selected": None}

        attacker_id = self.selected_unit_id
        self._clear_selection()
        async with self._lock:
            result = self.actions.attack(attacker_id, unit_id)
        if not result.ok:
            logger.error(f"Error: {result.error}")
        return {"selected": None, "combat": result}

    async def attack(self, attacker_id: int, victim_id: int) -> CombatResult:
        self._require_human_turn()
        attacker = self.registry.find_by_id(attacker_id)
        if attacker is None or attacker.owner != HUMAN_PLAYER:
            return CombatResult(error=f"Unit {attacker_id} is not yours")
        self._clear_selection()
        return self.actions.attack(attacker_id, victim_id)

    async def move_unit(self, unit_id: int, q: int, r: int):
        self._require_human_turn()
        unit = self.registry.find_by_id(unit_id)
        if unit is None or unit.owner != HUMAN_PLAYER:
            raise ActionError(f"Unit {unit_id} is not yours")
        self._clear_selection()
        return self.actions.move(unit_id, q, r)

    async def spawn_unit(self, unit_type: str, q: int, r: int):
        self._require_human_turn()
        unit, cost = self.actions.spawn(HUMAN_PLAYER, unit_type, q, r, self.engine.state.gold)
        self.engine.state.gold -= cost
        return unit

    # Views
    def snapshot(self) -> dict:
        """JSON-ready view of the session for renderers."""
        if not self.ready:
            return {"ready": False, "diagnostic": self.diagnostic}

        tiles = []
        for tile in self.grid.all_tiles():
            occupant = self.registry.unit_at(tile.q, tile.r)
            tiles.append({
                "q": tile.q,
                "r": tile.r,
                "color": tile.color,
                "base_color": tile.base_color,
                "owner": tile.owner,
                "unit_id": occupant.id if occupant else None,
            })
        return {
            "ready": True,
            "level": self.level_name,
            "players": list(self.engine.turn_order.players),
            **self.engine.get_stats(),
            "tiles": tiles,
            "units": self.registry.to_rows(),
            "selected": self.selected_unit_id,
            "available_units": self.progression.available_units(),
            "unlocked_tier": self.progression.unlocked_tier,
        }


class HeadlessMatch:
    """Plays a level with the human side on autopilot."""

    def __init__(self, session: GameSession, log_dir: str = "logs", autoplay: bool = True):
        self.session = session
        self.log_dir = Path(log_dir)
        self.autoplay = autoplay
        self.game_log: list[dict] = []
        self.pilot: Optional[ExpansionistOpponent] = None

    async def run(self, level: str, max_rounds: int) -> dict:
        if not await self.session.setup(level):
            return {"error": self.session.diagnostic}

        if self.autoplay:
            self.pilot = ExpansionistOpponent(OpponentConfig(name=HUMAN_PLAYER), self.session.actions)

        self._log_event("game_start", self.session.engine.get_stats())
        engine = self.session.engine
        for _ in range(max_rounds):
            if engine.game_over:
                break
            if self.pilot:
                self.pilot.take_turn()
            report = await self.session.end_turn()
            if report is None:
                break
            self._log_event("turn_complete", {
                "round": report.round,
                "gold": report.gold,
                "income": report.income,
                "outcome": report.outcome.value,
                "ai_errors": report.ai_errors,
                "control": self.session.grid.get_stats()["control_distribution"],
            })
            logger.info(f"Round {report.round}: gold {report.gold}, outcome {report.outcome.value}")

        results = {
            **engine.get_stats(),
            "control": self.session.grid.get_stats()["control_distribution"],
            "units": self.session.registry.get_stats(),
        }
        self._log_event("game_end", results)
        self._save_game_log()
        return results

    def _log_event(self, event_type: str, data: dict):
        self.game_log.append({
            "timestamp": datetime.now().isoformat(),
            "event": event_type,
            "data": data,
        })

    def _save_game_log(self):
        self.log_dir.mkdir(exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = self.log_dir / f"game_{timestamp}.json"
        with open(log_path, "w") as f:
            json.dump(self.game_log, f, indent=2, default=str)
        logger.info(f"Game log saved to: {log_path}")


def main():
    """Run a headless hex conquest match."""
    import argparse

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Hex Conquest headless match")
    parser.add_argument("--level", default="level1", help="Level name")
    parser.add_argument("--rounds", type=int, default=20, help="Max rounds")
    parser.add_argument("--data", default=None, help="Data directory path")
    parser.add_argument("--logs", default="logs", help="Log directory path")
    parser.add_argument("--idle", action="store_true", help="Human side only ends turns")
    args = parser.parse_args()

    session = GameSession(GameConfig.load(args.data))
    match = HeadlessMatch(session, log_dir=args.logs, autoplay=not args.idle)
    results = asyncio.run(match.run(args.level, args.rounds))

    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    for key, value in results.items():
        print(f"{key}: {value}")


if __name__ == "__main__":
    main()
