"""
Game-state engine for hex conquest, a turn-based hex-grid strategy game.

Core modules:
- map: Hex grid, tiles, ownership and level data
- units: Unit catalog and the live roster
- combat: Combat resolution and range checks
- actions: Move/attack/capture/spawn primitives shared by humans and AIs
- turn: Round sequencing, income and win/lose evaluation
- progression: Unit tier unlocks
- persistence: Load/save gateway and store clients
"""

from .config import GameConfig, HUMAN_PLAYER, parse_color
from .errors import GameError, LevelDataError, PersistenceError, ActionError
from .map import HexGrid, Tile, LevelData, LevelRepository
from .units import UnitRegistry, Unit, UnitType, UnitCatalog
from .combat import CombatResolver, CombatResult, DamageModel
from .actions import GameActions
from .progression import TierProgression
from .persistence import PersistenceGateway, MemoryStore, JsonFileStore
from .turn import TurnEngine, TurnOrder, TurnState, TurnReport, Phase, MatchOutcome, GOLD_PER_TILE

__all__ = [
    # Config and errors
    "GameConfig", "HUMAN_PLAYER", "parse_color",
    "GameError", "LevelDataError", "PersistenceError", "ActionError",
    # Map
    "HexGrid", "Tile", "LevelData", "LevelRepository",
    # Units
    "UnitRegistry", "Unit", "UnitType", "UnitCatalog",
    # Combat and actions
    "CombatResolver", "CombatResult", "DamageModel", "GameActions",
    "TierProgression",
    # Persistence
    "PersistenceGateway", "MemoryStore", "JsonFileStore",
    # Turn management
    "TurnEngine", "TurnOrder", "TurnState", "TurnReport", "Phase", "MatchOutcome",
    "GOLD_PER_TILE",
]
