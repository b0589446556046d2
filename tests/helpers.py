"""Shared builders for engine tests."""

from hexcore import LevelData, TurnEngine, TurnOrder, Unit, UnitRegistry
from hexcore.map import TileData

BLUE = 0x3377CC
RED = 0xD2042D
CRIMSON = 0xCC3333
GRASS = 0x556B2F

# Two rows of four tiles:
#   r=0: (0,0) P1  (1,0) P1  (2,0) -    (3,0) AI 1
#   r=1: (0,1) -   (1,1) -   (2,1) AI 2 (3,1) AI 1
LEVEL_TILES = [
    (0, 0, BLUE), (1, 0, BLUE), (2, 0, GRASS), (3, 0, RED),
    (0, 1, GRASS), (1, 1, GRASS), (2, 1, CRIMSON), (3, 1, RED),
]


def make_level(num_enemies: int = 2) -> LevelData:
    return LevelData(
        name="test",
        cols=4,
        rows=2,
        num_enemies=num_enemies,
        tiles=[TileData(q=q, r=r, color=c) for q, r, c in LEVEL_TILES],
    )


def level_dict(num_enemies: int = 2) -> dict:
    return {
        "cols": 4,
        "rows": 2,
        "num_enemies": num_enemies,
        "tiles": [{"q": q, "r": r, "color": hex(c)} for q, r, c in LEVEL_TILES],
    }


def place(registry: UnitRegistry, unit_id: int, owner: str, q: int, r: int,
          unit_type: str = "warrior", health: int = 10, moves: int = 1) -> Unit:
    unit = Unit(id=unit_id, unit_type=unit_type, owner=owner, current_health=health, moves_left=moves)
    registry.add(unit, q, r)
    return unit


class RecordingOpponent:
    """Opponent stub that records calls into a shared log."""

    def __init__(self, name: str, log: list, fail: bool = False):
        self.name = name
        self.log = log
        self.fail = fail

    def new_turn(self):
        self.log.append((self.name, "new_turn"))

    def take_turn(self):
        self.log.append((self.name, "take_turn"))
        if self.fail:
            raise RuntimeError(f"{self.name} exploded")


def make_engine(grid, registry, opponents=None, progression=None, gateway=None, num_enemies=2) -> TurnEngine:
    return TurnEngine(
        "test", grid, registry, TurnOrder.for_enemies(num_enemies),
        opponents=opponents or [],
        progression=progression,
        gateway=gateway,
        starting_gold=100,
    )
