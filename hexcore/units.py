"""
Unit roster for hex conquest.

Units and tiles reference each other only through the registry's two
indexes (unit id -> tile key, tile key -> unit id), so removing a unit
always releases its tile.
"""

import logging
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class UnitType:
    """Unit type properties loaded from the catalog."""
    id: str
    name: str
    tier: int = 1
    health: int = 10
    damage: int = 10
    range: int = 1
    moves: int = 1
    cost: int = 20


DEFAULT_UNIT_TYPES = {
    # id: (tier, health, damage, range, moves, cost)
    "scout": (1, 8, 3, 1, 3, 15),
    "slinger": (1, 8, 4, 2, 1, 20),
    "warrior": (1, 10, 5, 1, 1, 20),
    "archer": (2, 10, 5, 2, 1, 35),
    "horseman": (2, 12, 6, 1, 2, 40),
    "swordsman": (2, 15, 7, 1, 1, 40),
    "chariot": (3, 15, 8, 1, 3, 60),
    "knight": (3, 20, 9, 1, 2, 70),
    "lancer": (3, 18, 10, 1, 2, 65),
    "musketeer": (4, 20, 12, 2, 1, 90),
}


class UnitCatalog:
    """Unit type definitions keyed by type id ("warrior", "archer", ...)."""

    def __init__(self, types: dict[str, UnitType] | None = None):
        self.types: dict[str, UnitType] = types if types is not None else self._default_types()

    @staticmethod
    def _default_types() -> dict[str, UnitType]:
        types = {}
        for tid, (tier, health, damage, rng, moves, cost) in DEFAULT_UNIT_TYPES.items():
            types[tid] = UnitType(
                id=tid, name=tid.title(), tier=tier, health=health,
                damage=damage, range=rng, moves=moves, cost=cost,
            )
        return types

    @classmethod
    def load(cls, path: Path | str) -> "UnitCatalog":
        """Load the catalog from YAML, or the built-in defaults if missing."""
        path = Path(path)
        if not path.exists():
            logger.info(f"No unit catalog at {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        types = {}
        for type_id, info in data.get("unit_types", {}).items():
            key = str(type_id).lower().strip().replace(" ", "")
            types[key] = UnitType(
                id=key,
                name=info.get("name", str(type_id).title()),
                tier=info.get("tier", 1),
                health=info.get("health", 10),
                damage=info.get("damage", 10),
                range=info.get("range", 1),
                moves=info.get("moves", 1),
                cost=info.get("cost", 20),
            )
        return cls(types)

    def get(self, type_id: str) -> Optional[UnitType]:
        return self.types.get(type_id)

    def moves_for(self, type_id: str) -> int:
        """Per-round move allotment for a unit type."""
        unit_type = self.get(type_id)
        return unit_type.moves if unit_type else 1

    def by_tier(self) -> dict[int, list[UnitType]]:
        tiers: dict[int, list[UnitType]] = {}
        for unit_type in sorted(self.types.values(), key=lambda t: (t.tier, t.id)):
            tiers.setdefault(unit_type.tier, []).append(unit_type)
        return tiers


@dataclass
class Unit:
    """A unit on the board. Its position is held by the UnitRegistry."""
    id: int
    unit_type: str
    owner: str
    current_health: int
    moves_left: int = 1

    @property
    def is_alive(self) -> bool:
        return self.current_health > 0

    @property
    def exhausted(self) -> bool:
        return self.moves_left <= 0


class UnitRegistry:
    """Live roster of units bound to grid positions."""

    def __init__(self, catalog: UnitCatalog | None = None):
        self.catalog = catalog or UnitCatalog()
        self.units: dict[int, Unit] = {}
        self._tile_of: dict[int, tuple[int, int]] = {}
        self._unit_at: dict[tuple[int, int], int] = {}

    # Roster mutation
    def add(self, unit: Unit, q: int, r: int):
        """Register a unit and bind it to tile (q, r)."""
        if unit.id in self.units:
            raise ValueError(f"Unit {unit.id} already registered")
        if (q, r) in self._unit_at:
            raise ValueError(f"Tile ({q}, {r}) already occupied by unit {self._unit_at[(q, r)]}")
        self.units[unit.id] = unit
        self._tile_of[unit.id] = (q, r)
        self._unit_at[(q, r)] = unit.id

    def remove(self, unit_id: int) -> Optional[Unit]:
        """Remove a unit and release its tile."""
        unit = self.units.pop(unit_id, None)
        key = self._tile_of.pop(unit_id, None)
        if key is not None and self._unit_at.get(key) == unit_id:
            del self._unit_at[key]
        return unit

    def move(self, unit_id: int, q: int, r: int):
        """Rebind a unit to another tile."""
        if unit_id not in self.units:
            raise KeyError(unit_id)
        occupant = self._unit_at.get((q, r))
        if occupant is not None and occupant != unit_id:
            raise ValueError(f"Tile ({q}, {r}) already occupied by unit {occupant}")
        old = self._tile_of.get(unit_id)
        if old is not None:
            self._unit_at.pop(old, None)
        self._tile_of[unit_id] = (q, r)
        self._unit_at[(q, r)] = unit_id

    def clear(self):
        self.units.clear()
        self._tile_of.clear()
        self._unit_at.clear()

    def increment_turn(self, unit: Unit, active_player: str) -> bool:
        """Restore a unit's moves to its allotment.

        Only units of the player whose turn is active are refreshed.
        """
        if unit.owner != active_player:
            logger.warning(
                f"Refused move refresh for unit {unit.id} ({unit.owner}) during {active_player}'s turn"
            )
            return False
        unit.moves_left = self.catalog.moves_for(unit.unit_type)
        return True

    # Queries
    def find_by_id(self, unit_id: int) -> Optional[Unit]:
        return self.units.get(unit_id)

    def all_owned_by(self, owner: str) -> list[Unit]:
        return [u for u in self.units.values() if u.owner == owner]

    def tile_of(self, unit_id: int) -> Optional[tuple[int, int]]:
        return self._tile_of.get(unit_id)

    def unit_at(self, q: int, r: int) -> Optional[Unit]:
        unit_id = self._unit_at.get((q, r))
        return self.units.get(unit_id) if unit_id is not None else None

    def is_occupied(self, q: int, r: int) -> bool:
        return (q, r) in self._unit_at

    def next_id(self) -> int:
        return max(self.units, default=0) + 1

    # Persistence rows
    def to_rows(self) -> list[dict]:
        rows = []
        for unit in self.units.values():
            q, r = self._tile_of[unit.id]
            rows.append({
                "id": unit.id,
                "unit_type": unit.unit_type,
                "current_health": unit.current_health,
                "owned_by": unit.owner,
                "q_pos": q,
                "r_pos": r,
                "moves_left": unit.moves_left,
            })
        return rows

    def load_rows(self, rows: list[dict], grid=None) -> int:
        """Replace the roster with persisted unit rows.

        Rows pointing at tiles missing from the grid, at an occupied tile, or
        repeating an id already loaded are skipped. Returns the number of
        units loaded.
        """
        self.clear()
        for row in rows:
            q, r = row.get("q_pos"), row.get("r_pos")
            if int(row["id"]) in self.units:
                logger.warning(f"Skipping unit {row.get('id')}: duplicate id")
                continue
            if grid is not None and grid.get(q, r) is None:
                logger.warning(f"Skipping unit {row.get('id')}: tile ({q}, {r}) not on map")
                continue
            if (q, r) in self._unit_at:
                logger.warning(f"Skipping unit {row.get('id')}: tile ({q}, {r}) already occupied")
                continue
            moves = row.get("moves_left")
            unit = Unit(
                id=int(row["id"]),
                unit_type=row["unit_type"],
                owner=row["owned_by"],
                current_health=int(row["current_health"]),
                moves_left=1 if moves is None else int(moves),
            )
            if not unit.is_alive:
                continue
            self.add(unit, q, r)
        return len(self.units)

    def get_stats(self) -> dict:
        by_owner: dict[str, int] = {}
        for unit in self.units.values():
            by_owner[unit.owner] = by_owner.get(unit.owner, 0) + 1
        return {"total_units": len(self.units), "by_owner": by_owner}
