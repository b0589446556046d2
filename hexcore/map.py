"""
Hex grid map for hex conquest.

Uses axial coordinates (q, r). Tiles are created once from level data and
only their owner and color change during a session.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import parse_color
from .errors import LevelDataError

logger = logging.getLogger(__name__)

# Axial direction vectors
DIRECTIONS = [(1, 0), (1, -1), (0, -1), (-1, 0), (-1, 1), (0, 1)]


@dataclass
class Tile:
    """Individual hex tile."""
    q: int
    r: int
    base_color: int
    color: int = -1  # display color, differs from base_color while highlighted
    owner: Optional[str] = None

    def __post_init__(self):
        if self.color < 0:
            self.color = self.base_color

    @property
    def key(self) -> tuple[int, int]:
        return (self.q, self.r)

    @property
    def s(self) -> int:
        """Third cube coordinate (q + r + s = 0)."""
        return -self.q - self.r


@dataclass
class TileData:
    """One tile entry from level JSON."""
    q: int
    r: int
    color: int


@dataclass
class LevelData:
    """Parsed level JSON: {cols, rows, num_enemies, tiles: [{q, r, color}]}."""
    name: str
    cols: int
    rows: int
    num_enemies: int
    tiles: list[TileData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "LevelData":
        try:
            tiles = [
                TileData(q=int(t["q"]), r=int(t["r"]), color=parse_color(t["color"]))
                for t in data.get("tiles", [])
            ]
            return cls(
                name=name,
                cols=int(data.get("cols", 0)),
                rows=int(data.get("rows", 0)),
                num_enemies=int(data.get("num_enemies", 0)),
                tiles=tiles,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LevelDataError(f"Malformed level {name!r}: {e}") from e


class LevelRepository:
    """Reads level JSON files from a directory.

    A missing level is re-requested a few times before giving up, so a level
    still being written or synced suspends setup instead of failing it.
    """

    def __init__(self, level_dir: Path | str, attempts: int = 3, delay: float = 0.5):
        self.level_dir = Path(level_dir)
        self.attempts = max(1, attempts)
        self.delay = delay
        self._cache: dict[str, LevelData] = {}

    def path_for(self, name: str) -> Path:
        return self.level_dir / f"{name}.json"

    async def fetch(self, name: str) -> LevelData:
        """Return the named level, waiting for it to become available."""
        if name in self._cache:
            return self._cache[name]

        path = self.path_for(name)
        for attempt in range(1, self.attempts + 1):
            if path.exists():
                break
            logger.warning(f"Level {name!r} not available (attempt {attempt}/{self.attempts})")
            if attempt < self.attempts:
                await asyncio.sleep(self.delay)
        else:
            raise LevelDataError(f"Level {name!r} not found at {path}")

        try:
            with open(path) as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LevelDataError(f"Cannot read level {name!r}: {e}") from e

        level = LevelData.from_dict(name, raw)
        self._cache[name] = level
        logger.info(f"Level {name!r} loaded: {len(level.tiles)} tiles, {level.num_enemies} enemies")
        return level


class HexGrid:
    """
    Canonical map of axial coordinates to tiles.

    Lookups and writes on coordinates that are not in the map are no-ops,
    so sparse or partially broken level data never faults.
    """

    def __init__(self, palette: dict[str, int] | None = None):
        self.tiles: dict[tuple[int, int], Tile] = {}
        self.palette = dict(palette or {})
        self.highlighted: list[Tile] = []

    @classmethod
    def from_level(cls, level: LevelData, palette: dict[str, int]) -> "HexGrid":
        grid = cls(palette)
        for data in level.tiles:
            tile = Tile(q=data.q, r=data.r, base_color=data.color)
            tile.owner = grid.owner_for_color(data.color)
            grid.tiles[tile.key] = tile
        return grid

    def owner_for_color(self, color: int) -> Optional[str]:
        """Player whose palette color matches, if any."""
        for player, player_color in self.palette.items():
            if color == player_color:
                return player
        return None

    # Tile access
    def get(self, q: int, r: int) -> Optional[Tile]:
        return self.tiles.get((q, r))

    def all_tiles(self) -> list[Tile]:
        """All tiles in level insertion order."""
        return list(self.tiles.values())

    def set_owner(self, q: int, r: int, owner: Optional[str]):
        tile = self.get(q, r)
        if tile:
            tile.owner = owner

    def set_color(self, q: int, r: int, color: int):
        """Repaint a tile. Sets both the base and the display color."""
        tile = self.get(q, r)
        if tile:
            tile.base_color = color
            tile.color = color

    # Ownership queries
    def tiles_owned_by(self, owner: str) -> list[Tile]:
        return [t for t in self.tiles.values() if t.owner == owner]

    def count_owned_by(self, owners: str | Iterable[str]) -> int:
        if isinstance(owners, str):
            owners = {owners}
        else:
            owners = set(owners)
        return sum(1 for t in self.tiles.values() if t.owner in owners)

    # Hex operations
    def neighbors(self, q: int, r: int) -> list[Tile]:
        """Existing tiles adjacent to (q, r)."""
        result = []
        for dq, dr in DIRECTIONS:
            tile = self.get(q + dq, r + dr)
            if tile:
                result.append(tile)
        return result

    @staticmethod
    def distance(q1: int, r1: int, q2: int, r2: int) -> int:
        """Distance in hexes between two axial coordinates."""
        return (abs(q1 - q2) + abs(q1 + r1 - q2 - r2) + abs(r1 - r2)) // 2

    # Highlight set
    def highlight(self, tiles: Iterable[Tile], color: int):
        """Override the display color of tiles until clear_highlights()."""
        self.clear_highlights()
        for tile in tiles:
            tile.color = color
            self.highlighted.append(tile)

    def clear_highlights(self):
        for tile in self.highlighted:
            tile.color = tile.base_color
        self.highlighted = []

    def reset_from_level(self, level: LevelData):
        """Repaint every tile in its level color and clear all ownership."""
        self.clear_highlights()
        for data in level.tiles:
            self.set_color(data.q, data.r, data.color)
            self.set_owner(data.q, data.r, None)

    def get_stats(self) -> dict:
        """Tile counts per owner."""
        control: dict[str, int] = {}
        for tile in self.tiles.values():
            key = tile.owner or "neutral"
            control[key] = control.get(key, 0) + 1
        return {"total_tiles": len(self.tiles), "control_distribution": control}
