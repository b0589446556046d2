"""
Player actions shared by the human session and AI opponents.

Every move, capture, attack and purchase goes through GameActions, so health,
defeat and tile-binding rules are enforced in one place whoever acts.
"""

import logging
from collections import deque
from typing import Optional

from .combat import CombatResolver, CombatResult
from .errors import ActionError
from .map import HexGrid, Tile
from .progression import TierProgression
from .units import Unit, UnitRegistry

logger = logging.getLogger(__name__)


class GameActions:
    """Move/attack/capture/spawn primitives over the grid and roster."""

    def __init__(
        self,
        grid: HexGrid,
        registry: UnitRegistry,
        resolver: CombatResolver,
        progression: Optional[TierProgression] = None,
    ):
        self.grid = grid
        self.registry = registry
        self.resolver = resolver
        self.progression = progression

    # Movement
    def reachable(self, unit_id: int) -> dict[tuple[int, int], int]:
        """Empty tiles the unit can reach this round, mapped to step cost."""
        unit = self.registry.find_by_id(unit_id)
        start = self.registry.tile_of(unit_id)
        if not unit or start is None or unit.moves_left <= 0:
            return {}

        costs: dict[tuple[int, int], int] = {start: 0}
        frontier = deque([start])
        while frontier:
            current = frontier.popleft()
            if costs[current] >= unit.moves_left:
                continue
            for tile in self.grid.neighbors(*current):
                if tile.key in costs or self.registry.is_occupied(*tile.key):
                    continue
                costs[tile.key] = costs[current] + 1
                frontier.append(tile.key)

        del costs[start]
        return costs

    def move(self, unit_id: int, q: int, r: int) -> Unit:
        """Move a unit to a reachable tile, capturing it if not already owned."""
        unit = self.registry.find_by_id(unit_id)
        if not unit:
            raise ActionError(f"Unit {unit_id} not found")

        cost = self.reachable(unit_id).get((q, r))
        if cost is None:
            raise ActionError(f"Unit {unit_id} cannot reach ({q}, {r})")

        self.registry.move(unit_id, q, r)
        unit.moves_left -= cost

        tile = self.grid.get(q, r)
        if tile and tile.owner != unit.owner:
            self.capture(q, r, unit.owner)
        return unit

    def capture(self, q: int, r: int, owner: str):
        """Transfer a tile to owner and paint it in the owner's color."""
        tile = self.grid.get(q, r)
        if not tile:
            return
        previous = tile.owner
        self.grid.set_owner(q, r, owner)
        color = self.grid.palette.get(owner)
        if color is not None:
            self.grid.set_color(q, r, color)
        logger.info(f"{owner} captured ({q}, {r}) from {previous or 'neutral'}")

    # Combat
    def can_attack(self, attacker_id: int, victim_id: int) -> bool:
        attacker = self.registry.find_by_id(attacker_id)
        if not attacker or attacker.moves_left <= 0:
            return False
        return self.resolver.in_range(attacker_id, victim_id)

    def attack(self, attacker_id: int, victim_id: int) -> CombatResult:
        """Range-check, resolve and apply one attack."""
        attacker = self.registry.find_by_id(attacker_id)
        if attacker and attacker.moves_left <= 0:
            return CombatResult(error=f"Unit {attacker_id} has no moves left")
        if attacker and not self.resolver.in_range(attacker_id, victim_id):
            return CombatResult(error=f"Unit {victim_id} is out of range of {attacker_id}")

        result = self.resolver.resolve(attacker_id, victim_id)
        if not result.ok:
            logger.warning(f"Attack {attacker_id} -> {victim_id} rejected: {result.error}")
            return result

        self.apply(victim_id, result)
        attacker.moves_left -= 1
        return result

    def apply(self, victim_id: int, result: CombatResult):
        """Write a resolved combat result back to the roster."""
        if result.victim_defeated:
            self.registry.remove(victim_id)
            logger.info(f"Unit {victim_id} defeated")
        elif result.victim_updated:
            victim = self.registry.find_by_id(victim_id)
            if victim:
                victim.current_health = result.victim_updated["current_health"]
                logger.info(f"Unit {victim_id} now has {victim.current_health} HP")

    def enemies_in_range(self, unit_id: int) -> list[Unit]:
        unit = self.registry.find_by_id(unit_id)
        if not unit:
            return []
        return [
            other for other in self.registry.units.values()
            if other.owner != unit.owner and self.resolver.in_range(unit_id, other.id)
        ]

    # Purchases
    def spawn(self, owner: str, unit_type: str, q: int, r: int, gold: int) -> tuple[Unit, int]:
        """Buy a unit on an owned, empty tile. Returns the unit and its cost."""
        info = self.registry.catalog.get(unit_type)
        if not info:
            raise ActionError(f"Unknown unit type {unit_type!r}")
        if self.progression and not self.progression.is_unlocked(unit_type):
            raise ActionError(f"{info.name} (tier {info.tier}) is still locked")
        if info.cost > gold:
            raise ActionError(f"{info.name} costs {info.cost} gold, only {gold} available")

        tile: Optional[Tile] = self.grid.get(q, r)
        if not tile or tile.owner != owner:
            raise ActionError(f"Tile ({q}, {r}) is not owned by {owner}")
        if self.registry.is_occupied(q, r):
            raise ActionError(f"Tile ({q}, {r}) is occupied")

        unit = Unit(
            id=self.registry.next_id(),
            unit_type=info.id,
            owner=owner,
            current_health=info.health,
            moves_left=0,  # fresh units act from next round
        )
        self.registry.add(unit, q, r)
        logger.info(f"{owner} spawned {info.name} #{unit.id} at ({q}, {r})")
        return unit, info.cost
