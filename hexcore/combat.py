"""
Combat resolution for hex conquest.

resolve() only reads unit state and reports what should happen; the caller
applies the outcome. Range is a separate predicate so a caller checks it
before asking for a resolution.
"""

from dataclasses import dataclass
from typing import Optional

from .map import HexGrid
from .units import UnitCatalog, UnitRegistry


@dataclass
class CombatResult:
    """Outcome of one attack. Exactly one of the three fields is set."""
    victim_updated: Optional[dict] = None  # {"current_health": int}
    victim_defeated: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Wire form: {victimUpdated | victimDefeated | error}."""
        if self.error is not None:
            return {"error": self.error}
        if self.victim_defeated:
            return {"victimDefeated": True}
        return {"victimUpdated": dict(self.victim_updated or {})}


class DamageModel:
    """Damage dealt by an attacker, looked up from its unit type."""

    DEFAULT_DAMAGE = 10

    def __init__(self, catalog: UnitCatalog, overrides: dict[str, int] | None = None):
        self.catalog = catalog
        self.overrides = overrides or {}

    def damage_for(self, attacker_type: str, victim_type: str | None = None) -> int:
        if attacker_type in self.overrides:
            return self.overrides[attacker_type]
        unit_type = self.catalog.get(attacker_type)
        return unit_type.damage if unit_type else self.DEFAULT_DAMAGE


class CombatResolver:
    """Resolves attacker/victim pairs against the live roster."""

    def __init__(self, grid: HexGrid, registry: UnitRegistry, damage_model: DamageModel | None = None):
        self.grid = grid
        self.registry = registry
        self.damage_model = damage_model or DamageModel(registry.catalog)

    def in_range(self, attacker_id: int, victim_id: int) -> bool:
        """Whether the victim is within the attacker's engagement range."""
        attacker = self.registry.find_by_id(attacker_id)
        victim = self.registry.find_by_id(victim_id)
        if not attacker or not victim:
            return False

        a_pos = self.registry.tile_of(attacker_id)
        v_pos = self.registry.tile_of(victim_id)
        if a_pos is None or v_pos is None:
            return False

        unit_type = self.registry.catalog.get(attacker.unit_type)
        reach = unit_type.range if unit_type else 1
        return self.grid.distance(*a_pos, *v_pos) <= reach

    def resolve(self, attacker_id: int, victim_id: int) -> CombatResult:
        """Compute the result of attacker hitting victim."""
        attacker = self.registry.find_by_id(attacker_id)
        if not attacker or not attacker.is_alive:
            return CombatResult(error=f"Attacker {attacker_id} not found")

        victim = self.registry.find_by_id(victim_id)
        if not victim or not victim.is_alive:
            return CombatResult(error=f"Victim {victim_id} not found")

        if attacker.owner == victim.owner:
            return CombatResult(error="Cannot attack a unit with the same owner")

        damage = self.damage_model.damage_for(attacker.unit_type, victim.unit_type)
        remaining = victim.current_health - damage

        if remaining <= 0:
            return CombatResult(victim_defeated=True)
        return CombatResult(victim_updated={"current_health": remaining})
