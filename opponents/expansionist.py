"""
Expansionist opponent - deterministic land grab.

Each unit attacks the weakest enemy it can reach; otherwise it moves to
claim the nearest tile its owner does not hold, enemy tiles first.
"""

import logging
from typing import Optional

from hexcore.actions import GameActions
from hexcore.errors import ActionError
from hexcore.units import Unit

from .base import OpponentConfig

logger = logging.getLogger(__name__)


class ExpansionistOpponent:
    """Rule-based AI that grows its territory every round."""

    def __init__(self, config: OpponentConfig, actions: GameActions):
        self.config = config
        self.name = config.name
        self.actions = actions
        self.turn_count = 0

    @property
    def registry(self):
        return self.actions.registry

    @property
    def grid(self):
        return self.actions.grid

    def new_turn(self):
        self.turn_count += 1
        for unit in self.registry.all_owned_by(self.name):
            self.registry.increment_turn(unit, self.name)

    def take_turn(self):
        for unit in sorted(self.registry.all_owned_by(self.name), key=lambda u: u.id):
            # Earlier attacks this turn may have changed the board
            if self.registry.find_by_id(unit.id) is None:
                continue
            self.act(unit)

    def act(self, unit: Unit):
        """Spend one unit's moves for this turn."""
        while unit.moves_left > 0:
            target = self.pick_target(unit)
            if target is not None and self.config.aggression > 0:
                result = self.actions.attack(unit.id, target.id)
                if not result.ok:
                    break
                continue

            destination = self.pick_destination(unit)
            if destination is None:
                break
            try:
                self.actions.move(unit.id, *destination)
            except ActionError as e:
                logger.warning(f"{self.name}: move of unit {unit.id} failed: {e}")
                break

    def pick_target(self, unit: Unit) -> Optional[Unit]:
        enemies = self.actions.enemies_in_range(unit.id)
        if not enemies:
            return None
        return min(enemies, key=lambda e: (e.current_health, e.id))

    def pick_destination(self, unit: Unit) -> Optional[tuple[int, int]]:
        """Reachable tile to move to, or None to hold position."""
        reachable = self.actions.reachable(unit.id)
        if not reachable:
            return None

        def claim_rank(key: tuple[int, int]) -> tuple:
            tile = self.grid.get(*key)
            enemy_owned = tile.owner is not None
            return (0 if enemy_owned else 1, reachable[key], key)

        claimable = [k for k in reachable if self.grid.get(*k).owner != self.name]
        if claimable:
            return min(claimable, key=claim_rank)

        # Nothing to claim in reach: close in on the nearest tile we do not own
        goals = [t.key for t in self.grid.all_tiles() if t.owner != self.name]
        if not goals:
            return None
        start = self.registry.tile_of(unit.id)

        def goal_distance(key: tuple[int, int]) -> int:
            return min(self.grid.distance(*key, *goal) for goal in goals)

        best = min(reachable, key=lambda k: (goal_distance(k), reachable[k], k))
        if goal_distance(best) >= goal_distance(start):
            return None
        return best


def create(config: OpponentConfig, actions: GameActions) -> ExpansionistOpponent:
    return ExpansionistOpponent(config, actions)
