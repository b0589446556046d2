"""
Unit tier progression: higher tiers unlock as rounds pass.
"""

import logging
from typing import Callable, Optional

from .units import UnitCatalog

logger = logging.getLogger(__name__)


class TierProgression:
    """Tracks which unit tiers are available for purchase."""

    def __init__(
        self,
        catalog: UnitCatalog,
        turns_per_tier: int = 5,
        on_tier_unlock: Optional[Callable[[int], None]] = None,
    ):
        self.catalog = catalog
        self.turns_per_tier = max(1, turns_per_tier)
        self.on_tier_unlock = on_tier_unlock
        self.unlocked_tier = 1
        self.max_tier = max((t.tier for t in catalog.types.values()), default=1)
        self.last_round: Optional[int] = None

    def tier_for_round(self, round_number: int) -> int:
        tier = 1 + (max(1, round_number) - 1) // self.turns_per_tier
        return min(tier, self.max_tier)

    def apply_round(self, round_number: int):
        """Sync unlocks with the current round."""
        self.last_round = round_number
        tier = self.tier_for_round(round_number)
        if tier > self.unlocked_tier:
            for new_tier in range(self.unlocked_tier + 1, tier + 1):
                logger.info(f"Unlocked Tier {new_tier}")
                if self.on_tier_unlock:
                    self.on_tier_unlock(new_tier)
        # A load or reset can move the round backwards
        self.unlocked_tier = tier

    def is_unlocked(self, unit_type: str) -> bool:
        info = self.catalog.get(unit_type)
        return info is not None and info.tier <= self.unlocked_tier

    def available_units(self) -> list[str]:
        return sorted(t.id for t in self.catalog.types.values() if t.tier <= self.unlocked_tier)
