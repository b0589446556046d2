"""
AI opponents for hex conquest.

Archetypes:
- expansionist: deterministic land grab
- commander: OpenAI (gpt-4o) planned orders, expansionist fallback
"""

from .base import Opponent, OpponentConfig, create_opponent, register_archetype, archetypes
from . import commander, expansionist
from .commander import CommanderOpponent
from .expansionist import ExpansionistOpponent

register_archetype("expansionist", expansionist.create)
register_archetype("commander", commander.create)

__all__ = [
    "Opponent", "OpponentConfig", "create_opponent", "register_archetype", "archetypes",
    "CommanderOpponent", "ExpansionistOpponent",
]
