"""
AI opponent capability and archetype factory.

An opponent is anything with a name, new_turn() and take_turn(). Archetypes
do not share a base class; each one acts through GameActions, the same
primitives the human session uses.
"""

from dataclasses import dataclass, field
from typing import Callable, Protocol

from hexcore.actions import GameActions


@dataclass
class OpponentConfig:
    """Configuration for an AI opponent."""
    name: str
    archetype: str = "expansionist"
    aggression: float = 0.5  # 0 = never attack first, 1 = always attack when possible
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 2048
    constraints: list[str] = field(default_factory=list)


class Opponent(Protocol):
    """Per-AI decision policy invoked once per AI turn slot."""
    name: str

    def new_turn(self) -> None:
        """Per-round bookkeeping, including refreshing the AI's own units."""
        ...

    def take_turn(self) -> None:
        """Perform zero or more moves and attacks, then return."""
        ...


OpponentFactory = Callable[[OpponentConfig, GameActions], Opponent]

_ARCHETYPES: dict[str, OpponentFactory] = {}


def register_archetype(name: str, factory: OpponentFactory):
    _ARCHETYPES[name] = factory


def archetypes() -> list[str]:
    return sorted(_ARCHETYPES)


def create_opponent(config: OpponentConfig, actions: GameActions) -> Opponent:
    """Build an opponent for config.archetype."""
    factory = _ARCHETYPES.get(config.archetype)
    if factory is None:
        raise ValueError(f"Unknown opponent archetype {config.archetype!r} (known: {archetypes()})")
    return factory(config, actions)
