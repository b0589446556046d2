import json
from types import SimpleNamespace

import pytest

from opponents import (
    CommanderOpponent, ExpansionistOpponent, OpponentConfig, archetypes, create_opponent,
)

from tests.helpers import RED, place


class FakeCompletions:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=json.dumps(self.payload))
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(payload=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(payload, error)))


def test_archetype_registry(actions) -> None:
    assert archetypes() == ["commander", "expansionist"]
    assert isinstance(create_opponent(OpponentConfig(name="AI 1"), actions), ExpansionistOpponent)
    with pytest.raises(ValueError):
        create_opponent(OpponentConfig(name="AI 1", archetype="berserker"), actions)


def test_expansionist_claims_enemy_tile(actions, registry, grid) -> None:
    place(registry, 1, "AI 1", 3, 1, moves=0)
    ai = ExpansionistOpponent(OpponentConfig(name="AI 1"), actions)

    ai.new_turn()
    ai.take_turn()

    assert registry.tile_of(1) == (2, 1)
    assert grid.get(2, 1).owner == "AI 1"
    assert grid.get(2, 1).color == RED


def test_expansionist_attacks_weakest_in_range(actions, registry) -> None:
    place(registry, 1, "AI 1", 3, 0)
    place(registry, 2, "Player 1", 2, 0, health=10)
    place(registry, 3, "AI 2", 3, 1, health=4)
    ai = ExpansionistOpponent(OpponentConfig(name="AI 1"), actions)

    ai.take_turn()

    assert registry.find_by_id(3) is None
    assert registry.find_by_id(2).current_health == 10


def test_passive_expansionist_does_not_attack(actions, registry) -> None:
    place(registry, 1, "AI 1", 3, 0)
    place(registry, 2, "Player 1", 2, 0)
    ai = ExpansionistOpponent(OpponentConfig(name="AI 1", aggression=0.0), actions)

    ai.take_turn()

    assert registry.find_by_id(2).current_health == 10


def test_expansionist_only_moves_own_units(actions, registry) -> None:
    human = place(registry, 1, "Player 1", 0, 0)
    place(registry, 2, "AI 1", 3, 1)
    ai = ExpansionistOpponent(OpponentConfig(name="AI 1"), actions)

    ai.new_turn()
    ai.take_turn()

    assert registry.tile_of(1) == (0, 0)
    assert human.moves_left == 1


def test_commander_executes_orders(actions, registry, grid) -> None:
    place(registry, 1, "AI 1", 3, 1)
    place(registry, 5, "Player 1", 0, 0)
    client = fake_client({
        "reasoning": "Take the crimson tile.",
        "orders": [
            {"unit_id": 1, "action": "move", "q": 2, "r": 1, "target_id": 0},
            {"unit_id": 5, "action": "move", "q": 0, "r": 1, "target_id": 0},
        ],
    })
    ai = CommanderOpponent(OpponentConfig(name="AI 1", archetype="commander"), actions, client=client)

    ai.new_turn()
    ai.take_turn()

    assert grid.get(2, 1).owner == "AI 1"
    assert registry.tile_of(5) == (0, 0)
    assert ai.get_reasoning() == "Take the crimson tile."
    call = client.chat.completions.calls[0]
    assert call["model"] == "gpt-4o"
    assert call["response_format"]["type"] == "json_schema"
    assert "ID: 1" in call["messages"][-1]["content"]


def test_commander_rejects_bad_orders_without_failing(actions, registry) -> None:
    place(registry, 1, "AI 1", 3, 1)
    client = fake_client({
        "reasoning": "",
        "orders": [
            {"unit_id": 1, "action": "move", "q": 0, "r": 0, "target_id": 0},
            {"unit_id": 1, "action": "attack", "q": 0, "r": 0, "target_id": 77},
        ],
    })
    ai = CommanderOpponent(OpponentConfig(name="AI 1"), actions, client=client)

    ai.take_turn()

    assert registry.tile_of(1) == (3, 1)


def test_commander_falls_back_when_model_fails(actions, registry, grid) -> None:
    place(registry, 1, "AI 1", 3, 1)
    client = fake_client(error=RuntimeError("rate limited"))
    ai = CommanderOpponent(OpponentConfig(name="AI 1"), actions, client=client)

    ai.take_turn()

    assert registry.tile_of(1) == (2, 1)
    assert grid.get(2, 1).owner == "AI 1"


def test_commander_reset(actions) -> None:
    ai = CommanderOpponent(OpponentConfig(name="AI 1"), actions, client=fake_client({"reasoning": "x", "orders": []}))
    ai.new_turn()
    ai.take_turn()
    assert ai.conversation_history

    ai.reset()

    assert ai.conversation_history == []
    assert ai.turn_count == 0
    assert ai.get_reasoning() is None
