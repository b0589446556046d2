from hexcore import CombatResolver, DamageModel, GameActions, UnitRegistry, HexGrid

from tests.helpers import place


def test_lethal_damage_defeats_victim(grid: HexGrid, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 1, 0)
    place(registry, 2, "AI 1", 2, 0, health=10)
    resolver = CombatResolver(grid, registry, DamageModel(registry.catalog, {"warrior": 10}))

    result = resolver.resolve(1, 2)

    assert result.victim_defeated is True
    assert result.victim_updated is None
    assert result.error is None
    assert result.to_dict() == {"victimDefeated": True}


def test_non_lethal_damage_updates_health(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 1, 0)  # warrior: 5 damage
    place(registry, 2, "AI 1", 2, 0, health=12)

    result = resolver.resolve(1, 2)

    assert result.victim_updated == {"current_health": 7}
    assert result.victim_defeated is False
    assert result.to_dict() == {"victimUpdated": {"current_health": 7}}
    # resolve does not write back
    assert registry.find_by_id(2).current_health == 12


def test_exact_lethal_damage_defeats(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 1, 0)
    place(registry, 2, "AI 1", 2, 0, health=5)
    assert resolver.resolve(1, 2).victim_defeated is True


def test_friendly_fire_is_rejected_regardless_of_health(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "AI 1", 3, 0)
    place(registry, 2, "AI 1", 3, 1, health=1)

    result = resolver.resolve(1, 2)

    assert result.error
    assert not result.victim_defeated
    assert result.victim_updated is None


def test_unknown_ids_are_rejected(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 0, 0)
    assert resolver.resolve(1, 99).error
    assert resolver.resolve(99, 1).error
    assert "error" in resolver.resolve(99, 1).to_dict()


def test_resolve_ignores_range(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 0, 0)
    place(registry, 2, "AI 1", 3, 1, health=20)
    assert resolver.in_range(1, 2) is False
    assert resolver.resolve(1, 2).victim_updated == {"current_health": 15}


def test_in_range_uses_attacker_type_range(resolver: CombatResolver, registry: UnitRegistry) -> None:
    place(registry, 1, "Player 1", 0, 0, unit_type="slinger")  # range 2
    place(registry, 2, "AI 1", 2, 0)
    place(registry, 3, "Player 1", 1, 0)  # warrior: range 1
    assert resolver.in_range(1, 2) is True
    assert resolver.in_range(3, 2) is True
    assert resolver.in_range(2, 1) is False


def test_defeat_removes_unit_and_frees_tile(grid: HexGrid, registry: UnitRegistry, progression) -> None:
    place(registry, 1, "Player 1", 1, 0)
    place(registry, 2, "AI 1", 2, 0, health=10)
    resolver = CombatResolver(grid, registry, DamageModel(registry.catalog, {"warrior": 10}))
    actions = GameActions(grid, registry, resolver, progression)

    result = actions.attack(1, 2)

    assert result.victim_defeated
    assert registry.find_by_id(2) is None
    assert registry.unit_at(2, 0) is None
    assert registry.find_by_id(1).moves_left == 0
