import pytest

from hexcore import (
    HexGrid, LevelData, UnitCatalog, UnitRegistry, CombatResolver,
    GameActions, TierProgression, PersistenceGateway, MemoryStore,
)
from hexcore.config import DEFAULT_PALETTE

from tests.helpers import make_level


@pytest.fixture
def level() -> LevelData:
    return make_level()


@pytest.fixture
def grid(level) -> HexGrid:
    return HexGrid.from_level(level, DEFAULT_PALETTE)


@pytest.fixture
def catalog() -> UnitCatalog:
    return UnitCatalog()


@pytest.fixture
def registry(catalog) -> UnitRegistry:
    return UnitRegistry(catalog)


@pytest.fixture
def resolver(grid, registry) -> CombatResolver:
    return CombatResolver(grid, registry)


@pytest.fixture
def progression(catalog) -> TierProgression:
    return TierProgression(catalog, turns_per_tier=5)


@pytest.fixture
def actions(grid, registry, resolver, progression) -> GameActions:
    return GameActions(grid, registry, resolver, progression)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def gateway(store) -> PersistenceGateway:
    return PersistenceGateway(store)
