import asyncio
import logging
import threading

from hexcore import (
    MatchOutcome, MemoryStore, PersistenceGateway, Phase, TierProgression, TurnOrder,
)
from hexcore.persistence import GLOBAL_SCOPE, TILES, TURN_STATE, UNITS_STATE

from tests.helpers import RecordingOpponent, make_engine, place


class FailingStore:
    async def load(self, level, table):
        raise ConnectionError("store offline")

    async def save(self, level, table, data):
        raise ConnectionError("store offline")

    async def delete(self, level, table):
        raise ConnectionError("store offline")


def test_turn_order_for_enemies() -> None:
    order = TurnOrder.for_enemies(2)
    assert order.players == ("Player 1", "AI 1", "AI 2")
    assert order.human == "Player 1"
    assert order.ais == ("AI 1", "AI 2")
    assert len(order) == 3


def test_round_with_two_ais(grid, registry) -> None:
    grid.set_owner(2, 0, "Player 1")
    grid.set_owner(0, 1, "Player 1")
    log = []
    engine = make_engine(grid, registry, [RecordingOpponent("AI 1", log), RecordingOpponent("AI 2", log)])

    report = asyncio.run(engine.advance_turn())

    assert report.income == 20
    assert report.advanced
    assert engine.state.gold == 120
    assert engine.state.turn_index == 0
    assert engine.state.round == 2
    assert engine.phase == Phase.HUMAN_TURN
    assert engine.current_player() == "Player 1"


def test_ai_turns_run_in_order(grid, registry) -> None:
    log = []
    engine = make_engine(grid, registry, [RecordingOpponent("AI 1", log), RecordingOpponent("AI 2", log)])

    asyncio.run(engine.advance_turn())

    assert log == [
        ("AI 1", "new_turn"), ("AI 1", "take_turn"),
        ("AI 2", "new_turn"), ("AI 2", "take_turn"),
    ]


def test_turn_index_tracks_acting_ai(grid, registry) -> None:
    seen = []

    class Watcher:
        def __init__(self, name):
            self.name = name

        def new_turn(self):
            pass

        def take_turn(self):
            seen.append((self.name, engine.state.turn_index, engine.current_player(), engine.phase))

    engine = make_engine(grid, registry, [Watcher("AI 1"), Watcher("AI 2")])
    asyncio.run(engine.advance_turn())

    assert seen == [
        ("AI 1", 1, "AI 1", Phase.AI_TURN),
        ("AI 2", 2, "AI 2", Phase.AI_TURN),
    ]


def test_failing_ai_does_not_stop_round(grid, registry) -> None:
    log = []
    engine = make_engine(grid, registry, [
        RecordingOpponent("AI 1", log, fail=True),
        RecordingOpponent("AI 2", log),
    ])

    report = asyncio.run(engine.advance_turn())

    assert ("AI 2", "take_turn") in log
    assert report.ai_errors == {"AI 1": "AI 1 exploded"}
    assert engine.state.round == 2
    assert engine.state.turn_index == 0


def test_human_units_refreshed_before_ais(grid, registry) -> None:
    mine = place(registry, 1, "Player 1", 0, 0, moves=0)
    theirs = place(registry, 2, "AI 1", 3, 0, moves=0)
    engine = make_engine(grid, registry)

    asyncio.run(engine.advance_turn())

    assert mine.moves_left == 1
    # AIs refresh their own units in new_turn
    assert theirs.moves_left == 0


def test_progression_told_new_round_once(grid, registry, catalog) -> None:
    rounds = []

    class CountingProgression(TierProgression):
        def apply_round(self, round_number):
            rounds.append(round_number)
            super().apply_round(round_number)

    progression = CountingProgression(catalog, turns_per_tier=1)
    engine = make_engine(grid, registry, progression=progression)

    asyncio.run(engine.advance_turn())

    assert rounds == [2]
    assert progression.last_round == 2
    assert progression.unlocked_tier == 2


def test_ai_turn_leaves_event_loop_free(grid, registry) -> None:
    released = threading.Event()
    waited = []

    class SlowOpponent:
        name = "AI 1"

        def new_turn(self):
            pass

        def take_turn(self):
            waited.append(released.wait(timeout=5))

    engine = make_engine(grid, registry, [SlowOpponent()])

    async def scenario():
        task = asyncio.create_task(engine.advance_turn())
        await asyncio.sleep(0.01)
        assert engine.busy
        released.set()
        return await task

    report = asyncio.run(scenario())

    assert waited == [True]
    assert report.ai_errors == {}
    assert engine.state.round == 2


def test_no_advance_outside_human_turn(grid, registry, gateway, store) -> None:
    log = []
    engine = make_engine(grid, registry, [RecordingOpponent("AI 1", log)], gateway=gateway)
    engine.restore({"round": 4, "turn": 1, "gold": 30})

    report = asyncio.run(engine.advance_turn())

    assert not report.advanced
    assert log == []
    assert engine.state.round == 4
    assert engine.state.gold == 30
    assert report.persisted
    assert ("test", TURN_STATE) in store.tables


def test_win_when_no_ai_tiles(grid, registry) -> None:
    for q, r in [(3, 0), (3, 1), (2, 1)]:
        grid.set_owner(q, r, "Player 1")
    engine = make_engine(grid, registry)

    report = asyncio.run(engine.advance_turn())

    assert report.outcome == MatchOutcome.WIN
    assert engine.game_over


def test_lose_when_no_human_tiles(grid, registry) -> None:
    grid.set_owner(0, 0, "AI 1")
    grid.set_owner(1, 0, None)
    engine = make_engine(grid, registry)

    assert engine.check_win_lose() == MatchOutcome.LOSE


def test_ongoing_while_both_hold_land(grid, registry) -> None:
    engine = make_engine(grid, registry)
    assert engine.check_win_lose() == MatchOutcome.ONGOING
    assert not engine.game_over


def test_round_is_saved(grid, registry, gateway, store) -> None:
    place(registry, 1, "Player 1", 0, 0)
    engine = make_engine(grid, registry, gateway=gateway)

    report = asyncio.run(engine.advance_turn())

    assert report.persisted
    saved = asyncio.run(gateway.load_turn_state("test"))
    assert saved == {"round": 2, "turn": 0, "gold": 110}
    assert len(asyncio.run(gateway.load_tiles("test"))) == 8
    assert (GLOBAL_SCOPE, UNITS_STATE) in store.tables
    assert ("test", TILES) in store.tables


def test_save_failure_is_logged_not_raised(grid, registry, caplog) -> None:
    engine = make_engine(grid, registry, gateway=PersistenceGateway(FailingStore()))

    with caplog.at_level(logging.ERROR):
        report = asyncio.run(engine.advance_turn())

    assert report.advanced
    assert not report.persisted
    assert engine.state.round == 2
    assert "saveTurnState error" in caplog.text


def test_reentrant_advance_is_rejected(grid, registry) -> None:
    nested = []

    class ReentrantStore(MemoryStore):
        async def save(self, level, table, data):
            if table == TURN_STATE:
                nested.append(await engine.advance_turn())
            return await super().save(level, table, data)

    engine = make_engine(grid, registry, gateway=PersistenceGateway(ReentrantStore()))

    report = asyncio.run(engine.advance_turn())

    assert nested == [None]
    assert report.advanced
    assert engine.state.round == 2
    assert not engine.busy


def test_reset_restores_defaults(grid, registry, progression) -> None:
    engine = make_engine(grid, registry, progression=progression)
    engine.restore({"round": 12, "turn": 0, "gold": 5})
    progression.apply_round(12)

    engine.reset()

    assert engine.state.to_dict() == {"round": 1, "turn": 0, "gold": 100}
    assert progression.unlocked_tier == 1
