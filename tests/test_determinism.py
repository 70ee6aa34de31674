from __future__ import annotations

import json

import pytest

from cardforge.engine import BattleEngine, new_combat, run_full_combat, step
from cardforge.engine.serialize import log_to_dicts, snapshot
from cardforge.engine.types import (
    AIRule,
    AttackIntent,
    BlockEffect,
    CardDefinition,
    Condition,
    DamageEffect,
    DebuffEffect,
    EnemyDefinition,
)
from cardforge.paths import get_paths
from cardforge.services.content import ContentService, build_deck


def _poisoner_setup():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    template = content.load_starter_decks()["poisoner"]
    deck = build_deck(template, content.load_cards_db())
    enemies = content.enemies_by_id(["slime", "gremlin"])
    return deck, template.rules, enemies


def test_same_seed_same_battle() -> None:
    deck, rules, enemies = _poisoner_setup()

    s1 = new_combat(deck, rules, enemies, seed=424242)
    r1 = run_full_combat(s1)
    s2 = new_combat(deck, rules, enemies, seed=424242)
    r2 = run_full_combat(s2)

    assert r1 == r2
    assert log_to_dicts(s1.log) == log_to_dicts(s2.log)
    assert snapshot(s1) == snapshot(s2)


def test_stepping_matches_running_to_completion() -> None:
    deck, rules, enemies = _poisoner_setup()

    stepped = new_combat(deck, rules, enemies, seed=9)
    entries = []
    while True:
        result = step(stepped)
        entries.extend(result.entries)
        if not result.ongoing:
            break

    ran = new_combat(deck, rules, enemies, seed=9)
    run_full_combat(ran)

    assert entries == stepped.log
    assert snapshot(stepped) == snapshot(ran)


def test_engine_facade_matches_functional_api() -> None:
    deck, rules, enemies = _poisoner_setup()

    engine = BattleEngine(rules, seed=5)
    engine.init_combat(deck, enemies)

    while engine.run_single_turn():
        pass
    summary = engine.get_battle_summary()

    expected = run_full_combat(new_combat(deck, rules, enemies, seed=5))
    assert summary == expected


def test_engine_requires_init() -> None:
    engine = BattleEngine([], seed=1)
    with pytest.raises(RuntimeError):
        engine.run_single_turn()


def test_snapshot_is_json_serializable() -> None:
    deck, rules, enemies = _poisoner_setup()
    state = new_combat(deck, rules, enemies, seed=3)
    step(state)
    text = json.dumps(snapshot(state), sort_keys=True)
    assert json.loads(text)["turn"] == 1


STRIKE = CardDefinition(
    id="strike_card", name="Strike", type="attack", cost=1, effects=(DamageEffect(type="damage", amount=6),)
)
DEFEND = CardDefinition(
    id="defend_card", name="Defend", type="defense", cost=1, effects=(BlockEffect(type="block", amount=5),)
)
BASH = CardDefinition(
    id="bash",
    name="Bash",
    type="attack",
    cost=2,
    effects=(DamageEffect(type="damage", amount=8), DebuffEffect(type="vulnerability", stacks=2)),
)
TRAINING_DUMMY = EnemyDefinition(
    id="dummy",
    name="Training Dummy",
    base_hp=30,
    pattern=(
        AttackIntent(type="attack", display="Jab", damage=6),
        AttackIntent(type="attack", display="Swing", damage=8),
    ),
)
RULES = [
    AIRule(priority=1, condition=Condition("hp_percent", "<", 50), card_id="defend_card", target="self"),
    AIRule(priority=2, condition=Condition.always(), card_id="strike_card", target="nearest"),
]


@pytest.mark.parametrize("seed", range(5))
def test_starter_deck_beats_training_dummy(seed: int) -> None:
    deck = [STRIKE] * 6 + [DEFEND] * 5 + [BASH]
    state = new_combat(deck, RULES, [TRAINING_DUMMY], seed=seed)
    summary = run_full_combat(state)

    assert summary.result == "win"
    assert summary.turns_elapsed <= state.max_turns
    assert summary.damage_dealt >= TRAINING_DUMMY.base_hp
    assert summary.enemies_defeated == 1
