from __future__ import annotations

import pytest

from cardforge.engine.ai import evaluate_condition, has_action, resolve_target, select_action, select_action_for
from cardforge.engine.combat import new_combat
from cardforge.engine.state import CombatConfig, CombatState
from cardforge.engine.types import (
    AIRule,
    AttackIntent,
    BlockEffect,
    CardDefinition,
    Condition,
    DamageEffect,
    EnemyDefinition,
    EnergyEffect,
)

STRIKE = CardDefinition(
    id="strike", name="Strike", type="attack", cost=1, effects=(DamageEffect(type="damage", amount=6),)
)
DEFEND = CardDefinition(
    id="defend", name="Defend", type="defense", cost=1, effects=(BlockEffect(type="block", amount=5),)
)
BASH = CardDefinition(
    id="bash", name="Bash", type="attack", cost=2, effects=(DamageEffect(type="damage", amount=8),)
)
SPARK = CardDefinition(
    id="spark", name="Spark", type="generator", cost=0, effects=(EnergyEffect(type="energy", amount=1),)
)


def _enemy(enemy_id: str = "dummy", hp: int = 30) -> EnemyDefinition:
    return EnemyDefinition(
        id=enemy_id,
        name=enemy_id.title(),
        base_hp=hp,
        pattern=(AttackIntent(type="attack", display="Poke", damage=5),),
    )


def _state(
    hand: list[CardDefinition],
    rules: list[AIRule] | None = None,
    enemies: list[EnemyDefinition] | None = None,
) -> CombatState:
    state = new_combat(hand, rules or [], enemies or [_enemy()], seed=7, config=CombatConfig())
    p = state.player
    # deck order, not shuffle order
    p.hand = sorted(p.draw_pile, key=lambda c: c.instance_id)
    p.draw_pile = []
    return state


def _always(priority: int, card_id: str, target: str = "nearest") -> AIRule:
    return AIRule(priority=priority, condition=Condition.always(), card_id=card_id, target=target)  # type: ignore[arg-type]


def test_priority_not_list_position_decides() -> None:
    state = _state([STRIKE, DEFEND])
    action = select_action_for(state, [_always(2, "strike"), _always(1, "defend")])
    assert action is not None
    assert action.card.card.id == "defend"


def test_rules_are_sorted_on_the_state() -> None:
    state = new_combat([STRIKE], [_always(5, "strike"), _always(1, "defend"), _always(3, "bash")], [_enemy()], seed=1)
    assert [r.priority for r in state.rules] == [1, 3, 5]


def test_inserting_higher_priority_rule_preempts() -> None:
    state = _state([STRIKE, DEFEND])
    rules = [_always(2, "strike")]
    first = select_action_for(state, rules)
    assert first is not None and first.card.card.id == "strike"

    rules.insert(0, _always(1, "defend"))
    second = select_action_for(state, rules)
    assert second is not None and second.card.card.id == "defend"


def test_rule_with_missing_card_is_skipped() -> None:
    state = _state([STRIKE])
    action = select_action_for(state, [_always(1, "bash"), _always(2, "strike")])
    assert action is not None
    assert action.card.card.id == "strike"


def test_unaffordable_rule_falls_through_to_free_card() -> None:
    state = _state([BASH, SPARK])
    state.player.energy = 1
    action = select_action_for(state, [_always(1, "bash")])
    assert action is not None
    assert action.card.card.id == "spark"


def test_fallback_prefers_cards_that_cost_energy() -> None:
    state = _state([SPARK, STRIKE])
    action = select_action_for(state, [])
    assert action is not None
    assert action.card.card.id == "strike"


def test_no_action_with_empty_hand_or_no_energy() -> None:
    state = _state([])
    assert select_action(state) is None

    state = _state([STRIKE, BASH])
    state.player.energy = 0
    assert select_action(state) is None


def test_no_action_when_all_enemies_dead() -> None:
    state = _state([STRIKE], [_always(1, "strike")])
    for e in state.enemies:
        e.dead = True
    assert select_action(state) is None


def test_condition_gates_rule() -> None:
    rules = [
        AIRule(priority=1, condition=Condition("hp_percent", "<", 50), card_id="defend", target="self"),
        _always(2, "strike"),
    ]
    state = _state([STRIKE, DEFEND], rules)
    action = select_action(state)
    assert action is not None and action.card.card.id == "strike"

    state.player.hp = 30
    action = select_action(state)
    assert action is not None and action.card.card.id == "defend"


@pytest.mark.parametrize(
    ("parameter", "operator", "value", "expected"),
    [
        ("always", "<", -1, True),
        ("hp_percent", "=", 50, True),
        ("hp", "<=", 40, True),
        ("block", ">", 7, False),
        ("energy", "!=", 3, False),
        ("enemy_count", "=", 2, True),
        ("hand_size", ">=", 2, True),
        ("poison_on_enemy", "=", 5, True),
        ("player_poison", "<", 2, True),
        ("player_str", "=", 2, True),
        ("mystery_stat", "=", 0, False),
    ],
)
def test_condition_parameters(parameter: str, operator: str, value: float, expected: bool) -> None:
    state = _state([STRIKE, DEFEND], enemies=[_enemy("a"), _enemy("b"), _enemy("c")])
    p = state.player
    p.hp = 40
    p.block = 7
    p.status.poison = 1
    p.status.strength = 2
    state.enemies[0].status.poison = 2
    state.enemies[1].status.poison = 5
    state.enemies[2].status.poison = 9
    state.enemies[2].dead = True

    cond = Condition(parameter=parameter, operator=operator, value=value)  # type: ignore[arg-type]
    assert evaluate_condition(cond, state) is expected


def test_poison_on_enemy_is_zero_without_living_enemies() -> None:
    state = _state([STRIKE])
    state.enemies[0].status.poison = 4
    state.enemies[0].dead = True
    assert evaluate_condition(Condition("poison_on_enemy", "=", 0), state)


def test_target_modes_index_into_full_enemy_list() -> None:
    enemies = [_enemy("a", 5), _enemy("b", 20), _enemy("c", 10), _enemy("d", 30), _enemy("e", 10)]
    state = _state([STRIKE], enemies=enemies)
    state.enemies[0].dead = True

    assert resolve_target(state, "self") == 0
    assert resolve_target(state, "nearest") == 1
    # ties keep the first occurrence
    assert resolve_target(state, "lowest_hp") == 2
    assert resolve_target(state, "highest_hp") == 3


def test_random_target_only_picks_living_enemies() -> None:
    enemies = [_enemy("a"), _enemy("b"), _enemy("c"), _enemy("d")]
    state = _state([STRIKE], enemies=enemies)
    state.enemies[1].dead = True

    picks = {resolve_target(state, "random") for _ in range(60)}
    assert picks <= {0, 2, 3}
    assert len(picks) > 1


def test_rule_target_is_used_for_the_action() -> None:
    enemies = [_enemy("a", 30), _enemy("b", 12)]
    state = _state([STRIKE], [_always(1, "strike", "lowest_hp")], enemies)
    action = select_action(state)
    assert action is not None
    assert action.target_index == 1


def test_has_action_leaves_the_rng_alone() -> None:
    enemies = [_enemy("a"), _enemy("b"), _enemy("c")]
    state = _state([STRIKE], [_always(1, "strike", "random")], enemies)
    before = state.rng.getstate()
    assert has_action(state)
    assert state.rng.getstate() == before

    state.player.energy = 0
    assert not has_action(state)
