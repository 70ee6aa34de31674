from __future__ import annotations

from collections.abc import Iterable, Sequence

from .actions import PlayCardAction
from .state import CardInstance, CombatState, EnemyInstance
from .types import AIRule, Condition, TargetMode


def sort_rules(rules: Iterable[AIRule]) -> tuple[AIRule, ...]:
    """Lowest priority number first; equal priorities keep their input order."""
    return tuple(sorted(rules, key=lambda r: r.priority))


def _condition_value(condition: Condition, state: CombatState) -> float | None:
    p = state.player
    param = condition.parameter
    if param == "hp_percent":
        return p.hp / p.max_hp * 100 if p.max_hp > 0 else 0.0
    if param == "hp":
        return p.hp
    if param == "block":
        return p.block
    if param == "energy":
        return p.energy
    if param == "enemy_count":
        return len(state.alive_enemies())
    if param == "hand_size":
        return len(p.hand)
    if param == "poison_on_enemy":
        alive = state.alive_enemies()
        return max((e.status.poison for e in alive), default=0)
    if param == "player_poison":
        return p.status.poison
    if param == "player_str":
        return p.status.strength
    return None


def _compare(actual: float, op: str, value: float) -> bool:
    if op == "<":
        return actual < value
    if op == ">":
        return actual > value
    if op == "<=":
        return actual <= value
    if op == ">=":
        return actual >= value
    if op == "=":
        return actual == value
    if op == "!=":
        return actual != value
    return False


def evaluate_condition(condition: Condition, state: CombatState) -> bool:
    if condition.parameter == "always":
        return True
    actual = _condition_value(condition, state)
    if actual is None:
        # unknown parameter never fires
        return False
    return _compare(actual, condition.operator, condition.value)


def resolve_target(state: CombatState, mode: TargetMode) -> int:
    """Return an index into the full enemy list (dead enemies included)."""
    alive = state.alive_enemies()
    if not alive or mode == "self":
        return 0

    chosen: EnemyInstance
    if mode == "lowest_hp":
        chosen = alive[0]
        for e in alive[1:]:
            if e.hp < chosen.hp:
                chosen = e
    elif mode == "highest_hp":
        chosen = alive[0]
        for e in alive[1:]:
            if e.hp > chosen.hp:
                chosen = e
    elif mode == "random":
        chosen = alive[state.rng.randrange(len(alive))]
    else:
        chosen = alive[0]
    return state.enemies.index(chosen)


def _find_playable(hand: Sequence[CardInstance], card_id: str, energy: int) -> CardInstance | None:
    for ci in hand:
        if ci.card.id == card_id and ci.card.cost <= energy:
            return ci
    return None


def _pick_card(state: CombatState, rules: Iterable[AIRule]) -> tuple[CardInstance, TargetMode] | None:
    # Card choice only; target resolution may draw from the RNG.
    if not state.alive_enemies():
        return None
    p = state.player

    for rule in sort_rules(rules):
        if not evaluate_condition(rule.condition, state):
            continue
        ci = _find_playable(p.hand, rule.card_id, p.energy)
        if ci is None:
            continue
        return ci, rule.target

    for ci in p.hand:
        if 0 < ci.card.cost <= p.energy:
            return ci, "nearest"
    for ci in p.hand:
        if ci.card.cost == 0:
            return ci, "nearest"
    return None


def select_action_for(state: CombatState, rules: Iterable[AIRule]) -> PlayCardAction | None:
    """Evaluate ``rules`` top to bottom and return the first playable action.

    When no rule fires, fall back to any affordable card that costs energy,
    then to any free card, so a turn never stalls with playable cards in hand.
    """
    picked = _pick_card(state, rules)
    if picked is None:
        return None
    ci, mode = picked
    return PlayCardAction(card=ci, target_index=resolve_target(state, mode))


def select_action(state: CombatState) -> PlayCardAction | None:
    return select_action_for(state, state.rules)


def has_action(state: CombatState) -> bool:
    """True when :func:`select_action` would return an action; never touches the RNG."""
    return _pick_card(state, state.rules) is not None
