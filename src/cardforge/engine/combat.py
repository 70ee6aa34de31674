from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .actions import PlayCardAction
from .ai import has_action, select_action, sort_rules
from .state import (
    BattleSummary,
    CardInstance,
    CombatConfig,
    CombatLogEntry,
    CombatState,
    EnemyInstance,
    LogPhase,
    PlayerState,
)
from .types import (
    AIRule,
    AttackDefendIntent,
    AttackIntent,
    BlockEffect,
    BlockRetainEffect,
    BuffIntent,
    CardDefinition,
    CorpseExplodeEffect,
    DamageEffect,
    DamageRampEffect,
    DebuffEffect,
    DebuffIntent,
    DefendIntent,
    DrawEffect,
    Effect,
    EnemyDefinition,
    EnergyEffect,
    HealEffect,
    Intent,
    PoisonEffect,
    PoisonMultiplyEffect,
    RetaliateEffect,
    SelfDamageEffect,
    StatEffect,
    StrengthPerTurnEffect,
    SummonIntent,
)

logger = logging.getLogger(__name__)

WEAKNESS_MULTIPLIER = 0.75
VULNERABILITY_MULTIPLIER = 1.5
BOSS_PHASE_THRESHOLD = 0.5


@dataclass
class StepResult:
    ongoing: bool
    entries: list[CombatLogEntry]


def _log(state: CombatState, phase: LogPhase, message: str) -> None:
    state.log.append(CombatLogEntry(turn=state.turn, phase=phase, message=message))


def _weaken(amount: int, weakness: int) -> int:
    if weakness > 0:
        return math.floor(amount * WEAKNESS_MULTIPLIER)
    return amount


def _vulnerable(amount: int, vulnerability: int) -> int:
    if vulnerability > 0:
        return math.floor(amount * VULNERABILITY_MULTIPLIER)
    return amount


def _instantiate_enemy(state: CombatState, definition: EnemyDefinition) -> EnemyInstance:
    return EnemyInstance(
        definition=definition,
        instance_id=state.allocate_id(),
        hp=definition.base_hp,
        max_hp=definition.base_hp,
    )


def new_combat(
    deck: Sequence[CardDefinition],
    rules: Iterable[AIRule],
    enemies: Sequence[EnemyDefinition],
    *,
    seed: int | None = None,
    rng: random.Random | None = None,
    config: CombatConfig | None = None,
) -> CombatState:
    """Create a fresh combat: new card instances, shuffled, and enemy instances.

    Randomness comes from ``rng`` when given, otherwise from ``random.Random(seed)``.
    """
    cfg = config or CombatConfig()
    gen = rng if rng is not None else random.Random(seed)
    max_hp = cfg.player_max_hp
    player = PlayerState(
        hp=cfg.player_hp if cfg.player_hp is not None else max_hp,
        max_hp=max_hp,
        energy=cfg.max_energy,
        max_energy=cfg.max_energy,
    )
    state = CombatState(
        config=cfg,
        rng=gen,
        rules=sort_rules(rules),
        player=player,
        enemies=[],
        max_turns=cfg.turn_limit,
    )
    for card in deck:
        player.draw_pile.append(CardInstance(card=card, instance_id=state.allocate_id()))
    gen.shuffle(player.draw_pile)
    state.card_total = len(player.draw_pile)
    for definition in enemies:
        state.enemies.append(_instantiate_enemy(state, definition))
    logger.debug(
        "New combat: %d cards, %d rules, enemies=%s",
        state.card_total,
        len(state.rules),
        [e.definition.id for e in state.enemies],
    )
    return state


def _draw_cards(state: CombatState, count: int) -> None:
    p = state.player
    drawn = 0
    for _ in range(max(0, count)):
        if len(p.hand) >= state.config.max_hand_size:
            break
        if not p.draw_pile:
            if not p.discard_pile:
                break
            p.draw_pile, p.discard_pile = p.discard_pile, []
            state.rng.shuffle(p.draw_pile)
            _log(state, "player", "Shuffles the discard pile into the draw pile.")
        p.hand.append(p.draw_pile.pop())
        drawn += 1
    _log(state, "player", f"Draws {drawn} cards. Hand: {', '.join(c.card.name for c in p.hand)}")


def _mark_dead(state: CombatState, enemy: EnemyInstance, message: str) -> None:
    enemy.dead = True
    _log(state, "system", message)


def _corpse_explosion(state: CombatState, source: EnemyInstance) -> None:
    # One pass over the enemies alive right now; secondary deaths do not explode.
    blast = source.max_hp
    for other in state.alive_enemies():
        if other is source:
            continue
        other.hp -= blast
        state.stats.damage_dealt += blast
        _log(state, "system", f"{source.name} explodes for {blast} damage to {other.name}!")
        if other.hp <= 0:
            _mark_dead(state, other, f"{other.name} is defeated!")


def _damage_enemy(state: CombatState, enemy: EnemyInstance, raw: int) -> None:
    if enemy.dead:
        return
    dmg = _vulnerable(max(0, raw), enemy.status.vulnerability)
    blocked = min(enemy.block, dmg)
    enemy.block -= blocked
    through = dmg - blocked
    enemy.hp -= through
    state.stats.damage_dealt += through
    suffix = f" ({blocked} blocked)" if blocked > 0 else ""
    _log(state, "player", f"Deals {dmg} to {enemy.name}{suffix}. (HP: {enemy.hp}/{enemy.max_hp})")

    thorn = enemy.status.thorn
    if thorn > 0 and through > 0:
        state.player.hp -= thorn
        state.stats.damage_received += thorn
        _log(state, "enemy", f"{enemy.name}'s thorns deal {thorn} to player.")

    if enemy.hp <= 0:
        _mark_dead(state, enemy, f"{enemy.name} is defeated!")
        if enemy.status.corpse_explode:
            _corpse_explosion(state, enemy)


def _damage_player(state: CombatState, raw: int, attacker: EnemyInstance) -> None:
    p = state.player
    dmg = _vulnerable(max(0, raw), p.status.vulnerability)
    blocked = min(p.block, dmg)
    p.block -= blocked
    through = dmg - blocked
    p.hp -= through
    state.stats.damage_received += through
    suffix = f" ({blocked} blocked)" if blocked > 0 else ""
    _log(state, "enemy", f"{attacker.name} deals {dmg} to player{suffix}. (HP: {p.hp}/{p.max_hp})")

    thorn = p.status.thorn
    if thorn > 0 and not attacker.dead:
        attacker.hp -= thorn
        state.stats.damage_dealt += thorn
        _log(state, "player", f"Thorns deal {thorn} to {attacker.name}. (HP: {attacker.hp}/{attacker.max_hp})")
        if attacker.hp <= 0:
            _mark_dead(state, attacker, f"{attacker.name} is defeated by thorns!")


def _target_enemy(state: CombatState, index: int) -> EnemyInstance | None:
    if 0 <= index < len(state.enemies) and not state.enemies[index].dead:
        return state.enemies[index]
    alive = state.alive_enemies()
    return alive[0] if alive else None


def _gain_stat(state: CombatState, effect: StatEffect) -> None:
    s = state.player.status
    amount = effect.amount
    temporary = effect.duration == "turn"
    label = {"str": "STR", "dex": "DEX", "thorn": "Thorn"}[effect.type]
    if effect.type == "str":
        s.strength += amount
        if temporary:
            s.strength_temp += amount
        total = s.strength
    elif effect.type == "dex":
        s.dexterity += amount
        if temporary:
            s.dexterity_temp += amount
        total = s.dexterity
    else:
        s.thorn += amount
        if temporary:
            s.thorn_temp += amount
        total = s.thorn
    if temporary:
        _log(state, "player", f"Gains {amount} temporary {label}.")
    else:
        _log(state, "player", f"Gains {amount} {label}. (Total: {total})")


def _resolve_effect(state: CombatState, effect: Effect, ci: CardInstance, target_index: int) -> None:
    p = state.player
    target = _target_enemy(state, target_index)

    if isinstance(effect, DamageEffect):
        dmg = _weaken(effect.amount + p.status.strength + ci.ramp_bonus, p.status.weakness)
        for _ in range(max(1, effect.hits)):
            if effect.target == "all_enemies":
                for e in state.alive_enemies():
                    _damage_enemy(state, e, dmg)
            else:
                target = _target_enemy(state, target_index)
                if target is None:
                    break
                _damage_enemy(state, target, dmg)
            if state.all_enemies_dead():
                break

    elif isinstance(effect, BlockEffect):
        gained = max(0, effect.amount + p.status.dexterity)
        p.block += gained
        _log(state, "player", f"Gains {gained} block. (Total: {p.block})")

    elif isinstance(effect, HealEffect):
        before = p.hp
        p.hp = min(p.max_hp, p.hp + effect.amount)
        _log(state, "player", f"Heals {p.hp - before} HP. (HP: {p.hp}/{p.max_hp})")

    elif isinstance(effect, SelfDamageEffect):
        p.hp -= effect.amount
        state.stats.damage_received += effect.amount
        _log(state, "player", f"Takes {effect.amount} self-damage. (HP: {p.hp}/{p.max_hp})")

    elif isinstance(effect, PoisonEffect):
        if effect.target == "self":
            p.status.poison += effect.stacks
            _log(state, "player", f"Gains {effect.stacks} Poison. (Total: {p.status.poison})")
        elif effect.target == "all_enemies":
            for e in state.alive_enemies():
                e.status.poison += effect.stacks
            _log(state, "player", f"Applies {effect.stacks} Poison to all enemies.")
        elif target is not None:
            target.status.poison += effect.stacks
            _log(
                state,
                "player",
                f"Applies {effect.stacks} Poison to {target.name}. (Total: {target.status.poison})",
            )

    elif isinstance(effect, PoisonMultiplyEffect):
        if target is not None:
            before = target.status.poison
            target.status.poison *= effect.factor
            _log(
                state,
                "player",
                f"Multiplies {target.name}'s Poison by {effect.factor}. ({before} -> {target.status.poison})",
            )

    elif isinstance(effect, DebuffEffect):
        label = "Weakness" if effect.type == "weakness" else "Vulnerability"
        if effect.target == "self":
            setattr(p.status, effect.type, getattr(p.status, effect.type) + effect.stacks)
            _log(state, "player", f"Gains {effect.stacks} {label}.")
        elif effect.target == "all_enemies":
            for e in state.alive_enemies():
                setattr(e.status, effect.type, getattr(e.status, effect.type) + effect.stacks)
            _log(state, "player", f"Applies {effect.stacks} {label} to all enemies.")
        elif target is not None:
            setattr(target.status, effect.type, getattr(target.status, effect.type) + effect.stacks)
            _log(state, "player", f"Applies {effect.stacks} {label} to {target.name}.")

    elif isinstance(effect, StatEffect):
        _gain_stat(state, effect)

    elif isinstance(effect, RetaliateEffect):
        p.status.thorn += effect.amount
        p.status.thorn_temp += effect.amount
        _log(state, "player", f"Sets up {effect.amount} retaliation damage.")

    elif isinstance(effect, EnergyEffect):
        p.energy += effect.amount
        _log(state, "player", f"Gains {effect.amount} energy. (Total: {p.energy})")

    elif isinstance(effect, DrawEffect):
        _draw_cards(state, effect.count)

    elif isinstance(effect, StrengthPerTurnEffect):
        p.status.strength_per_turn += effect.amount
        _log(state, "player", f"Will gain {effect.amount} STR at the start of each turn.")

    elif isinstance(effect, BlockRetainEffect):
        p.status.block_retain = True
        _log(state, "player", "Block no longer decays.")

    elif isinstance(effect, DamageRampEffect):
        ci.ramp_bonus += effect.amount
        _log(state, "player", f"{ci.card.name} gains +{effect.amount} damage for next play.")

    elif isinstance(effect, CorpseExplodeEffect):
        if target is not None:
            target.status.corpse_explode = True
            _log(state, "player", f"{target.name} will explode on death.")


def play_card(state: CombatState, action: PlayCardAction) -> None:
    """Pay for and resolve one card, then move it to discard or exhaust."""
    p = state.player
    ci = action.card
    card = ci.card
    p.energy -= card.cost
    p.hand.remove(ci)
    state.stats.cards_played += 1
    _log(state, "player", f"Plays {card.name} (cost {card.cost}, energy left: {p.energy})")

    for effect in card.effects:
        _resolve_effect(state, effect, ci, action.target_index)

    if card.exhaust or ci.exhausted:
        p.exhaust_pile.append(ci)
        _log(state, "player", f"{card.name} exhausts.")
    else:
        p.discard_pile.append(ci)


def _start_player_turn(state: CombatState) -> None:
    p = state.player
    s = p.status
    if not s.block_retain:
        p.block = 0
    p.energy = p.max_energy

    if s.strength_per_turn > 0:
        s.strength += s.strength_per_turn
        _log(state, "player", f"Gains {s.strength_per_turn} STR from passive. (Total: {s.strength})")

    if s.poison > 0:
        p.hp -= s.poison
        _log(state, "player", f"Takes {s.poison} poison damage. (HP: {p.hp}/{p.max_hp})")
        s.poison = max(0, s.poison - 1)

    limit = min(state.config.hand_size, state.config.max_hand_size)
    _draw_cards(state, limit - len(p.hand))


def _player_actions(state: CombatState) -> None:
    limit = state.config.action_limit
    for _ in range(limit):
        action = select_action(state)
        if action is None:
            return
        play_card(state, action)
        if state.all_enemies_dead() or state.player.hp <= 0:
            return
    if not has_action(state):
        return
    logger.debug("Action limit %d reached on turn %d", limit, state.turn)
    _log(state, "system", f"Action limit ({limit}) reached; ending the turn.")


def _end_player_turn(state: CombatState) -> None:
    p = state.player
    while p.hand:
        p.discard_pile.append(p.hand.pop())
    p.status.revert_temporary()


def _start_enemy_turn(state: CombatState, enemy: EnemyInstance) -> None:
    enemy.block = 0
    s = enemy.status
    if s.strength_per_turn > 0:
        s.strength += s.strength_per_turn
    if s.poison > 0:
        enemy.hp -= s.poison
        state.stats.damage_dealt += s.poison
        _log(state, "system", f"{enemy.name} takes {s.poison} poison damage. (HP: {enemy.hp}/{enemy.max_hp})")
        s.poison = max(0, s.poison - 1)
        if enemy.hp <= 0:
            _mark_dead(state, enemy, f"{enemy.name} dies to poison!")


def _end_enemy_turn(enemy: EnemyInstance) -> None:
    s = enemy.status
    if s.weakness > 0:
        s.weakness -= 1
    if s.vulnerability > 0:
        s.vulnerability -= 1
    s.revert_temporary()


def _check_phase_transition(state: CombatState, enemy: EnemyInstance) -> None:
    phases = enemy.definition.phases
    if len(phases) < 2 or enemy.current_phase != 0:
        return
    if enemy.hp / enemy.max_hp > BOSS_PHASE_THRESHOLD:
        return
    enemy.current_phase = 1
    enemy.pattern_index = 0
    next_phase = phases[1]
    transition = next_phase.transition
    if transition is not None:
        enemy.status.strength += transition.strength
        enemy.block += transition.block
        _log(
            state,
            "enemy",
            f"{enemy.name} enters {next_phase.name}! "
            f"Gains {transition.strength} STR and {transition.block} Block.",
        )
    else:
        _log(state, "enemy", f"{enemy.name} enters {next_phase.name}!")


def _heal_enemy(state: CombatState, enemy: EnemyInstance, amount: int, reason: str) -> None:
    enemy.hp = min(enemy.max_hp, enemy.hp + amount)
    _log(state, "enemy", f"{enemy.name} heals {amount}{reason}. (HP: {enemy.hp}/{enemy.max_hp})")


def _summon(state: CombatState, intent: SummonIntent) -> int:
    count = state.rng.randint(intent.min_count, max(intent.min_count, intent.max_count))
    for _ in range(count):
        state.enemies.append(_instantiate_enemy(state, intent.enemy))
    return count


def _execute_intent(state: CombatState, enemy: EnemyInstance, intent: Intent) -> None:
    name = enemy.name
    s = enemy.status
    p = state.player

    if isinstance(intent, AttackIntent):
        dmg = intent.damage + s.strength
        if intent.type == "attack_multi":
            _log(state, "enemy", f"{name} uses {intent.display} ({intent.hits} hits).")
        else:
            _log(state, "enemy", f"{name} uses {intent.display}.")
        for _ in range(max(1, intent.hits)):
            # weakness is checked per hit
            hit = _weaken(dmg, s.weakness)
            _damage_player(state, hit, enemy)
            if p.hp <= 0:
                break
        if intent.lifesteal_percent > 0 and not enemy.dead:
            drained = math.floor(_weaken(dmg, s.weakness) * intent.lifesteal_percent)
            _heal_enemy(state, enemy, drained, " from lifesteal")
        if intent.heal > 0 and not enemy.dead:
            _heal_enemy(state, enemy, intent.heal, " HP")

    elif isinstance(intent, DefendIntent):
        enemy.block += intent.block
        _log(state, "enemy", f"{name} uses {intent.display}. Gains {intent.block} block. (Total: {enemy.block})")

    elif isinstance(intent, AttackDefendIntent):
        enemy.block += intent.block
        _log(state, "enemy", f"{name} uses {intent.display}. Gains {intent.block} block.")
        _damage_player(state, _weaken(intent.damage + s.strength, s.weakness), enemy)

    elif isinstance(intent, DebuffIntent):
        label = intent.status.capitalize()
        if intent.type == "debuff_attack":
            _log(state, "enemy", f"{name} uses {intent.display}.")
            _damage_player(state, _weaken(intent.damage + s.strength, s.weakness), enemy)
            setattr(p.status, intent.status, getattr(p.status, intent.status) + intent.stacks)
            _log(state, "enemy", f"Player gains {intent.stacks} {label}.")
        else:
            setattr(p.status, intent.status, getattr(p.status, intent.status) + intent.stacks)
            _log(state, "enemy", f"{name} uses {intent.display}. Player gains {intent.stacks} {label}.")

    elif isinstance(intent, BuffIntent):
        if intent.type == "buff_all":
            for e in state.alive_enemies():
                e.status.strength += intent.strength
            _log(state, "enemy", f"{name} uses {intent.display}. All enemies gain {intent.strength} STR.")
        else:
            s.strength += intent.strength
            _log(
                state,
                "enemy",
                f"{name} uses {intent.display}. Gains {intent.strength} STR. (Total: {s.strength})",
            )

    elif isinstance(intent, SummonIntent):
        count = _summon(state, intent)
        _log(state, "enemy", f"{name} uses {intent.display}. Summons {count} {intent.enemy.name}.")


def _enemy_phase(state: CombatState) -> None:
    # Reinforcements summoned this phase wait for the next one.
    roster = list(state.enemies)
    for enemy in roster:
        if enemy.dead:
            continue
        _start_enemy_turn(state, enemy)
        if enemy.dead:
            continue
        if state.player.hp <= 0:
            break

        _check_phase_transition(state, enemy)
        pattern = enemy.current_pattern()
        if not pattern:
            continue
        intent = pattern[enemy.pattern_index % len(pattern)]
        _execute_intent(state, enemy, intent)
        enemy.pattern_index = (enemy.pattern_index + 1) % len(pattern)
        _end_enemy_turn(enemy)

        if state.player.hp <= 0:
            break


def _check_win_lose(state: CombatState) -> bool:
    if state.all_enemies_dead():
        state.phase = "won"
        _log(state, "system", "All enemies defeated. Victory!")
        logger.info("Combat won on turn %d (hp %d)", state.turn, state.player.hp)
        return True
    if state.player.hp <= 0:
        state.phase = "lost"
        _log(state, "system", "Player HP reached 0. Defeat.")
        logger.info("Combat lost on turn %d", state.turn)
        return True
    return False


def _run_turn(state: CombatState) -> None:
    state.turn += 1
    state.phase = "player_turn"
    _log(state, "system", f"=== Turn {state.turn} ===")
    logger.debug("Turn %d begins", state.turn)

    _start_player_turn(state)
    if _check_win_lose(state):
        return
    _player_actions(state)
    if _check_win_lose(state):
        return
    _end_player_turn(state)

    state.phase = "enemy_turn"
    _enemy_phase(state)
    if not _check_win_lose(state):
        state.phase = "player_turn"


def step(state: CombatState) -> StepResult:
    """Advance the combat by exactly one turn (player phase then enemy phase).

    This mutates ``state`` in place but stays deterministic for a given seed
    and inputs. Stepping a finished combat is a no-op.
    """
    if state.finished:
        return StepResult(ongoing=False, entries=[])
    start = len(state.log)
    if state.turn >= state.max_turns:
        state.phase = "lost"
        _log(state, "system", "Turn limit reached. The construct collapses.")
        logger.info("Combat hit the turn limit (%d)", state.max_turns)
    else:
        _run_turn(state)
    return StepResult(ongoing=not state.finished, entries=state.log[start:])


def summarize(state: CombatState) -> BattleSummary:
    if not state.finished:
        raise ValueError("Combat is still in progress.")
    return BattleSummary(
        result="win" if state.phase == "won" else "lose",
        turns_elapsed=state.turn,
        player_hp_remaining=state.player.hp,
        enemies_defeated=sum(1 for e in state.enemies if e.dead),
        cards_played=state.stats.cards_played,
        damage_dealt=state.stats.damage_dealt,
        damage_received=state.stats.damage_received,
    )


def run_full_combat(state: CombatState) -> BattleSummary:
    while step(state).ongoing:
        pass
    return summarize(state)


class BattleEngine:
    """Stateful facade over :func:`new_combat`, :func:`step` and :func:`run_full_combat`.

    Suited to a UI that steps one turn at a time and re-renders snapshots.
    """

    def __init__(
        self,
        rules: Iterable[AIRule],
        *,
        seed: int | None = None,
        rng: random.Random | None = None,
        config: CombatConfig | None = None,
    ) -> None:
        self._rules = sort_rules(rules)
        self._rng = rng if rng is not None else random.Random(seed)
        self._config = config
        self._state: CombatState | None = None

    @property
    def state(self) -> CombatState:
        if self._state is None:
            raise RuntimeError("init_combat() has not been called.")
        return self._state

    def init_combat(
        self,
        deck: Sequence[CardDefinition],
        enemies: Sequence[EnemyDefinition],
        config: CombatConfig | None = None,
    ) -> CombatState:
        self._state = new_combat(
            deck, self._rules, enemies, rng=self._rng, config=config or self._config
        )
        return self._state

    def run_single_turn(self) -> bool:
        """Advance one turn; returns False once the combat has ended."""
        return step(self.state).ongoing

    def run_full_combat(self) -> BattleSummary:
        return run_full_combat(self.state)

    def get_battle_summary(self) -> BattleSummary:
        return summarize(self.state)
