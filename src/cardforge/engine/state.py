from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Literal

from .types import AIRule, CardDefinition, EnemyDefinition, Intent

Phase = Literal["player_turn", "enemy_turn", "won", "lost"]
LogPhase = Literal["player", "enemy", "system"]
BattleResult = Literal["win", "lose"]


@dataclass(frozen=True)
class CombatConfig:
    player_max_hp: int = 80
    player_hp: int | None = None  # defaults to player_max_hp
    max_energy: int = 3
    hand_size: int = 5
    max_hand_size: int = 10
    turn_limit: int = 50
    action_limit: int = 30


@dataclass
class StatusEffects:
    poison: int = 0
    weakness: int = 0
    vulnerability: int = 0
    strength: int = 0
    strength_temp: int = 0  # turn-only share of strength
    dexterity: int = 0
    dexterity_temp: int = 0
    thorn: int = 0
    thorn_temp: int = 0
    strength_per_turn: int = 0
    block_retain: bool = False
    corpse_explode: bool = False

    def revert_temporary(self) -> None:
        """Drop the turn-scoped share of STR/DEX/Thorn."""
        self.strength -= self.strength_temp
        self.strength_temp = 0
        self.dexterity -= self.dexterity_temp
        self.dexterity_temp = 0
        self.thorn -= self.thorn_temp
        self.thorn_temp = 0


@dataclass(eq=False)
class CardInstance:
    """One physical copy of a card for the duration of a combat.

    Instances compare by identity so that two copies of the same card are
    never confused when moving between piles.
    """

    card: CardDefinition
    instance_id: int
    ramp_bonus: int = 0
    exhausted: bool = False


@dataclass
class PlayerState:
    hp: int
    max_hp: int
    energy: int
    max_energy: int
    block: int = 0
    status: StatusEffects = field(default_factory=StatusEffects)
    hand: list[CardInstance] = field(default_factory=list)
    draw_pile: list[CardInstance] = field(default_factory=list)
    discard_pile: list[CardInstance] = field(default_factory=list)
    exhaust_pile: list[CardInstance] = field(default_factory=list)

    def card_count(self) -> int:
        return len(self.hand) + len(self.draw_pile) + len(self.discard_pile) + len(self.exhaust_pile)


@dataclass(eq=False)
class EnemyInstance:
    definition: EnemyDefinition
    instance_id: int
    hp: int
    max_hp: int
    block: int = 0
    status: StatusEffects = field(default_factory=StatusEffects)
    pattern_index: int = 0
    current_phase: int = 0
    dead: bool = False

    @property
    def name(self) -> str:
        return self.definition.name

    def current_pattern(self) -> tuple[Intent, ...]:
        phases = self.definition.phases
        if phases:
            return phases[self.current_phase].pattern
        return self.definition.pattern


@dataclass(frozen=True)
class CombatLogEntry:
    turn: int
    phase: LogPhase
    message: str


@dataclass
class CombatStats:
    cards_played: int = 0
    damage_dealt: int = 0
    damage_received: int = 0


@dataclass
class CombatState:
    config: CombatConfig
    rng: random.Random
    rules: tuple[AIRule, ...]
    player: PlayerState
    enemies: list[EnemyInstance]
    turn: int = 0
    max_turns: int = 50
    phase: Phase = "player_turn"
    log: list[CombatLogEntry] = field(default_factory=list)
    stats: CombatStats = field(default_factory=CombatStats)
    card_total: int = 0
    next_instance_id: int = 1

    @property
    def finished(self) -> bool:
        return self.phase in ("won", "lost")

    def alive_enemies(self) -> list[EnemyInstance]:
        return [e for e in self.enemies if not e.dead]

    def all_enemies_dead(self) -> bool:
        return all(e.dead for e in self.enemies)

    def allocate_id(self) -> int:
        iid = self.next_instance_id
        self.next_instance_id += 1
        return iid


@dataclass(frozen=True)
class BattleSummary:
    result: BattleResult
    turns_elapsed: int
    player_hp_remaining: int
    enemies_defeated: int
    cards_played: int
    damage_dealt: int
    damage_received: int
