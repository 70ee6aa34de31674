from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

CardType = Literal["attack", "defense", "skill", "reaction", "generator"]
Rarity = Literal["common", "uncommon", "rare"]
EnemyKind = Literal["normal", "elite", "boss"]

EnemyTarget = Literal["enemy", "all_enemies"]
StatusTarget = Literal["enemy", "all_enemies", "self"]
Duration = Literal["turn", "combat"]

ConditionOperator = Literal["<", ">", "<=", ">=", "=", "!="]
TargetMode = Literal["self", "nearest", "lowest_hp", "highest_hp", "random"]


@dataclass(frozen=True)
class DamageEffect:
    type: Literal["damage"]
    amount: int
    target: EnemyTarget = "enemy"
    hits: int = 1


@dataclass(frozen=True)
class BlockEffect:
    type: Literal["block"]
    amount: int


@dataclass(frozen=True)
class HealEffect:
    type: Literal["heal"]
    amount: int


@dataclass(frozen=True)
class SelfDamageEffect:
    type: Literal["damage_self"]
    amount: int


@dataclass(frozen=True)
class PoisonEffect:
    type: Literal["poison"]
    stacks: int
    target: StatusTarget = "enemy"


@dataclass(frozen=True)
class PoisonMultiplyEffect:
    type: Literal["poison_multiply"]
    factor: int


@dataclass(frozen=True)
class DebuffEffect:
    type: Literal["weakness", "vulnerability"]
    stacks: int
    target: StatusTarget = "enemy"


@dataclass(frozen=True)
class StatEffect:
    """Player STR/DEX/Thorn gain; ``duration="turn"`` also feeds the Temp counter."""

    type: Literal["str", "dex", "thorn"]
    amount: int
    duration: Duration = "combat"


@dataclass(frozen=True)
class RetaliateEffect:
    """Turn-scoped damage returned to each attacker; shares the Thorn counters."""

    type: Literal["damage_on_hit"]
    amount: int


@dataclass(frozen=True)
class EnergyEffect:
    type: Literal["energy"]
    amount: int


@dataclass(frozen=True)
class DrawEffect:
    type: Literal["draw"]
    count: int


@dataclass(frozen=True)
class StrengthPerTurnEffect:
    type: Literal["str_per_turn"]
    amount: int


@dataclass(frozen=True)
class BlockRetainEffect:
    type: Literal["block_retain"]


@dataclass(frozen=True)
class DamageRampEffect:
    type: Literal["damage_ramp"]
    amount: int


@dataclass(frozen=True)
class CorpseExplodeEffect:
    type: Literal["corpse_explode"]


Effect = (
    DamageEffect
    | BlockEffect
    | HealEffect
    | SelfDamageEffect
    | PoisonEffect
    | PoisonMultiplyEffect
    | DebuffEffect
    | StatEffect
    | RetaliateEffect
    | EnergyEffect
    | DrawEffect
    | StrengthPerTurnEffect
    | BlockRetainEffect
    | DamageRampEffect
    | CorpseExplodeEffect
)


@dataclass(frozen=True)
class CardDefinition:
    id: str
    name: str
    type: CardType
    cost: int
    effects: tuple[Effect, ...]
    rarity: Rarity = "common"
    exhaust: bool = False
    upgrade: Mapping[str, Mapping[str, int | str]] | None = None


@dataclass(frozen=True)
class CardDatabase:
    """Immutable card database used by the content layer."""

    cards: dict[str, CardDefinition]

    def get(self, card_id: str) -> CardDefinition:
        return self.cards[card_id]

    def all_ids(self) -> Sequence[str]:
        return list(self.cards.keys())


@dataclass(frozen=True)
class AttackIntent:
    type: Literal["attack", "attack_multi"]
    display: str
    damage: int
    hits: int = 1
    lifesteal_percent: float = 0.0
    heal: int = 0


@dataclass(frozen=True)
class DefendIntent:
    type: Literal["defend"]
    display: str
    block: int


@dataclass(frozen=True)
class AttackDefendIntent:
    type: Literal["attack_defend", "defend_attack"]
    display: str
    damage: int
    block: int


@dataclass(frozen=True)
class DebuffIntent:
    type: Literal["debuff", "debuff_attack"]
    display: str
    status: Literal["weakness", "poison", "vulnerability"]
    stacks: int
    damage: int = 0


@dataclass(frozen=True)
class BuffIntent:
    type: Literal["buff", "buff_all"]
    display: str
    strength: int


@dataclass(frozen=True)
class SummonIntent:
    type: Literal["summon"]
    display: str
    enemy: "EnemyDefinition"
    min_count: int = 1
    max_count: int = 1


Intent = AttackIntent | DefendIntent | AttackDefendIntent | DebuffIntent | BuffIntent | SummonIntent


@dataclass(frozen=True)
class PhaseTransition:
    strength: int = 0
    block: int = 0


@dataclass(frozen=True)
class BossPhase:
    name: str
    pattern: tuple[Intent, ...]
    transition: PhaseTransition | None = None


@dataclass(frozen=True)
class EnemyDefinition:
    id: str
    name: str
    base_hp: int
    kind: EnemyKind = "normal"
    pattern: tuple[Intent, ...] = ()
    phases: tuple[BossPhase, ...] = ()


@dataclass(frozen=True)
class EnemyDatabase:
    enemies: dict[str, EnemyDefinition]

    def get(self, enemy_id: str) -> EnemyDefinition:
        return self.enemies[enemy_id]

    def all_ids(self) -> Sequence[str]:
        return list(self.enemies.keys())


@dataclass(frozen=True)
class Condition:
    parameter: str
    operator: ConditionOperator = "="
    value: float = 0

    @staticmethod
    def always() -> "Condition":
        return Condition(parameter="always")


@dataclass(frozen=True)
class AIRule:
    priority: int
    condition: Condition
    card_id: str
    target: TargetMode = "nearest"
    description: str | None = None


@dataclass(frozen=True)
class StarterDeck:
    id: str
    name: str
    description: str
    cards: tuple[tuple[str, int], ...]
    rules: tuple[AIRule, ...] = field(default_factory=tuple)
