from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from cardforge.engine.combat import new_combat, run_full_combat
from cardforge.engine.state import BattleSummary, CombatConfig
from cardforge.engine.types import AIRule, CardDefinition, EnemyDefinition

logger = logging.getLogger(__name__)

DEFAULT_BATTLES = 10


@dataclass(frozen=True)
class QuickTestReport:
    battles: int
    wins: int
    losses: int
    avg_turns: float
    avg_hp_on_wins: float
    avg_damage_dealt: float
    avg_damage_taken: float

    @property
    def win_rate(self) -> float:
        return self.wins / self.battles if self.battles else 0.0


def aggregate(summaries: Sequence[BattleSummary]) -> QuickTestReport:
    n = len(summaries)
    wins = [s for s in summaries if s.result == "win"]
    denom = max(n, 1)
    return QuickTestReport(
        battles=n,
        wins=len(wins),
        losses=n - len(wins),
        avg_turns=sum(s.turns_elapsed for s in summaries) / denom,
        avg_hp_on_wins=sum(s.player_hp_remaining for s in wins) / max(len(wins), 1),
        avg_damage_dealt=sum(s.damage_dealt for s in summaries) / denom,
        avg_damage_taken=sum(s.damage_received for s in summaries) / denom,
    )


def run_quick_test(
    deck: Sequence[CardDefinition],
    rules: Sequence[AIRule],
    enemies: Sequence[EnemyDefinition],
    *,
    battles: int = DEFAULT_BATTLES,
    seed: int = 0,
    config: CombatConfig | None = None,
    on_battle: Callable[[int, BattleSummary], None] | None = None,
) -> tuple[list[BattleSummary], QuickTestReport]:
    """Run ``battles`` independent combats seeded ``seed, seed + 1, ...``."""
    summaries: list[BattleSummary] = []
    for i in range(battles):
        state = new_combat(deck, rules, enemies, seed=seed + i, config=config)
        summary = run_full_combat(state)
        summaries.append(summary)
        if on_battle is not None:
            on_battle(i, summary)
    report = aggregate(summaries)
    logger.info("Quick test: %d/%d wins", report.wins, report.battles)
    return summaries, report
