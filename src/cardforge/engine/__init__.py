"""Deterministic, headless combat engine for CardForge.

IMPORTANT: This package does no I/O; content loading lives in ``cardforge.services``.
"""

from .actions import PlayCardAction
from .ai import select_action, select_action_for
from .combat import BattleEngine, StepResult, new_combat, run_full_combat, step, summarize
from .state import BattleSummary, CombatConfig, CombatLogEntry, CombatState
from .types import AIRule, CardDefinition, CardType, Condition, EnemyDefinition, Rarity

__all__ = [
    "AIRule",
    "BattleEngine",
    "BattleSummary",
    "CardDefinition",
    "CardType",
    "CombatConfig",
    "CombatLogEntry",
    "CombatState",
    "Condition",
    "EnemyDefinition",
    "PlayCardAction",
    "Rarity",
    "StepResult",
    "new_combat",
    "run_full_combat",
    "select_action",
    "select_action_for",
    "step",
    "summarize",
]
