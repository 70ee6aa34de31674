from __future__ import annotations

from .state import BattleSummary, CardInstance, CombatLogEntry, CombatState, EnemyInstance, StatusEffects


def _status_to_dict(s: StatusEffects) -> dict[str, object]:
    return {
        "poison": s.poison,
        "weakness": s.weakness,
        "vulnerability": s.vulnerability,
        "strength": s.strength,
        "strength_temp": s.strength_temp,
        "dexterity": s.dexterity,
        "dexterity_temp": s.dexterity_temp,
        "thorn": s.thorn,
        "thorn_temp": s.thorn_temp,
        "strength_per_turn": s.strength_per_turn,
        "block_retain": s.block_retain,
        "corpse_explode": s.corpse_explode,
    }


def _card_to_dict(c: CardInstance) -> dict[str, object]:
    return {
        "card_id": c.card.id,
        "instance_id": c.instance_id,
        "ramp_bonus": c.ramp_bonus,
        "exhausted": c.exhausted,
    }


def _enemy_to_dict(e: EnemyInstance) -> dict[str, object]:
    return {
        "enemy_id": e.definition.id,
        "name": e.name,
        "instance_id": e.instance_id,
        "hp": e.hp,
        "max_hp": e.max_hp,
        "block": e.block,
        "status": _status_to_dict(e.status),
        "pattern_index": e.pattern_index,
        "current_phase": e.current_phase,
        "dead": e.dead,
    }


def log_entry_to_dict(entry: CombatLogEntry) -> dict[str, object]:
    return {"turn": entry.turn, "phase": entry.phase, "message": entry.message}


def log_to_dicts(entries: list[CombatLogEntry]) -> list[dict[str, object]]:
    return [log_entry_to_dict(e) for e in entries]


def summary_to_dict(summary: BattleSummary) -> dict[str, object]:
    return {
        "result": summary.result,
        "turns_elapsed": summary.turns_elapsed,
        "player_hp_remaining": summary.player_hp_remaining,
        "enemies_defeated": summary.enemies_defeated,
        "cards_played": summary.cards_played,
        "damage_dealt": summary.damage_dealt,
        "damage_received": summary.damage_received,
    }


def snapshot(state: CombatState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current combat state."""
    p = state.player
    return {
        "turn": state.turn,
        "max_turns": state.max_turns,
        "phase": state.phase,
        "player": {
            "hp": p.hp,
            "max_hp": p.max_hp,
            "block": p.block,
            "energy": p.energy,
            "max_energy": p.max_energy,
            "status": _status_to_dict(p.status),
            "hand": [_card_to_dict(c) for c in p.hand],
            "draw_pile": [_card_to_dict(c) for c in p.draw_pile],
            "discard_pile": [_card_to_dict(c) for c in p.discard_pile],
            "exhaust_pile": [_card_to_dict(c) for c in p.exhaust_pile],
        },
        "enemies": [_enemy_to_dict(e) for e in state.enemies],
        "log": log_to_dicts(state.log),
    }
