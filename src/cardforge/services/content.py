from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Sequence

from jsonschema import Draft202012Validator

from cardforge.engine.types import (
    AIRule,
    AttackDefendIntent,
    AttackIntent,
    BlockEffect,
    BlockRetainEffect,
    BossPhase,
    BuffIntent,
    CardDatabase,
    CardDefinition,
    Condition,
    CorpseExplodeEffect,
    DamageEffect,
    DamageRampEffect,
    DebuffEffect,
    DebuffIntent,
    DefendIntent,
    DrawEffect,
    Effect,
    EnemyDatabase,
    EnemyDefinition,
    EnergyEffect,
    HealEffect,
    Intent,
    PhaseTransition,
    PoisonEffect,
    PoisonMultiplyEffect,
    RetaliateEffect,
    SelfDamageEffect,
    StarterDeck,
    StatEffect,
    StrengthPerTurnEffect,
    SummonIntent,
)

logger = logging.getLogger(__name__)


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


def _optional_int(obj: Mapping[str, object], key: str, default: int) -> int:
    if obj.get(key) is None:
        return default
    return _require_int(obj, key)


def _require_list(obj: Mapping[str, object], key: str) -> list[object]:
    v = obj.get(key)
    if not isinstance(v, list):
        raise ContentError(f"Expected list for {key}")
    return v


def parse_effect(raw: Mapping[str, object]) -> Effect:
    t = raw.get("type")
    if not isinstance(t, str):
        raise ContentError("Effect missing type")
    target = raw.get("target")
    duration = "turn" if raw.get("duration") == "turn" else "combat"

    if t in ("damage", "damage_aoe"):
        return DamageEffect(
            type="damage",
            amount=_require_int(raw, "value"),
            target="all_enemies" if t == "damage_aoe" or target == "all_enemies" else "enemy",
            hits=_optional_int(raw, "hits", 1),
        )
    if t == "block":
        return BlockEffect(type="block", amount=_require_int(raw, "value"))
    if t == "heal":
        return HealEffect(type="heal", amount=_require_int(raw, "value"))
    if t == "damage_self":
        return SelfDamageEffect(type="damage_self", amount=_require_int(raw, "value"))
    if t in ("poison", "poison_aoe"):
        poison_target = "all_enemies" if t == "poison_aoe" else ("self" if target == "self" else "enemy")
        return PoisonEffect(type="poison", stacks=_require_int(raw, "value"), target=poison_target)
    if t == "poison_multiply":
        return PoisonMultiplyEffect(type="poison_multiply", factor=_require_int(raw, "value"))
    if t in ("weakness", "vulnerability"):
        debuff_target = "all_enemies" if target == "all_enemies" else ("self" if target == "self" else "enemy")
        return DebuffEffect(type=t, stacks=_require_int(raw, "value"), target=debuff_target)
    if t == "vulnerability_self":
        return DebuffEffect(type="vulnerability", stacks=_require_int(raw, "value"), target="self")
    if t in ("str", "dex", "thorn"):
        return StatEffect(type=t, amount=_require_int(raw, "value"), duration=duration)
    if t == "damage_on_hit":
        return RetaliateEffect(type="damage_on_hit", amount=_require_int(raw, "value"))
    if t == "energy":
        return EnergyEffect(type="energy", amount=_require_int(raw, "value"))
    if t == "draw":
        return DrawEffect(type="draw", count=_require_int(raw, "value"))
    if t == "str_per_turn":
        return StrengthPerTurnEffect(type="str_per_turn", amount=_require_int(raw, "value"))
    if t == "block_retain":
        return BlockRetainEffect(type="block_retain")
    if t == "damage_ramp":
        return DamageRampEffect(type="damage_ramp", amount=_require_int(raw, "value"))
    if t == "corpse_explode":
        return CorpseExplodeEffect(type="corpse_explode")
    raise ContentError(f"Unknown effect type: {t}")


def parse_card(item: Mapping[str, object]) -> CardDefinition:
    effects: list[Effect] = []
    for eff in _require_list(item, "effects"):
        if isinstance(eff, dict):
            effects.append(parse_effect(eff))
    upgrade = item.get("upgrade")
    return CardDefinition(
        id=_require_str(item, "id"),
        name=_require_str(item, "name"),
        type=_require_str(item, "type"),  # type: ignore[arg-type]
        rarity=_require_str(item, "rarity"),  # type: ignore[arg-type]
        cost=_require_int(item, "cost"),
        effects=tuple(effects),
        exhaust=bool(item.get("exhaust", False)),
        upgrade=upgrade if isinstance(upgrade, dict) else None,
    )


def _split_effect(raw: Mapping[str, object]) -> tuple[str | None, int | None]:
    """Split an intent effect field like ``"weakness:2"`` into name and magnitude."""
    eff = raw.get("effect")
    if not isinstance(eff, str):
        return None, None
    name, _, magnitude = eff.partition(":")
    return name, int(magnitude) if magnitude else None


def parse_intent(raw: Mapping[str, object], resolve: Mapping[str, EnemyDefinition]) -> Intent:
    t = _require_str(raw, "type")
    display = _require_str(raw, "display")
    value = _require_int(raw, "value")
    effect_name, magnitude = _split_effect(raw)

    if t in ("attack", "attack_multi"):
        lifesteal = raw.get("lifesteal", 0.0)
        if not isinstance(lifesteal, (int, float)):
            raise ContentError("lifesteal must be a number")
        return AttackIntent(
            type=t,
            display=display,
            damage=value,
            hits=_optional_int(raw, "hits", 1),
            lifesteal_percent=float(lifesteal),
            heal=_optional_int(raw, "heal", 0),
        )
    if t == "defend":
        return DefendIntent(type="defend", display=display, block=value)
    if t in ("attack_defend", "defend_attack"):
        return AttackDefendIntent(type=t, display=display, damage=value, block=_optional_int(raw, "block", 0))
    if t in ("debuff", "debuff_attack"):
        if effect_name not in ("weakness", "poison", "vulnerability"):
            raise ContentError(f"Unknown debuff effect: {effect_name}")
        if t == "debuff":
            return DebuffIntent(
                type="debuff",
                display=display,
                status=effect_name,
                stacks=magnitude if magnitude is not None else value,
            )
        return DebuffIntent(
            type="debuff_attack",
            display=display,
            status=effect_name,
            stacks=magnitude if magnitude is not None else value,
            damage=value,
        )
    if t in ("buff", "buff_all"):
        summon = raw.get("summon")
        if isinstance(summon, dict):
            enemy_id = _require_str(summon, "enemy")
            if enemy_id not in resolve:
                raise ContentError(f"Unknown summoned enemy: {enemy_id}")
            low = _optional_int(summon, "min", 1)
            return SummonIntent(
                type="summon",
                display=display,
                enemy=resolve[enemy_id],
                min_count=low,
                max_count=_optional_int(summon, "max", low),
            )
        if effect_name != "str":
            raise ContentError(f"Unknown buff effect: {effect_name}")
        return BuffIntent(type=t, display=display, strength=magnitude if magnitude is not None else value)
    raise ContentError(f"Unknown intent type: {t}")


def _parse_pattern(raw: object, resolve: Mapping[str, EnemyDefinition]) -> tuple[Intent, ...]:
    if not isinstance(raw, list):
        raise ContentError("pattern must be a list")
    return tuple(parse_intent(entry, resolve) for entry in raw if isinstance(entry, dict))


def _parse_phase(raw: Mapping[str, object], resolve: Mapping[str, EnemyDefinition]) -> BossPhase:
    transition = None
    raw_transition = raw.get("transitionEffect")
    if isinstance(raw_transition, dict):
        transition = PhaseTransition(
            strength=_optional_int(raw_transition, "str", 0),
            block=_optional_int(raw_transition, "block", 0),
        )
    return BossPhase(
        name=_require_str(raw, "name"),
        pattern=_parse_pattern(raw.get("pattern"), resolve),
        transition=transition,
    )


def parse_enemy(item: Mapping[str, object], resolve: Mapping[str, EnemyDefinition]) -> EnemyDefinition:
    phases: tuple[BossPhase, ...] = ()
    pattern: tuple[Intent, ...] = ()
    raw_phases = item.get("phases")
    if isinstance(raw_phases, list):
        phases = tuple(_parse_phase(p, resolve) for p in raw_phases if isinstance(p, dict))
    else:
        pattern = _parse_pattern(item.get("pattern"), resolve)
    return EnemyDefinition(
        id=_require_str(item, "id"),
        name=_require_str(item, "name"),
        base_hp=_require_int(item, "baseHp"),
        kind=_require_str(item, "type"),  # type: ignore[arg-type]
        pattern=pattern,
        phases=phases,
    )


def _summon_ids(item: Mapping[str, object]) -> set[str]:
    entries: list[object] = []
    if isinstance(item.get("pattern"), list):
        entries.extend(item["pattern"])  # type: ignore[arg-type]
    phases = item.get("phases")
    if isinstance(phases, list):
        for ph in phases:
            if isinstance(ph, dict) and isinstance(ph.get("pattern"), list):
                entries.extend(ph["pattern"])
    out: set[str] = set()
    for e in entries:
        if isinstance(e, dict) and isinstance(e.get("summon"), dict):
            enemy_id = e["summon"].get("enemy")
            if isinstance(enemy_id, str):
                out.add(enemy_id)
    return out


def parse_rule(raw: Mapping[str, object]) -> AIRule:
    cond_raw = raw.get("condition")
    if not isinstance(cond_raw, dict):
        raise ContentError("rule.condition must be an object")
    value = cond_raw.get("value", 0)
    if not isinstance(value, (int, float)):
        raise ContentError("condition.value must be a number")
    description = raw.get("description")
    return AIRule(
        priority=_require_int(raw, "priority"),
        condition=Condition(
            parameter=_require_str(cond_raw, "parameter"),
            operator=cond_raw.get("operator", "="),  # type: ignore[arg-type]
            value=value,
        ),
        card_id=_require_str(raw, "cardId"),
        target=_require_str(raw, "target"),  # type: ignore[arg-type]
        description=description if isinstance(description, str) else None,
    )


def build_deck(template: StarterDeck, cards: CardDatabase) -> list[CardDefinition]:
    deck: list[CardDefinition] = []
    for card_id, count in template.cards:
        if card_id not in cards.cards:
            raise ContentError(f"Starter deck {template.id} references unknown card: {card_id}")
        deck.extend([cards.get(card_id)] * count)
    return deck


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def _load_validated(self, name: str) -> dict[str, object]:
        path = self._data_dir / f"{name}.json"
        schema = _load_json(self._schema_dir / f"{name}.schema.json")
        raw = _load_json(path)
        validate_json(raw, schema, context=str(path))
        if not isinstance(raw, dict):
            raise ContentError(f"{name}.json must be an object")
        return raw

    def load_cards_db(self) -> CardDatabase:
        raw = self._load_validated("cards")
        cards: dict[str, CardDefinition] = {}
        for item in _require_list(raw, "cards"):
            if not isinstance(item, dict):
                continue
            card = parse_card(item)
            cards[card.id] = card
        logger.info("Loaded %d cards", len(cards))
        return CardDatabase(cards=cards)

    def load_enemies_db(self) -> EnemyDatabase:
        raw = self._load_validated("enemies")
        items = [item for item in _require_list(raw, "enemies") if isinstance(item, dict)]
        by_id = {_require_str(item, "id"): item for item in items}

        # Summoners reference other enemies, so parse dependencies first.
        enemies: dict[str, EnemyDefinition] = {}
        visiting: set[str] = set()

        def resolve(enemy_id: str) -> EnemyDefinition:
            if enemy_id in enemies:
                return enemies[enemy_id]
            if enemy_id not in by_id:
                raise ContentError(f"Unknown summoned enemy: {enemy_id}")
            if enemy_id in visiting:
                raise ContentError(f"Summon cycle through enemy: {enemy_id}")
            visiting.add(enemy_id)
            item = by_id[enemy_id]
            deps = {dep: resolve(dep) for dep in sorted(_summon_ids(item))}
            enemies[enemy_id] = parse_enemy(item, deps)
            visiting.discard(enemy_id)
            return enemies[enemy_id]

        for enemy_id in by_id:
            resolve(enemy_id)
        logger.info("Loaded %d enemies", len(enemies))
        # keep file order
        return EnemyDatabase(enemies={eid: enemies[eid] for eid in by_id})

    def load_starter_decks(self) -> dict[str, StarterDeck]:
        raw = self._load_validated("starter_decks")
        decks: dict[str, StarterDeck] = {}
        for d in _require_list(raw, "starterDecks"):
            if not isinstance(d, dict):
                continue
            entries: list[tuple[str, int]] = []
            for e in _require_list(d, "cards"):
                if isinstance(e, dict):
                    entries.append((_require_str(e, "id"), _require_int(e, "count")))
            rules = tuple(parse_rule(r) for r in _require_list(d, "aiRules") if isinstance(r, dict))
            desc = d.get("description", "")
            deck = StarterDeck(
                id=_require_str(d, "id"),
                name=_require_str(d, "name"),
                description=desc if isinstance(desc, str) else "",
                cards=tuple(entries),
                rules=rules,
            )
            decks[deck.id] = deck
        return decks

    def enemies_by_id(self, enemy_ids: Sequence[str]) -> list[EnemyDefinition]:
        db = self.load_enemies_db()
        out: list[EnemyDefinition] = []
        for enemy_id in enemy_ids:
            if enemy_id not in db.enemies:
                raise ContentError(f"Unknown enemy: {enemy_id}")
            out.append(db.get(enemy_id))
        return out

    def validate_all(self) -> None:
        # Load is validation (schema + parse + cross references)
        cards = self.load_cards_db()
        _ = self.load_enemies_db()
        for deck in self.load_starter_decks().values():
            build_deck(deck, cards)
            for rule in deck.rules:
                if rule.card_id not in cards.cards:
                    raise ContentError(f"Starter deck {deck.id} rule references unknown card: {rule.card_id}")
