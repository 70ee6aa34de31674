from __future__ import annotations

import json

import pytest

from cardforge.engine.types import AttackIntent, DamageEffect, DebuffIntent, RetaliateEffect, SummonIntent
from cardforge.paths import get_paths
from cardforge.services.content import ContentError, ContentService, parse_effect, validate_json


def _content() -> ContentService:
    paths = get_paths()
    return ContentService(paths.data_dir, paths.schema_dir)


def test_content_schemas_validate() -> None:
    _content().validate_all()


def test_card_effect_aliases() -> None:
    cards = _content().load_cards_db()

    cleave = cards.get("cleave").effects[0]
    assert isinstance(cleave, DamageEffect)
    assert cleave.target == "all_enemies"

    riposte = cards.get("riposte").effects[1]
    assert isinstance(riposte, RetaliateEffect)
    assert riposte.amount == 4

    twin = cards.get("twin_strike").effects[0]
    assert isinstance(twin, DamageEffect)
    assert twin.hits == 2


def test_enemy_intents_are_structured() -> None:
    db = _content().load_enemies_db()

    drain = db.get("vampire").pattern[0]
    assert isinstance(drain, AttackIntent)
    assert drain.lifesteal_percent == 0.5

    raise_dead = db.get("necromancer").pattern[0]
    assert isinstance(raise_dead, SummonIntent)
    assert raise_dead.enemy is db.get("skeleton")
    assert (raise_dead.min_count, raise_dead.max_count) == (1, 2)

    hex_hit = db.get("gremlin").pattern[1]
    assert isinstance(hex_hit, DebuffIntent)
    assert (hex_hit.status, hex_hit.stacks, hex_hit.damage) == ("weakness", 1, 5)


def test_boss_phases() -> None:
    boss = _content().load_enemies_db().get("crypt_lord")
    assert boss.kind == "boss"
    assert boss.pattern == ()
    assert len(boss.phases) == 2
    assert boss.phases[0].transition is None
    transition = boss.phases[1].transition
    assert transition is not None
    assert (transition.strength, transition.block) == (3, 15)


def test_starter_decks_reference_known_cards() -> None:
    content = _content()
    decks = content.load_starter_decks()
    assert {"berserker", "poisoner"} <= set(decks)
    assert [r.priority for r in decks["berserker"].rules] == sorted(r.priority for r in decks["berserker"].rules)


def test_unknown_effect_type_is_rejected() -> None:
    with pytest.raises(ContentError):
        parse_effect({"type": "teleport", "value": 3})


def test_unknown_enemy_is_rejected() -> None:
    with pytest.raises(ContentError):
        _content().enemies_by_id(["nobody"])


def test_schema_violation_is_reported() -> None:
    schema = json.loads((get_paths().schema_dir / "cards.schema.json").read_text(encoding="utf-8"))
    with pytest.raises(ContentError) as exc:
        validate_json({"cards": [{"id": 7}]}, schema, context="cards.json")
    assert "cards.json" in str(exc.value)
