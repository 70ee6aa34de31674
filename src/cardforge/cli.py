from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from cardforge.engine.combat import new_combat, run_full_combat
from cardforge.engine.state import BattleSummary, CombatConfig
from cardforge.paths import get_paths
from cardforge.services.content import ContentError, ContentService, build_deck
from cardforge.services.quicktest import DEFAULT_BATTLES, run_quick_test
from cardforge.services.telemetry import BattleTelemetry


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardforge-quicktest",
        description="Run a batch of simulated battles for a starter deck.",
    )
    parser.add_argument("--deck", default="berserker", help="starter deck id")
    parser.add_argument(
        "--enemy", action="append", dest="enemies", help="enemy id (repeat for groups)"
    )
    parser.add_argument("--battles", type=int, default=DEFAULT_BATTLES)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--player-hp", type=int, default=None, help="player max hp")
    parser.add_argument("--player-current-hp", type=int, default=None, help="starting hp (defaults to max)")
    parser.add_argument("--hand-size", type=int, default=None)
    parser.add_argument("--telemetry", type=Path, default=None, help="append summaries to this JSONL file")
    parser.add_argument("--show-log", action="store_true", help="print the combat log of the first battle")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _format_line(i: int, s: BattleSummary, max_hp: int) -> str:
    mark = "+" if s.result == "win" else "x"
    return (
        f"  Battle {i + 1:>2}: {mark} {s.result.upper():<4} | {s.turns_elapsed} turns | "
        f"HP: {s.player_hp_remaining}/{max_hp} | Cards: {s.cards_played} | "
        f"Dmg dealt: {s.damage_dealt} | Dmg taken: {s.damage_received}"
    )


def _config_from_args(args: argparse.Namespace) -> CombatConfig:
    overrides: dict[str, int] = {}
    if args.player_hp is not None:
        overrides["player_max_hp"] = args.player_hp
    if args.player_current_hp is not None:
        overrides["player_hp"] = args.player_current_hp
    if args.hand_size is not None:
        overrides["hand_size"] = args.hand_size
    return CombatConfig(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    try:
        cards = content.load_cards_db()
        decks = content.load_starter_decks()
        if args.deck not in decks:
            raise ContentError(f"Unknown starter deck: {args.deck}")
        template = decks[args.deck]
        deck = build_deck(template, cards)
        enemies = content.enemies_by_id(args.enemies or ["skeleton"])
    except ContentError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    config = _config_from_args(args)

    telemetry = BattleTelemetry(args.telemetry) if args.telemetry is not None else None

    print(f"Deck: {template.name} ({len(deck)} cards)")
    print(f"Enemies: {', '.join(f'{e.name} ({e.base_hp} HP)' for e in enemies)}")
    print(f"AI rules: {len(template.rules)} | Battles: {args.battles}")
    print()

    def on_battle(i: int, summary: BattleSummary) -> None:
        print(_format_line(i, summary, config.player_max_hp))
        if telemetry is not None:
            telemetry.record(summary, deck=template.id, enemies=[e.id for e in enemies], seed=args.seed + i)

    _, report = run_quick_test(
        deck,
        template.rules,
        enemies,
        battles=args.battles,
        seed=args.seed,
        config=config,
        on_battle=on_battle,
    )

    print()
    print(f"Winrate:          {report.wins}/{report.battles} ({report.win_rate * 100:.0f}%)")
    print(f"Avg turns:        {report.avg_turns:.1f}")
    print(f"Avg HP remaining: {report.avg_hp_on_wins:.1f} (on wins)")
    print(f"Avg dmg dealt:    {report.avg_damage_dealt:.1f}")
    print(f"Avg dmg taken:    {report.avg_damage_taken:.1f}")

    if args.show_log and args.battles > 0:
        # replay the first battle; same seed gives the same log
        state = new_combat(deck, template.rules, enemies, seed=args.seed, config=config)
        run_full_combat(state)
        print()
        for entry in state.log:
            print(f"[{entry.turn:>2}] {entry.phase:<6} {entry.message}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
