from __future__ import annotations

from dataclasses import dataclass

from .state import CardInstance


@dataclass(frozen=True)
class PlayCardAction:
    """Play ``card`` from hand against ``target_index`` in the full enemy list."""

    card: CardInstance
    target_index: int = 0


Action = PlayCardAction
