from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from cardforge.engine.serialize import summary_to_dict
from cardforge.engine.state import BattleSummary


@dataclass
class BattleTelemetry:
    """Append-only JSONL record of finished battles."""

    path: Path

    def record(self, summary: BattleSummary, **context: object) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "type": "battle_finished",
            "summary": summary_to_dict(summary),
            "context": dict(context),
        }
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def read_all(self) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        out: list[dict[str, object]] = []
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    out.append(json.loads(line))
        return out
