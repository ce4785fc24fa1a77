from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True))
    os.replace(tmp, path)


@dataclass
class ForecastArchive:
    """Keeps one JSON file per forecast so results can be compared over time."""

    reports_dir: Path

    def path_for(self, ticket_id: str, at: datetime) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", ticket_id)
        return self.reports_dir / f"{safe_id}-{at.strftime('%Y%m%dT%H%M%S%fZ')}.json"

    def save(self, payload: dict[str, Any], *, ticket_id: str, at: datetime | None = None) -> Path:
        at = at or datetime.now(timezone.utc)
        path = self.path_for(ticket_id, at)
        _atomic_write_json(path, {**payload, "generated_at": at.isoformat()})
        return path

    def history(self, ticket_id: str) -> list[dict[str, Any]]:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", ticket_id)
        if not self.reports_dir.exists():
            return []
        return [
            json.loads(p.read_text())
            for p in sorted(self.reports_dir.glob(f"{safe_id}-*.json"))
        ]
