# src/daybands/storage/alias_store.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class AliasStore:
    """
    JSON file with the routine alias chains: {current_name: [former names]}.

    - load is best-effort: a missing or unreadable file gives {}
    - save writes a temp file and replaces the target; OSError propagates
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, list[str]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read alias document %s", self._path)
            return {}

        if not isinstance(data, dict):
            logger.warning("Alias document %s is not an object; ignoring", self._path)
            return {}

        out: dict[str, list[str]] = {}
        for key, names in data.items():
            if not isinstance(key, str) or not isinstance(names, list):
                continue
            out[key] = [n for n in names if isinstance(n, str)]
        logger.debug("Loaded %d alias chains from %s", len(out), self._path)
        return out

    def save(self, aliases: dict[str, list[str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        json_str = json.dumps(aliases, ensure_ascii=False, indent=2)

        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json_str, "utf-8")
        os.replace(tmp_path, self._path)
        logger.debug("Saved %d alias chains to %s", len(aliases), self._path)
