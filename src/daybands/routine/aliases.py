# src/daybands/routine/aliases.py

from __future__ import annotations

"""
Routine rename history.

The alias document maps a task's current name to the names it had before:
    {"Morning run": ["Run", "Jog"]}

Execution history is stored under the name active when the task ran, so the
day view asks this resolver which current task an old name belongs to (and
the other way round) to keep history attached across renames.

The cache is owned by one resolver instance (one per view) and is the source
of truth for the session, even when writing the document fails.
"""

import logging
from collections.abc import Callable

from ..core.ports import AliasRepo

logger = logging.getLogger(__name__)

WarningSink = Callable[[str], None]


def _dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


class AliasChainResolver:
    def __init__(self, repo: AliasRepo, *, on_warning: WarningSink | None = None) -> None:
        self._repo = repo
        self._on_warning = on_warning
        self._cache: dict[str, list[str]] = {}
        self._loaded = False

    # ---- cache lifecycle ----

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> dict[str, list[str]]:
        """Read the document once per session; later calls return the cache."""
        if self._loaded:
            return self._cache
        try:
            raw = self._repo.load()
        except Exception:
            logger.exception("Failed to load routine alias history")
            self._warn("Failed to load routine alias history")
            raw = {}
        self._cache = self._clean(raw)
        self._loaded = True
        logger.debug("Alias chains loaded: %d", len(self._cache))
        return self._cache

    def reload(self) -> dict[str, list[str]]:
        self.invalidate()
        return self.load()

    def invalidate(self) -> None:
        self._cache = {}
        self._loaded = False

    @staticmethod
    def _clean(raw: object) -> dict[str, list[str]]:
        if not isinstance(raw, dict):
            return {}
        out: dict[str, list[str]] = {}
        for key, names in raw.items():
            if not isinstance(key, str) or not isinstance(names, list):
                continue
            out[key] = _dedupe([n for n in names if isinstance(n, str)])
        return out

    def _warn(self, message: str) -> None:
        if self._on_warning is not None:
            self._on_warning(message)

    # ---- mutation ----

    def add_alias(self, new_name: str, old_name: str) -> bool:
        """
        Record that `old_name` was renamed to `new_name`.

        The old name's own chain moves in front of it, so history carries over
        transitively (A -> B -> C gives {"C": ["A", "B"]}). Returns False when
        the document could not be written; the cache keeps the change anyway.
        """
        if not new_name or not new_name.strip() or not old_name or not old_name.strip():
            raise ValueError("both names are required")
        if new_name == old_name:
            return True

        aliases = self.load()
        inherited = aliases.pop(old_name, [])
        chain = inherited + aliases.get(new_name, []) + [old_name]
        aliases[new_name] = [n for n in _dedupe(chain) if n != new_name]
        logger.info("Alias added %r -> %r chain=%s", old_name, new_name, aliases[new_name])

        try:
            self._repo.save(aliases)
        except OSError:
            logger.warning("Failed to save routine alias history", exc_info=True)
            self._warn("Failed to save routine alias history")
            return False
        return True

    # ---- lookups ----

    def get_aliases(self, name: str) -> list[str]:
        return list(self._cache.get(name, []))

    def find_current_name(self, old_name: str) -> str | None:
        """
        Current name of a task that was once called `old_name`.

        Direct reverse lookup: the first key, in document order, whose chain
        lists `old_name`. add_alias folds older chains into the newest key, so
        one step reaches it. There is no walk, so cyclic documents end on the
        first match.
        """
        for key, names in self._cache.items():
            if key != old_name and old_name in names:
                return key
        return None

    def get_all_possible_names(self, name: str) -> list[str]:
        """The name, its former names, its current name and that name's former names."""
        names = [name, *self.get_aliases(name)]
        current = self.find_current_name(name)
        if current:
            names.append(current)
            names.extend(self.get_aliases(current))
        return _dedupe(names)
