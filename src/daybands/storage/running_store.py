# src/daybands/storage/running_store.py

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from ..tasks.task_models import RunningRecord

logger = logging.getLogger(__name__)


def _record_date(record: RunningRecord) -> str:
    return record.date or record.start_time[:10]


class RunningStore:
    """
    Persisted snapshot of running instances (a JSON list of records).

    Several days can be in flight at once (a task started late yesterday and
    still running today), so saving one view only replaces the records of the
    dates it touches.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    # ---- low-level helpers ----

    def _read_all(self) -> list[RunningRecord]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read running snapshot %s", self._path)
            return []

        if not isinstance(data, list):
            logger.warning("Running snapshot %s is not a list; ignoring", self._path)
            return []

        out: list[RunningRecord] = []
        for raw in data:
            record = RunningRecord.from_dict(raw)
            if record is None:
                logger.debug("Dropping malformed running record: %r", raw)
                continue
            out.append(record)
        return out

    def _write_all(self, records: list[RunningRecord]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        json_str = json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)

        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json_str, "utf-8")
        os.replace(tmp_path, self._path)

    # ---- public API ----

    def load_all(self) -> list[RunningRecord]:
        return self._read_all()

    def load_for_date(self, date_str: str) -> list[RunningRecord]:
        return [r for r in self._read_all() if _record_date(r) == date_str]

    def save(self, running_instances: Iterable[RunningRecord], view_date: str | None = None) -> None:
        """
        Replace the records of `view_date` and of every date in `running_instances`.

        Records for other dates are kept as they are.
        """
        fresh = list(running_instances)
        affected = {_record_date(r) for r in fresh}
        if view_date:
            affected.add(view_date)

        kept = [r for r in self._read_all() if _record_date(r) not in affected]
        self._write_all(kept + fresh)
        logger.debug(
            "Running snapshot saved dates=%s records=%d kept=%d",
            sorted(affected),
            len(fresh),
            len(kept),
        )

    def delete_by_instance_or_path(
        self,
        *,
        instance_id: str | None = None,
        task_path: str | None = None,
    ) -> int:
        """
        Drop records by instance id; falls back to the task path when no id matched.

        Returns the number of removed records.
        """
        records = self._read_all()
        remaining = records
        if instance_id:
            remaining = [r for r in records if r.instance_id != instance_id]
        if len(remaining) == len(records) and task_path:
            remaining = [r for r in records if r.task_path != task_path]

        removed = len(records) - len(remaining)
        if removed:
            self._write_all(remaining)
            logger.info(
                "Removed %d running record(s) instance=%s path=%s",
                removed,
                instance_id,
                task_path,
            )
        return removed

    def rename_task_path(self, old_path: str, new_path: str) -> int:
        """Point records of a renamed or moved task note at its new path."""
        if not old_path or not new_path or old_path == new_path:
            return 0
        records = self._read_all()
        changed = 0
        for record in records:
            if record.task_path == old_path:
                record.task_path = new_path
                changed += 1
        if changed:
            self._write_all(records)
            logger.info("Renamed %d running record(s) %s -> %s", changed, old_path, new_path)
        return changed
