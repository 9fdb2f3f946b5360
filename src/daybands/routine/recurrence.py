# src/daybands/routine/recurrence.py

"""
Routine recurrence.

Single source of truth for "is this routine due on date D". Dates are pure
calendar dates (datetime.date); day/week/month differences are computed on
calendar fields, never on timestamps, so DST and timezone shifts cannot move
a routine by a day.

Weekdays are numbered 0 = Sunday .. 6 = Saturday, as stored in task notes.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any

from ..tasks.task_models import RoutineRule, RoutineType, RoutineWeek

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Sunday of the week that contains 1970-01-01; anchor for weekly rules without a start.
_WEEKLY_EPOCH = date(1970, 1, 4)


def parse_date(value: Any) -> date | None:
    """'YYYY-MM-DD' -> date; anything else (including impossible dates) -> None."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    m = _DATE_RE.match(value.strip())
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def weekday_of(d: date) -> int:
    return (d.weekday() + 1) % 7


def _week_start(d: date) -> date:
    return d - timedelta(days=weekday_of(d))


def nth_weekday_of_month(year: int, month: int, weekday: int, n: RoutineWeek) -> date | None:
    """
    n-th `weekday` of a month, or its last one for n == "last".

    `month` is zero-based (January == 0). Returns None when the month has no
    such occurrence (e.g. a fifth Monday in February 2024). Months outside
    0..11 roll over into neighbouring years.
    """
    if not _valid_weekday(weekday) or not _valid_week(n):
        return None
    year, month0 = year + month // 12, month % 12
    month1 = month0 + 1
    days_in_month = calendar.monthrange(year, month1)[1]

    if n == "last":
        last = date(year, month1, days_in_month)
        return last - timedelta(days=(weekday_of(last) - weekday) % 7)

    first = date(year, month1, 1)
    first_match = first + timedelta(days=(weekday - weekday_of(first)) % 7)
    candidate = first_match + timedelta(days=7 * (int(n) - 1))
    if candidate.month != month1:
        return None
    return candidate


def _months_between(start: date, d: date) -> int:
    return (d.year - start.year) * 12 + (d.month - start.month)


def _valid_weekday(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6


def _valid_week(value: Any) -> bool:
    if value == "last":
        return True
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 5


def _interval(rule: RoutineRule) -> int:
    try:
        return max(1, int(rule.interval or 1))
    except (TypeError, ValueError, OverflowError):
        return 1


def is_due(date_str: str, rule: RoutineRule | None, moved_target_date: str | None = None) -> bool:
    """
    Whether a routine with `rule` shows up on `date_str`.

    A moved target date pins the occurrence to that single date. Malformed
    dates or missing weekday/week parameters make the rule not due; this
    function never raises.
    """
    if rule is None or rule.enabled is False:
        return False

    if moved_target_date:
        return date_str == moved_target_date

    d = parse_date(date_str)
    if d is None:
        return False

    start = parse_date(rule.start) if rule.start else None
    if rule.start and start is None:
        logger.debug("Unparseable routine start=%r; treating as not due", rule.start)
        return False
    if start is not None and d < start:
        return False

    end = parse_date(rule.end) if rule.end else None
    if end is not None and d > end:
        return False

    try:
        kind = RoutineType(rule.type)
    except ValueError:
        return False

    if kind == RoutineType.DAILY:
        return _daily_due(d, start, _interval(rule))
    if kind == RoutineType.WEEKLY:
        return _weekly_due(d, start, rule)
    return _monthly_due(d, start, rule)


def _daily_due(d: date, start: date | None, interval: int) -> bool:
    if start is None:
        return interval == 1
    return (d - start).days % interval == 0


def _weekly_due(d: date, start: date | None, rule: RoutineRule) -> bool:
    anchor = _week_start(start) if start is not None else _WEEKLY_EPOCH
    elapsed_weeks = (_week_start(d) - anchor).days // 7
    if elapsed_weeks < 0 or elapsed_weeks % _interval(rule) != 0:
        return False

    weekdays = [w for w in rule.weekday_set if _valid_weekday(w)]
    if not weekdays:
        if not _valid_weekday(rule.weekday):
            return False
        weekdays = [rule.weekday]  # type: ignore[list-item]
    return weekday_of(d) in weekdays


def _monthly_due(d: date, start: date | None, rule: RoutineRule) -> bool:
    weeks = [w for w in rule.week_set if _valid_week(w)] or (
        [rule.week] if _valid_week(rule.week) else []
    )
    weekdays = [w for w in rule.weekday_set if _valid_weekday(w)] or (
        [rule.weekday] if _valid_weekday(rule.weekday) else []
    )
    if not weeks or not weekdays:
        return False

    if start is not None and _months_between(start, d) % _interval(rule) != 0:
        return False

    for week in weeks:
        for weekday in weekdays:
            if nth_weekday_of_month(d.year, d.month - 1, weekday, week) == d:  # type: ignore[arg-type]
                return True
    return False


# ---- front-matter parsing ----


def _to_positive_int(value: Any, fallback: int | None) -> int | None:
    if isinstance(value, bool):
        return fallback
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return fallback
    return n if n >= 1 else fallback


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _to_weekday(value: Any) -> int | None:
    n = _to_int(value)
    return n if n is not None and 0 <= n <= 6 else None


def _to_weekday_set(value: Any) -> tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(sorted({w for w in (_to_weekday(v) for v in value) if w is not None}))


def _to_week(value: Any) -> RoutineWeek | None:
    if value == "last":
        return "last"
    n = _to_positive_int(value, None)
    return n if n is not None and n <= 5 else None


def _to_week_set(value: Any) -> tuple[RoutineWeek, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    out: list[RoutineWeek] = []
    for candidate in value:
        week = _to_week(candidate)
        if week is not None and week not in out:
            out.append(week)
    return tuple(out)


def _to_date_str(value: Any) -> str | None:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and _DATE_RE.match(value.strip()):
        return value.strip()
    return None


_LEGACY_WEEKDAY_SETS: Mapping[str, tuple[int, ...]] = {
    "weekdays": (1, 2, 3, 4, 5),
    "weekends": (0, 6),
}


def parse_rule(frontmatter: Mapping[str, Any] | None) -> RoutineRule | None:
    """
    Normalize a task note's front matter into a RoutineRule.

    Reads the current keys (routine_type, routine_interval, routine_start,
    routine_end, routine_enabled, routine_weekday, routine_week, routine_weeks,
    routine_weekdays) and the older ones still found in notes (routineType,
    weekday, weekdays, routine_type weekdays/weekends, zero-based monthly_week,
    monthly_weekday, monthly_weeks, monthly_weekdays). Non-routine notes give None.
    """
    if not isinstance(frontmatter, Mapping) or frontmatter.get("isRoutine") is not True:
        return None

    raw_type = frontmatter.get("routine_type") or frontmatter.get("routineType") or "daily"
    try:
        kind = RoutineType(raw_type)
    except ValueError:
        # weekdays / weekends / custom were weekly variants.
        kind = RoutineType.WEEKLY

    rule = RoutineRule(
        type=kind,
        interval=_to_positive_int(frontmatter.get("routine_interval"), 1) or 1,
        start=_to_date_str(frontmatter.get("routine_start")),
        end=_to_date_str(frontmatter.get("routine_end")),
        enabled=frontmatter.get("routine_enabled") is not False,
    )

    if kind == RoutineType.WEEKLY:
        rule.weekday = _to_weekday(_first_present(frontmatter, "routine_weekday", "weekday"))
        rule.weekday_set = _LEGACY_WEEKDAY_SETS.get(str(raw_type), ()) or _to_weekday_set(
            frontmatter.get("weekdays")
        )

    elif kind == RoutineType.MONTHLY:
        if frontmatter.get("routine_week") is not None:
            rule.week = _to_week(frontmatter.get("routine_week"))
        elif frontmatter.get("monthly_week") is not None:
            legacy = frontmatter.get("monthly_week")
            if legacy == "last":
                rule.week = "last"
            else:
                zero_based = _to_int(legacy)  # 0..4 in old notes
                rule.week = zero_based + 1 if zero_based is not None and 0 <= zero_based <= 4 else None
        rule.weekday = _to_weekday(_first_present(frontmatter, "routine_weekday", "monthly_weekday"))
        rule.week_set = _to_week_set(_first_present(frontmatter, "routine_weeks", "monthly_weeks"))
        rule.weekday_set = _to_weekday_set(_first_present(frontmatter, "routine_weekdays", "monthly_weekdays"))

    return rule


def _first_present(frontmatter: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = frontmatter.get(key)
        if value is not None:
            return value
    return None


def due_routines(date_str: str, definitions: Iterable[Any]) -> list[Any]:
    """Routine definitions (with .rule / .moved_target_date) due on `date_str`."""
    return [
        d
        for d in definitions
        if getattr(d, "is_routine", False) and is_due(date_str, d.rule, d.moved_target_date)
    ]
