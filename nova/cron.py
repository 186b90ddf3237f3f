"""Cron utilities: validate 5-field expressions and compute next run times."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger

_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _triggers(schedule: str) -> list[CronTrigger]:
    """Build the triggers whose union fires like crontab.

    When both day-of-month and day-of-week are restricted, crontab fires on
    either match, while a single CronTrigger requires both.
    """

    fields = schedule.split()
    if len(fields) != 5:
        raise ValueError(f"Expected 5 cron fields, got: {schedule!r}")
    minute, hour, day, month, day_of_week = fields
    if day != "*" and day_of_week != "*":
        day_pairs = [(day, "*"), ("*", day_of_week)]
    else:
        day_pairs = [(day, day_of_week)]
    return [
        CronTrigger(
            minute=minute,
            hour=hour,
            day=dom,
            month=month,
            day_of_week=_to_scheduler_weekdays(dow),
            timezone=timezone.utc,
        )
        for dom, dow in day_pairs
    ]


def _to_scheduler_weekdays(field: str) -> str:
    """Translate crontab weekday numbers (0/7=Sunday) to APScheduler's (0=Monday).

    Named days are shared by both notations and pass through unchanged.
    """

    if field == "*":
        return field
    days: set[int] = set()
    named: list[str] = []
    for part in field.split(","):
        base, _, step_text = part.partition("/")
        step = int(step_text) if step_text else 1
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            low, high = base.split("-", 1)
            if not (low.isdigit() and high.isdigit()):
                named.append(part)
                continue
            start, end = int(low), int(high)
        elif base.isdigit():
            start = int(base)
            end = 6 if step_text else start
        else:
            named.append(part)
            continue
        if start > 7 or end > 7 or start > end:
            raise ValueError(f"Invalid day-of-week field: {field!r}")
        days.update((day - 1) % 7 for day in range(start, end + 1, step))
    return ",".join([*(str(day) for day in sorted(days)), *named])


def is_valid_cron(schedule: str) -> bool:
    try:
        _triggers(schedule)
    except ValueError:
        return False
    return True


def get_next_run(schedule: str, after: datetime | None = None) -> datetime:
    """Return the first fire time strictly after the minute containing ``after``."""

    after = after or datetime.now(timezone.utc)
    start = after.astimezone(timezone.utc).replace(second=0, microsecond=0) + timedelta(minutes=1)
    fire_times = [t.get_next_fire_time(None, start) for t in _triggers(schedule)]
    fire_time = min((t for t in fire_times if t is not None), default=None)
    if fire_time is None:
        raise ValueError(f"Cron schedule never fires: {schedule!r}")
    return fire_time.astimezone(timezone.utc)


def cron_to_human(schedule: str) -> str:
    """Describe common schedules in words; anything else is returned verbatim."""

    parts = schedule.split()
    if len(parts) != 5:
        return schedule
    minute, hour, day_of_month, month, day_of_week = parts

    if minute == "*" and hour == "*":
        return "Every minute"
    if minute == "0" and hour == "*":
        return "Every hour"
    if minute.startswith("*/") and hour == "*":
        return f"Every {minute[2:]} minutes"

    if hour.isdigit() and minute.isdigit() and day_of_month == "*" and month == "*":
        at = f"{int(hour):02d}:{int(minute):02d} UTC"
        if day_of_week == "*":
            return f"Daily at {at}"
        if day_of_week == "1-5":
            return f"Weekdays at {at}"
        if day_of_week.isdigit() and int(day_of_week) < 7:
            return f"{_DAY_NAMES[int(day_of_week)]}s at {at}"

    return schedule
