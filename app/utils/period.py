"""
Time period resolution

Maps a period selector (today/week/month/year/custom) to concrete
[start, end] windows, and derives the comparison window for
period-over-period deltas.

Two alignments exist and a deployment uses exactly one of them:

    rolling   week/month/year = last 7/30/365 days ending today
    calendar  week/month/year = ISO week / calendar month / calendar year to date

Windows and period labels are both derived from the same alignment value
(settings.period_alignment) so a label can never describe a different window
than the one the metrics were fetched for.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, Optional, Union

from dateutil.relativedelta import relativedelta

from app.config import get_settings


class Period(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


class ComparisonMode(str, Enum):
    NONE = "none"
    PREVIOUS_PERIOD = "previous_period"
    PREVIOUS_YEAR = "previous_year"


class Alignment(str, Enum):
    ROLLING = "rolling"
    CALENDAR = "calendar"


# Rolling window lengths in days (inclusive of today)
ROLLING_DAYS = {
    Period.WEEK: 7,
    Period.MONTH: 30,
    Period.YEAR: 365,
}

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class TimeWindow:
    """Concrete query window. start <= end always holds."""
    kind: Period
    start: datetime
    end: datetime

    @property
    def duration_days(self) -> int:
        """Inclusive number of calendar days covered."""
        return (self.end.date() - self.start.date()).days + 1

    @property
    def start_date(self) -> str:
        return self.start.date().isoformat()

    @property
    def end_date(self) -> str:
        return self.end.date().isoformat()

    def cache_token(self) -> str:
        """Stable string used inside cache keys."""
        return f"{self.start_date}:{self.end_date}"


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def _to_datetime(value: Optional[DateLike]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return datetime.fromisoformat(str(value))


def _active_alignment(alignment: Optional[Union[Alignment, str]]) -> Alignment:
    if alignment is None:
        alignment = get_settings().period_alignment
    return Alignment(alignment)


def resolve_window(
    kind: Union[Period, str],
    custom_range: Optional[Dict[str, Optional[DateLike]]] = None,
    now: Optional[datetime] = None,
    alignment: Optional[Union[Alignment, str]] = None,
) -> TimeWindow:
    """
    Resolve a period selector into a concrete window.

    Args:
        kind: Period selector
        custom_range: {"start": ..., "end": ...} for Period.CUSTOM
        now: Reference time (defaults to the local current time)
        alignment: Override for settings.period_alignment

    Returns:
        TimeWindow with start at local midnight and end at end of day
    """
    kind = Period(kind)
    alignment = _active_alignment(alignment)
    now = now or datetime.now()
    today = start_of_day(now)
    today_end = end_of_day(now)

    if kind == Period.TODAY:
        return TimeWindow(kind, today, today_end)

    if kind == Period.CUSTOM:
        custom_range = custom_range or {}
        start = _to_datetime(custom_range.get("start"))
        end = _to_datetime(custom_range.get("end"))
        if start is None or end is None:
            # Missing bound: same default as a plain month request
            fallback = resolve_window(Period.MONTH, now=now, alignment=alignment)
            return TimeWindow(Period.CUSTOM, fallback.start, fallback.end)
        if start > end:
            start, end = end, start
        return TimeWindow(Period.CUSTOM, start_of_day(start), end_of_day(end))

    if alignment == Alignment.CALENDAR:
        if kind == Period.WEEK:
            start = today - timedelta(days=today.weekday())
        elif kind == Period.MONTH:
            start = today.replace(day=1)
        else:
            start = today.replace(month=1, day=1)
        return TimeWindow(kind, start, today_end)

    return TimeWindow(kind, today - timedelta(days=ROLLING_DAYS[kind] - 1), today_end)


def resolve_comparison(
    window: TimeWindow,
    mode: Union[ComparisonMode, str],
) -> Optional[TimeWindow]:
    """
    Derive the comparison window.

    None means "no comparison requested", not "comparison unavailable".
    """
    mode = ComparisonMode(mode)
    if mode == ComparisonMode.NONE:
        return None

    if mode == ComparisonMode.PREVIOUS_YEAR:
        # Calendar subtraction: Feb 29 maps to Feb 28
        return TimeWindow(
            Period.CUSTOM,
            window.start - relativedelta(years=1),
            window.end - relativedelta(years=1),
        )

    shift = timedelta(days=window.duration_days)
    return TimeWindow(Period.CUSTOM, window.start - shift, window.end - shift)


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

_CALENDAR_LABELS = {
    Period.TODAY: "Today",
    Period.WEEK: "This Week",
    Period.MONTH: "This Month",
    Period.YEAR: "This Year",
}

_ROLLING_LABELS = {
    Period.TODAY: "Today",
    Period.WEEK: "Last 7 Days",
    Period.MONTH: "Last 30 Days",
    Period.YEAR: "Last 365 Days",
}


def period_label(
    kind: Union[Period, str],
    window: Optional[TimeWindow] = None,
    alignment: Optional[Union[Alignment, str]] = None,
) -> str:
    """Human label for a period, consistent with the active alignment."""
    kind = Period(kind)
    if kind == Period.CUSTOM:
        if window is None:
            return "Custom Range"
        return f"{window.start_date} - {window.end_date}"
    labels = _CALENDAR_LABELS if _active_alignment(alignment) == Alignment.CALENDAR else _ROLLING_LABELS
    return labels[kind]


def comparison_label(
    kind: Union[Period, str],
    mode: Union[ComparisonMode, str],
    alignment: Optional[Union[Alignment, str]] = None,
    window: Optional[TimeWindow] = None,
) -> str:
    """
    Label for the comparison column.

    previous_period is always a same-length shift, so week/month/year are
    labelled by the length of the current window, never "vs Last Month".
    """
    kind = Period(kind)
    mode = ComparisonMode(mode)
    if mode == ComparisonMode.NONE:
        return ""
    if mode == ComparisonMode.PREVIOUS_YEAR:
        return "vs Last Year"
    if kind == Period.TODAY:
        return "vs Yesterday"
    if kind == Period.CUSTOM:
        return "vs Previous Period"
    if window is not None:
        return f"vs Previous {window.duration_days} Days"
    if _active_alignment(alignment) == Alignment.CALENDAR:
        # Calendar-to-date length depends on today
        return "vs Previous Period"
    return f"vs Previous {ROLLING_DAYS[kind]} Days"


def format_date_range(window: TimeWindow) -> str:
    """'Oct 1 - Oct 19, 2026', or 'Oct 19, 2026' for a single day."""
    end_str = f"{window.end:%b} {window.end.day}, {window.end.year}"
    if window.start_date == window.end_date:
        return end_str
    return f"{window.start:%b} {window.start.day} - {end_str}"


def format_for_api(window: TimeWindow) -> Dict[str, str]:
    return {"start_date": window.start_date, "end_date": window.end_date}
