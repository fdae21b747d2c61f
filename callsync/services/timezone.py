"""
Calendar and Timezone Resolver.

Both feeds describe call times differently: the origin call log returns
`MM/DD/YYYY hh:mm:ss AM/PM` in UTC, while the target table stores US Eastern
wall-clock strings (`YYYY-MM-DDTHH:MM:SS`). This module turns either encoding
into an absolute instant and reads instants back as Eastern civil dates, so
both sides land on the same calendar day regardless of which feed produced
them.

Eastern offset rule:
    -4h on dates from the second Sunday of March through the day before the
    first Sunday of November (computed per year), otherwise -5h. The offset is
    chosen per calendar date: a transition Sunday counts entirely as the new
    regime. Instants are classified by their UTC date. Naive Eastern values
    take the offset of their civil date unless the resulting instant would be
    classified the other way, in which case the other offset is used, so
    that format_eastern() and parse_timestamp() round-trip.

    This is a date rule, not the wall clock. On the two switch Sundays the
    real clocks change at 02:00 local (07:00Z in March, 06:00Z in November),
    but here the whole UTC date takes the new offset from 00:00Z. Instants
    between 00:00Z and the real switch on those dates are therefore read
    with the new offset, one hour off from the local clock, which can move
    late-evening calls of the previous Eastern day across midnight.

Primitives:
- parse_timestamp(): string -> UTC-aware datetime or None
- utc_to_eastern(): instant -> same instant with the Eastern offset attached
- eastern_date() / eastern_date_str(): instant -> Eastern civil date
- eastern_day_bounds() / window_bounds(): civil days -> UTC fetch bounds
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Tuple, Union

from callsync.models.enums import CivilZone


# =============================================================================
# CONSTANTS
# =============================================================================

EASTERN_STANDARD_OFFSET = timedelta(hours=-5)
EASTERN_DAYLIGHT_OFFSET = timedelta(hours=-4)

EASTERN_STANDARD = timezone(EASTERN_STANDARD_OFFSET, 'EST')
EASTERN_DAYLIGHT = timezone(EASTERN_DAYLIGHT_OFFSET, 'EDT')

# 2026-02-03T18:05:00, 2026-02-03 18:05, 2026-02-03T18:05:00.123Z, ...+05:30
_ISO_PATTERN = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})[T ](\d{1,2}):(\d{2})'
    r'(?::(\d{2})(?:\.(\d+))?)?'
    r'\s*(Z|[+-]\d{2}:?\d{2})?$',
    re.IGNORECASE,
)

# 02/03/2026 06:05:00 PM, 2/3/26 6:05 PM, 02/03/2026 18:05
_US_PATTERN = re.compile(
    r'^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)?$',
    re.IGNORECASE,
)

_DATE_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')

_ZONE_SUFFIX = re.compile(
    r'\s+(UTC|GMT|EST|EDT|ET)$',
    re.IGNORECASE,
)


# =============================================================================
# DAYLIGHT SAVING RULE
# =============================================================================

def _nth_sunday(year: int, month: int, n: int) -> date:
    first = date(year, month, 1)
    days_to_sunday = (6 - first.weekday()) % 7
    return first + timedelta(days=days_to_sunday + 7 * (n - 1))


def dst_interval(year: int) -> Tuple[date, date]:
    """
    Return (first DST date, first standard date) for a year.

    US Eastern DST starts on the second Sunday of March and ends on the
    first Sunday of November.
    """
    return _nth_sunday(year, 3, 2), _nth_sunday(year, 11, 1)


def is_eastern_dst(day: date) -> bool:
    start, end = dst_interval(day.year)
    return start <= day < end


def eastern_offset(value: Union[date, datetime]) -> timedelta:
    """
    UTC offset of US Eastern civil time for a date or an instant.

    Instants are classified by their UTC calendar date; naive datetimes by
    their own date.

    Examples:
        >>> eastern_offset(datetime(2026, 3, 8, 6, 30, tzinfo=timezone.utc))
        datetime.timedelta(days=-1, seconds=72000)
        >>> eastern_offset(date(2026, 3, 1))
        datetime.timedelta(days=-1, seconds=68400)
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        day = value.date()
    else:
        day = value

    return EASTERN_DAYLIGHT_OFFSET if is_eastern_dst(day) else EASTERN_STANDARD_OFFSET


def eastern_tz(day: date) -> timezone:
    """Fixed-offset tzinfo for Eastern civil time on the given date."""
    return EASTERN_DAYLIGHT if is_eastern_dst(day) else EASTERN_STANDARD


# =============================================================================
# PARSING
# =============================================================================

def _expand_year(year: str) -> int:
    if len(year) == 2:
        value = int(year)
        return 2000 + value if value <= 30 else 1900 + value
    return int(year)


def _to_24_hour(hour: int, period: Optional[str]) -> int:
    if period is None:
        return hour
    if not 1 <= hour <= 12:
        raise ValueError(f"hour {hour} is not valid with {period}")
    period = period.upper()
    if period == 'PM' and hour != 12:
        return hour + 12
    if period == 'AM' and hour == 12:
        return 0
    return hour


def _parse_offset(token: str) -> timezone:
    if token.upper() == 'Z':
        return timezone.utc
    sign = -1 if token[0] == '-' else 1
    digits = token[1:].replace(':', '')
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))


def _attach_zone(naive: datetime, zone: CivilZone) -> datetime:
    if zone == CivilZone.UTC:
        return naive.replace(tzinfo=timezone.utc)

    preferred = eastern_tz(naive.date())
    other = EASTERN_STANDARD if preferred is EASTERN_DAYLIGHT else EASTERN_DAYLIGHT
    for tz in (preferred, other):
        candidate = naive.replace(tzinfo=tz)
        if eastern_offset(candidate) == tz.utcoffset(None):
            return candidate
    return naive.replace(tzinfo=preferred)


def _parse_naive_or_aware(text: str) -> Optional[datetime]:
    match = _ISO_PATTERN.match(text)
    if match:
        year, month, day, hour, minute, second, fraction, offset = match.groups()
        micro = int((fraction or '0')[:6].ljust(6, '0'))
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second or 0), micro,
        )
        if offset:
            parsed = parsed.replace(tzinfo=_parse_offset(offset))
        return parsed

    match = _US_PATTERN.match(text)
    if match:
        month, day, year, hour, minute, second, period = match.groups()
        return datetime(
            _expand_year(year), int(month), int(day),
            _to_24_hour(int(hour), period), int(minute), int(second or 0),
        )

    match = _DATE_PATTERN.match(text)
    if match:
        year, month, day = match.groups()
        return datetime(int(year), int(month), int(day))

    return None


def parse_timestamp(
    value: Optional[str],
    assume: CivilZone = CivilZone.EASTERN,
) -> Optional[datetime]:
    """
    Parse a call timestamp into a UTC-aware datetime.

    Accepted encodings:
        - ISO-8601 with or without seconds, fractional seconds and offset/Z
        - MM/DD/YYYY hh:mm[:ss] AM/PM (two-digit years allowed)
        - YYYY-MM-DD (midnight)
    A trailing zone abbreviation is stripped; UTC/GMT switch the assumed
    zone to UTC and EST/EDT/ET to Eastern.

    Args:
        value: Raw timestamp string.
        assume: Zone used when the value carries no explicit offset.

    Returns:
        UTC-aware datetime, or None when the value is empty or unparseable.
    """
    if not value:
        return None

    text = value.strip()
    suffix = _ZONE_SUFFIX.search(text)
    if suffix:
        abbreviation = suffix.group(1).upper()
        if abbreviation in ('UTC', 'GMT'):
            assume = CivilZone.UTC
        else:
            assume = CivilZone.EASTERN
        text = text[:suffix.start()].strip()

    try:
        parsed = _parse_naive_or_aware(text)
    except ValueError:
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = _attach_zone(parsed, assume)
    return parsed.astimezone(timezone.utc)


# =============================================================================
# CONVERSION
# =============================================================================

def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def utc_to_eastern(instant: datetime) -> datetime:
    """
    Express a UTC instant in Eastern civil time.

    The result is the same instant with a fixed -4h/-5h offset attached.
    Naive input is taken as UTC.
    """
    utc = _as_utc(instant)
    return utc.astimezone(timezone(eastern_offset(utc)))


def eastern_date(instant: datetime) -> date:
    """Civil calendar date of an instant as read in US Eastern."""
    return utc_to_eastern(instant).date()


def eastern_date_str(instant: datetime) -> str:
    """Eastern civil date of an instant as YYYY-MM-DD."""
    return eastern_date(instant).isoformat()


def format_eastern(instant: datetime) -> str:
    """Eastern wall-clock form stored in the call tables: YYYY-MM-DDTHH:MM:SS."""
    return utc_to_eastern(instant).strftime('%Y-%m-%dT%H:%M:%S')


def format_utc_iso(instant: datetime) -> str:
    """UTC ISO form with milliseconds, as the origin feed expects: ...T05:00:00.000Z."""
    utc = _as_utc(instant)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f'{utc.microsecond // 1000:03d}Z'


def truncate_to_minute(instant: datetime) -> datetime:
    return instant.replace(second=0, microsecond=0)


def minutes_between(first: datetime, second: datetime) -> int:
    """Absolute whole minutes between two instants, seconds discarded on both sides first."""
    delta = truncate_to_minute(_as_utc(first)) - truncate_to_minute(_as_utc(second))
    return int(abs(delta.total_seconds()) // 60)


def days_between(first: datetime, second: datetime) -> int:
    """Absolute difference between the Eastern civil dates of two instants."""
    return abs((eastern_date(first) - eastern_date(second)).days)


# =============================================================================
# WINDOWS
# =============================================================================

def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each civil date from start through end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def eastern_day_start(day: date) -> datetime:
    """UTC instant of 00:00 Eastern on the given date."""
    return _attach_zone(datetime.combine(day, time.min), CivilZone.EASTERN).astimezone(timezone.utc)


def eastern_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """
    First and last instant (millisecond precision) of an Eastern civil day, in UTC.

    Example:
        >>> eastern_day_bounds(date(2026, 2, 3))
        (2026-02-03 05:00:00+00:00, 2026-02-04 04:59:59.999000+00:00)
    """
    start = eastern_day_start(day)
    end = eastern_day_start(day + timedelta(days=1)) - timedelta(milliseconds=1)
    return start, end


def window_bounds(start_date: date, end_date: date, buffer_days: int = 0) -> Tuple[datetime, datetime]:
    """UTC bounds of an Eastern date range, widened by buffer_days on each side."""
    first, _ = eastern_day_bounds(start_date - timedelta(days=buffer_days))
    _, last = eastern_day_bounds(end_date + timedelta(days=buffer_days))
    return first, last
