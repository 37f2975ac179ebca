"""
Field normalisation helpers shared by the import pipeline and the projector.

All timestamps handled by the portal are naive UTC ``datetime`` objects
internally and ISO-8601 strings (millisecond precision, ``Z`` suffix) at the
edges.
"""
import re
from datetime import datetime, timezone
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1)

_PHONE_SEPARATORS = re.compile(r"[\s()\-]")

# Tried, in order, only after strict ISO and the DD/MM/YYYY rule have failed.
# Day-first throughout: UK convention wins over US month-first.
_GENERIC_DATE_FORMATS = [
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d-%m-%y",
    "%d.%m.%Y",
    "%d.%m.%y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y %H:%M",
    "%d %b %Y %H:%M",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_phone(raw: Optional[str]) -> str:
    """Strip whitespace, parentheses and hyphens from a phone number.

    Digits and a leading ``+`` survive. ``None`` and blank input give ``""``,
    which never takes part in duplicate detection.
    """
    if not raw:
        return ""
    return _PHONE_SEPARATORS.sub("", str(raw))


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_iso(value: datetime) -> str:
    return _to_naive_utc(value).isoformat(timespec="milliseconds") + "Z"


def _parse_iso(text: str) -> Optional[datetime]:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _to_naive_utc(datetime.fromisoformat(candidate))
    except ValueError:
        return None


_UK_TIME_FORMATS = ["%H:%M:%S", "%H:%M"]


def _parse_uk_date(text: str) -> Optional[datetime]:
    """``DD/MM/YYYY`` or ``DD/MM/YY``, optionally followed by ``HH:MM[:SS]``."""
    date_part, _, time_part = text.partition(" ")
    parts = date_part.split("/")
    if len(parts) != 3:
        return None
    day, month, year = (p.strip() for p in parts)
    if not (day.isdigit() and month.isdigit() and year.isdigit()):
        return None
    if len(year) == 2:
        year = f"20{year}"
    try:
        parsed = datetime(int(year), int(month), int(day))
    except ValueError:
        return None

    time_part = time_part.strip()
    if not time_part:
        return parsed
    for fmt in _UK_TIME_FORMATS:
        try:
            clock = datetime.strptime(time_part, fmt)
        except ValueError:
            continue
        return parsed.replace(hour=clock.hour, minute=clock.minute, second=clock.second)
    return None


def _parse_generic(text: str) -> Optional[datetime]:
    for fmt in _GENERIC_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_any(text: str) -> Optional[datetime]:
    return _parse_iso(text) or _parse_uk_date(text) or _parse_generic(text)


def parse_activity_datetime(raw: Any) -> datetime:
    """Parse an uploaded activity date, falling back to the current time.

    Order matters: strict ISO-8601 first, then ``DD/MM/YYYY`` / ``DD/MM/YY``
    (two-digit years are 20YY), then the generic day-first formats.
    """
    if isinstance(raw, datetime):
        return _to_naive_utc(raw)
    if raw is None:
        return utcnow()
    text = str(raw).strip()
    if not text:
        return utcnow()
    return _parse_any(text) or utcnow()


def parse_activity_date(raw: Any) -> str:
    return format_iso(parse_activity_datetime(raw))


def parse_optional_datetime(raw: Any) -> Optional[datetime]:
    """Like ``parse_activity_datetime`` but unparseable input gives ``None``."""
    if isinstance(raw, datetime):
        return _to_naive_utc(raw)
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    return _parse_any(text)


def to_iso_string(value: Any) -> Optional[str]:
    """Convert a stored timestamp (datetime or string) to ISO, or ``None``."""
    parsed = parse_optional_datetime(value) if isinstance(value, (datetime, str)) else None
    return format_iso(parsed) if parsed is not None else None
