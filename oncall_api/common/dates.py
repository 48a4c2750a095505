# oncall_api/common/dates.py
from datetime import datetime, date, timedelta

from oncall_api.common.errors import ValidationFailed

_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d")


def parse_date(val) -> date | None:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    s = str(val).strip()
    if not s:
        return None
    # tolerate ISO timestamps ("2024-01-01T00:00:00.000Z")
    if "T" in s:
        s = s.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    return None


def daterange(start: date, end: date):
    """Yield every date from start to end, inclusive."""
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def utcnow() -> datetime:
    return datetime.utcnow()


def require_date(val, field: str) -> date:
    """parse_date that raises a 422 naming the field."""
    d = parse_date(val)
    if d is None:
        raise ValidationFailed(message=f"{field} is required (YYYY-MM-DD)" if not val else f"Invalid {field}: {val}")
    return d
