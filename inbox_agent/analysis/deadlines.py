"""
Local deadline detection.

Looks for phrases like "due by March 3rd", "deadline: 2025-04-01" or
"by June 6, 2025" and returns the first date that parses. No model
call is involved.
"""

import re
from datetime import UTC, datetime

_DATE = (
    r"(\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}/\d{1,2}/\d{4}"
    r"|[A-Za-z]+\.?\s+\d{1,2}(?:st|nd|rd|th)?(?:,?\s+\d{4})?)"
)

DEADLINE_PATTERNS = [
    re.compile(rf"due\s+(?:by|on)\s+{_DATE}", re.IGNORECASE),
    re.compile(rf"deadline[:\s]+(?:is\s+)?{_DATE}", re.IGNORECASE),
    re.compile(rf"\bby\s+{_DATE}", re.IGNORECASE),
]

_ORDINAL = re.compile(r"(\d)(st|nd|rd|th)\b", re.IGNORECASE)

_FORMATS_WITH_YEAR = ("%Y-%m-%d", "%m/%d/%Y", "%B %d %Y", "%b %d %Y")
_FORMATS_WITHOUT_YEAR = ("%B %d %Y", "%b %d %Y")


def parse_deadline_date(text: str, now: datetime | None = None) -> datetime | None:
    """Parse one date phrase into midnight UTC.

    A date without a year is placed in the current year, or the next one if
    it has already passed.
    """
    now = now or datetime.now(UTC)
    cleaned = _ORDINAL.sub(r"\1", text).replace(",", " ").replace(".", "")
    cleaned = " ".join(cleaned.split())

    for date_format in _FORMATS_WITH_YEAR:
        try:
            return datetime.strptime(cleaned, date_format).replace(tzinfo=UTC)
        except ValueError:
            continue

    for date_format in _FORMATS_WITHOUT_YEAR:
        try:
            parsed = datetime.strptime(f"{cleaned} {now.year}", date_format).replace(tzinfo=UTC)
        except ValueError:
            continue
        if parsed.date() < now.date():
            try:
                parsed = parsed.replace(year=now.year + 1)
            except ValueError:
                # Feb 29 without a leap year ahead
                continue
        return parsed
    return None


def extract_deadline(text: str, now: datetime | None = None) -> datetime | None:
    """First parseable deadline in ``text``, or None."""
    for pattern in DEADLINE_PATTERNS:
        for match in pattern.finditer(text):
            parsed = parse_deadline_date(match.group(1), now)
            if parsed is not None:
                return parsed
    return None
