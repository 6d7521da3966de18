"""
Tracking code value object.

Tracking codes are the customer-facing order identifier and follow the
format ``PREFIX-YYYYMMDD-NNNN``: a business-day date stamp and a per-day
sequence zero-padded to at least four digits.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime

import pytz

SEQUENCE_WIDTH = 4

_TRACKING_CODE_RE = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<day>\d{8})-(?P<sequence>\d{4,})$")


@dataclass(frozen=True)
class TrackingCode:
    """
    Immutable tracking code.

    Attributes:
        prefix: Business prefix (e.g., "SEO")
        day: Business date the order was created on
        sequence: 1-based sequence number within ``day``
    """

    prefix: str
    day: date
    sequence: int

    def __post_init__(self) -> None:
        if not self.prefix or "-" in self.prefix:
            raise ValueError(f"Invalid tracking code prefix: {self.prefix!r}")
        if self.sequence < 1:
            raise ValueError(f"Tracking code sequence must be positive: {self.sequence}")

    def __str__(self) -> str:
        return f"{self.day_prefix(self.prefix, self.day)}{self.sequence:0{SEQUENCE_WIDTH}d}"

    def next(self) -> "TrackingCode":
        """Return the following code for the same day."""
        return TrackingCode(prefix=self.prefix, day=self.day, sequence=self.sequence + 1)

    @staticmethod
    def day_prefix(prefix: str, day: date) -> str:
        """Common prefix shared by every code issued on ``day``, e.g. ``SEO-20250131-``."""
        return f"{prefix}-{day:%Y%m%d}-"

    @classmethod
    def parse(cls, value: str) -> "TrackingCode":
        """
        Parse a tracking code string.

        Raises:
            ValueError: If the string does not match ``PREFIX-YYYYMMDD-NNNN``
        """
        match = _TRACKING_CODE_RE.match(value or "")
        if not match:
            raise ValueError(f"Invalid tracking code: {value!r}")
        day = datetime.strptime(match.group("day"), "%Y%m%d").date()
        return cls(prefix=match.group("prefix"), day=day, sequence=int(match.group("sequence")))

    @classmethod
    def first_of_day(cls, prefix: str, day: date) -> "TrackingCode":
        return cls(prefix=prefix, day=day, sequence=1)

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return bool(_TRACKING_CODE_RE.match(value or ""))


def business_today(timezone_name: str, now: datetime | None = None) -> date:
    """
    Current date in the business timezone.

    Args:
        timezone_name: IANA timezone name (e.g., "America/Costa_Rica")
        now: Aware datetime to convert, defaults to the current instant
    """
    tz = pytz.timezone(timezone_name)
    if now is None:
        return datetime.now(tz).date()
    return now.astimezone(tz).date()
