"""
UK civil calendar helpers.

HMRC matching rules and tax years are defined on Europe/London civil dates,
not UTC dates. Timestamps throughout the ledger are integer milliseconds since
the Unix epoch; everything here converts between those and London dates.
"""

import re
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from src.ledger.errors import ValidationError

LONDON_TZ = ZoneInfo("Europe/London")
MS_PER_DAY = 24 * 60 * 60 * 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_TAX_YEAR_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ReportWindow(BaseModel):
    """
    A closed reporting window in epoch milliseconds.

    Both bounds are inclusive: `end` is the last millisecond of the final day.
    """

    label: str = Field(description="Tax-year label or date range")
    start: int = Field(description="First millisecond inside the window")
    end: int = Field(description="Last millisecond inside the window")

    model_config = ConfigDict(frozen=True)

    def contains(self, ts: int) -> bool:
        """Check whether a timestamp falls inside the window."""
        return self.start <= ts <= self.end


def to_london(ts: int) -> datetime:
    """Convert epoch milliseconds to an aware London datetime."""
    return (_EPOCH + timedelta(milliseconds=ts)).astimezone(LONDON_TZ)


def to_millis(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def uk_day(ts: int) -> date:
    """London civil date of a timestamp."""
    return to_london(ts).date()


def day_diff(earlier_ts: int, later_ts: int) -> int:
    """Whole London civil days from one timestamp's date to another's."""
    return (uk_day(later_ts) - uk_day(earlier_ts)).days


def start_of_day(day: date) -> int:
    """Epoch milliseconds of London midnight at the start of a civil date."""
    return to_millis(datetime(day.year, day.month, day.day, tzinfo=LONDON_TZ))


def end_of_day(day: date) -> int:
    """Epoch milliseconds of the last millisecond of a London civil date."""
    return start_of_day(day + timedelta(days=1)) - 1


def tax_year_label(ts: int) -> str:
    """
    UK tax-year label (YYYY-YY) for a timestamp.

    The tax year runs from 6 April to 5 April, London time.
    """
    day = uk_day(ts)
    start_year = day.year if (day.month, day.day) >= (4, 6) else day.year - 1
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_tax_year(label: str) -> ReportWindow:
    """
    Parse a YYYY-YY label into its 6 April to 5 April window.

    Raises:
        ValidationError: If the label is malformed or its suffix does not
            follow its start year

    """
    match = _TAX_YEAR_PATTERN.match(label.strip()) if label else None
    if not match:
        raise ValidationError("Tax year format must be YYYY-YY")

    start_year = int(match.group(1))
    if int(match.group(2)) != (start_year + 1) % 100:
        raise ValidationError(f"Tax year {label} does not span consecutive years")

    try:
        start = start_of_day(date(start_year, 4, 6))
        end = end_of_day(date(start_year + 1, 4, 5))
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Tax year {label} is out of range") from e

    return ReportWindow(label=f"{start_year}-{match.group(2)}", start=start, end=end)


def parse_uk_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD civil date.

    Raises:
        ValidationError: If the value is not a valid calendar date

    """
    if not value or not _DATE_PATTERN.match(value.strip()):
        raise ValidationError(f"Invalid date: {value!r}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}") from e


def window_for_dates(from_day: date, to_day: date) -> ReportWindow:
    """Inclusive window covering whole London days from one date to another."""
    if from_day > to_day:
        raise ValidationError(f"Window start {from_day} is after end {to_day}")
    try:
        start = start_of_day(from_day)
        end = end_of_day(to_day)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Window {from_day} to {to_day} is out of range") from e

    return ReportWindow(
        label=f"{from_day.isoformat()} to {to_day.isoformat()}",
        start=start,
        end=end,
    )
