"""Recurring-expense expansion.

A recurring entry is stored as one row per occurrence month within a
twelve-month window starting at the entry's month. Months wrap into 1..12 and
the amount is never changed.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    MONTHLY = "Monthly"
    BIMONTHLY = "Bi-Monthly"
    QUARTERLY = "Quarterly"
    HALF_YEARLY = "Half Yearly"


# Older clients submit "Fortnightly" for an every-other-month schedule.
LEGACY_ALIASES = {"Fortnightly": Frequency.BIMONTHLY}

# frequency -> (occurrences, spacing in months)
SCHEDULES = {
    Frequency.MONTHLY: (12, 1),
    Frequency.BIMONTHLY: (6, 2),
    Frequency.QUARTERLY: (4, 3),
    Frequency.HALF_YEARLY: (2, 6),
}


@dataclass(frozen=True)
class Occurrence:
    month: int
    amount: float


def parse_frequency(value: "str | Frequency | None") -> Frequency | None:
    """Resolve a submitted frequency label.

    Returns None for an empty value.

    Raises:
        ValueError: For labels that are neither a Frequency nor a legacy alias.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Frequency):
        return value
    if value in LEGACY_ALIASES:
        resolved = LEGACY_ALIASES[value]
        logger.warning("Frequency %r is deprecated; treating it as %r",
                       value, resolved.value)
        return resolved
    try:
        return Frequency(value)
    except ValueError:
        allowed = [f.value for f in Frequency]
        raise ValueError(f"Unknown frequency {value!r}; expected one of {allowed}") from None


def occurrence_months(start_month: int, frequency: Frequency | None) -> list[int]:
    """Months (1..12) on which a recurring expense falls.

    Examples:
        occurrence_months(3, Frequency.QUARTERLY) -> [3, 6, 9, 12]
        occurrence_months(11, Frequency.HALF_YEARLY) -> [11, 5]
        occurrence_months(7, None) -> [7]
    """
    if not 1 <= start_month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {start_month}")
    if frequency is None:
        return [start_month]
    count, spacing = SCHEDULES[frequency]
    return [((start_month - 1 + i * spacing) % 12) + 1 for i in range(count)]


def expand_recurring(start_month: int, amount: float,
                     frequency: Frequency | None) -> list[Occurrence]:
    """One Occurrence per month of the schedule, each with the full amount."""
    return [Occurrence(month, amount)
            for month in occurrence_months(start_month, frequency)]
