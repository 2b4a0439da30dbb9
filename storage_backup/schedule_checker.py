"""Schedule checking logic for cron-based backup scheduling."""

import logging
import re
from datetime import datetime
from typing import Optional

from croniter import croniter

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

# (field name, attribute getter) in expression order
_FIELDS = (
    ("minute", lambda t: t.minute),
    ("hour", lambda t: t.hour),
    ("day-of-month", lambda t: t.day),
    ("month", lambda t: t.month),
    ("day-of-week", lambda t: t.isoweekday() % 7),
)


def _leading_int(text: str) -> Optional[int]:
    """Parse the integer at the start of ``text``; ``None`` if there is none."""
    match = _LEADING_INT_RE.match(text)
    if not match:
        return None
    return int(match.group(1))


class ScheduleChecker:
    """Evaluates five-field cron expressions against a point in time.

    The caller polls once per minute; there is no next-fire-time bookkeeping.
    """

    @staticmethod
    def match_field(cron_field: str, current_value: int) -> bool:
        """
        Match one cron field against a calendar value.

        Rules are tried in order: ``*``, ``*/step``, ``a-b``, ``a,b,c`` and
        finally a single value. A numeric step start such as ``5/15`` is not
        treated as a step and ends up matching the single value ``5``.

        Args:
            cron_field: One field of the expression
            current_value: Calendar component of the current time

        Returns:
            True if the field matches
        """
        if cron_field == "*":
            return True

        if "/" in cron_field:
            parts = cron_field.split("/")
            if parts[0] == "*":
                step = _leading_int(parts[1])
                if not step:
                    return False
                return current_value % step == 0

        if "-" in cron_field:
            parts = cron_field.split("-")
            start, end = _leading_int(parts[0]), _leading_int(parts[1])
            if start is None or end is None:
                return False
            return start <= current_value <= end

        if "," in cron_field:
            values = {_leading_int(v) for v in cron_field.split(",")}
            return current_value in values

        return _leading_int(cron_field) == current_value

    @staticmethod
    def should_run(expression: str, current_time: datetime = None) -> bool:
        """
        Check if a backup should run at the given minute.

        Args:
            expression: Cron schedule 'minute hour day-of-month month day-of-week'
            current_time: Current time (defaults to now)

        Returns:
            True if all five fields match, False otherwise (including when the
            expression is malformed)
        """
        if current_time is None:
            current_time = datetime.now()

        fields = expression.split()
        if len(fields) != len(_FIELDS):
            logger.error(
                f"Invalid cron format '{expression}': expected 5 fields, got {len(fields)}"
            )
            return False

        return all(
            ScheduleChecker.match_field(cron_field, getter(current_time))
            for cron_field, (_, getter) in zip(fields, _FIELDS)
        )

    @staticmethod
    def next_run_time(
        expression: str, current_time: datetime = None
    ) -> Optional[datetime]:
        """
        Get the next time this schedule would fire according to croniter.

        Only used for log output, so unparseable expressions yield None.
        """
        if current_time is None:
            current_time = datetime.now()

        try:
            cron = croniter(expression.strip(), current_time)
            return cron.get_next(datetime)
        except Exception as e:
            logger.debug(f"Could not compute next run time for '{expression}': {e}")
            return None

    @staticmethod
    def validate_schedule_format(expression: str) -> bool:
        """
        Validate that a schedule string is a five-field cron expression.

        Args:
            expression: Cron schedule string

        Returns:
            True if valid, False otherwise
        """
        if len(expression.split()) != len(_FIELDS):
            return False
        try:
            croniter(expression.strip())
            return True
        except Exception:
            return False
