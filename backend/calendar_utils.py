"""
Calendar helpers for the capacity engine: working-day counting, daily time
slots and closed-interval date overlap.
"""

from datetime import date, datetime, timedelta

HOURS_PER_WORKING_DAY = 8
WORKING_DAYS_PER_WEEK = 5

# Monday=0 ... Friday=4
_WEEKEND = (5, 6)


class TimeSlot:
    """Allocated hours for a single working day"""

    __slots__ = ('day', 'allocated_hours')

    def __init__(self, day, allocated_hours=0.0):
        self.day = day
        self.allocated_hours = allocated_hours

    def to_dict(self):
        return {
            'date': self.day.isoformat(),
            'allocated_hours': round(self.allocated_hours, 2)
        }

    def __repr__(self):
        return f"TimeSlot({self.day.isoformat()}, {self.allocated_hours:.2f})"


def as_date(value):
    """Coerce a date, datetime or ISO string into a date"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def iter_days(start, end):
    """Yield every calendar day in [start, end]"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_working_day(day):
    return day.weekday() not in _WEEKEND


def working_days(start, end):
    """
    Count the Monday-Friday days in the closed range [start, end].

    Args:
        start, end: Range boundaries (inclusive)

    Returns:
        int: Number of working days, 0 when end is before start
    """
    start, end = as_date(start), as_date(end)
    if not start or not end or end < start:
        return 0

    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * WORKING_DAYS_PER_WEEK

    # Walk the partial week that is left over
    first = start + timedelta(days=full_weeks * 7)
    for offset in range(remainder):
        if is_working_day(first + timedelta(days=offset)):
            count += 1
    return count


def daily_slots(start, end):
    """Build one empty TimeSlot per working day in [start, end]"""
    start, end = as_date(start), as_date(end)
    if not start or not end:
        return []
    return [TimeSlot(day) for day in iter_days(start, end) if is_working_day(day)]


def overlap_days(start_a, end_a, start_b, end_b):
    """
    Calculate the number of overlapping calendar days between two date ranges.

    Both ranges are closed, so ranges that share only a boundary date overlap
    by one day.

    Args:
        start_a, end_a: First date range
        start_b, end_b: Second date range

    Returns:
        int: Number of overlapping days
    """
    if not all([start_a, end_a, start_b, end_b]):
        return 0

    overlap_start = max(as_date(start_a), as_date(start_b))
    overlap_end = min(as_date(end_a), as_date(end_b))

    if overlap_start <= overlap_end:
        return (overlap_end - overlap_start).days + 1  # +1 to include end date
    return 0


def ranges_intersect(start_a, end_a, start_b, end_b):
    return overlap_days(start_a, end_a, start_b, end_b) > 0
