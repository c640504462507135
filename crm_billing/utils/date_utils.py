"""Date helpers for installment due dates"""

from datetime import date, timedelta
from typing import List


def spaced_due_dates(start: date, count: int, interval_days: int) -> List[date]:
    """Generate `count` dates starting at `start`, `interval_days` apart"""
    return [start + timedelta(days=i * interval_days) for i in range(count)]


def is_valid_period(month: int, year: int) -> bool:
    """Month/year pair usable as a deduction period"""
    return 1 <= month <= 12 and 1900 <= year <= 9999
