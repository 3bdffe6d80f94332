from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.enums import HolidayScope, WorkType
from .model import EmployeeRef, Holiday, WorkSchedule

# Rotating patterns: one working day every N days of the cycle.
_SHIFT_CYCLE = {"1x1": 2, "1x2": 3, "1x3": 4}


def week_index(d: date) -> int:
    """0=Saturday .. 6=Friday, the numbering used by ``WorkSchedule.days_of_week``."""
    return (d.weekday() + 2) % 7


def is_rest_day(d: date, schedule: Optional[WorkSchedule]) -> bool:
    if schedule is None:
        return False

    if schedule.work_type == WorkType.MORNING or (
        schedule.work_type == WorkType.SHIFTS and schedule.shift_pattern == "FIXED"
    ):
        return week_index(d) not in schedule.days_of_week

    if schedule.work_type == WorkType.SHIFTS and schedule.shift_pattern and schedule.cycle_start:
        offset = (d - schedule.cycle_start).days
        if offset < 0:
            return True
        cycle = _SHIFT_CYCLE.get(schedule.shift_pattern)
        return cycle is not None and offset % cycle != 0

    return False


def holiday_applies(employee: EmployeeRef, holiday: Optional[Holiday]) -> bool:
    """Official holidays only excuse morning staff; shift workers keep their rota."""
    if holiday is None or employee.work_type != WorkType.MORNING:
        return False
    return holiday.applies_to in (HolidayScope.ALL, HolidayScope.MORNING_ONLY)
