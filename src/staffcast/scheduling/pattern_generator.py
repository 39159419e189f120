"""Shift pattern generation from hourly staffing requirements.

Candidate shift windows come from a fixed catalog of standard 8-hour and
part-time 4-hour templates. Each template is ranked by how many peak hours
it covers, where peak hours are the busiest 30% of the day's hours.
"""

import math
from datetime import time
from typing import Mapping, Optional, Sequence

from staffcast.domain.models import HourlyRequirement, ScheduleConstraints, ShiftTemplate

DEFAULT_TEMPLATE_CATALOG: tuple[ShiftTemplate, ...] = (
    # Standard 8-hour shifts
    ShiftTemplate(time(8, 0), time(16, 0), "morning"),
    ShiftTemplate(time(9, 0), time(17, 0), "day"),
    ShiftTemplate(time(10, 0), time(18, 0), "day"),
    ShiftTemplate(time(12, 0), time(20, 0), "afternoon"),
    ShiftTemplate(time(14, 0), time(22, 0), "evening"),
    # Part-time shifts for coverage gaps
    ShiftTemplate(time(8, 0), time(12, 0), "part_time", part_time=True),
    ShiftTemplate(time(13, 0), time(17, 0), "part_time", part_time=True),
    ShiftTemplate(time(18, 0), time(22, 0), "part_time", part_time=True),
)

PEAK_HOUR_FRACTION = 0.3


def find_peak_hours(
    hourly_requirements: Mapping[int, HourlyRequirement],
    fraction: float = PEAK_HOUR_FRACTION,
) -> list[int]:
    """Busiest hours by total agents, ties broken by earlier hour.

    Returns the top ``ceil(len * fraction)`` hours.
    """
    hours = sorted(
        hourly_requirements,
        key=lambda h: (-hourly_requirements[h].total_agents, h),
    )
    return hours[: math.ceil(len(hours) * fraction)]


def template_priority(template: ShiftTemplate, peak_hours: Sequence[int]) -> int:
    """Number of peak hours inside the template's half-open window."""
    return sum(1 for hour in peak_hours if template.covers_hour(hour))


class ShiftPatternGenerator:
    """Ranks catalog shift templates against a day's requirements.

    This is a heuristic over a fixed catalog, not a coverage solver. See
    CPSATPatternGenerator for an optimizing alternative with the same output.
    """

    def __init__(self, catalog: Optional[Sequence[ShiftTemplate]] = None):
        self.catalog = tuple(catalog) if catalog is not None else DEFAULT_TEMPLATE_CATALOG

    def generate(
        self,
        hourly_requirements: Mapping[int, HourlyRequirement],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> list[ShiftTemplate]:
        """Rank the catalog by peak-hour overlap.

        Args:
            hourly_requirements: Requirement per hour of the day.
            constraints: Schedule constraints (templates longer than the
                daily limit stay in the list and become overtime shifts).

        Returns:
            Templates sorted by priority descending; ties keep catalog order.
        """
        peak_hours = find_peak_hours(hourly_requirements)
        ranked = [t.with_priority(template_priority(t, peak_hours)) for t in self.catalog]
        # sorted() is stable, so equal priorities keep catalog order
        return sorted(ranked, key=lambda t: -t.priority)
