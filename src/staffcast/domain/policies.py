"""Policy definitions for break and lunch placement.

Policies are kept separate from the assignment engine so the placement rules
can be tested on their own and swapped without touching the engine. All
positions are minutes from midnight of the shift date.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from staffcast.domain.models import ScheduleConstraints

Window = tuple[int, int]


class LunchPolicy(ABC):
    """Abstract base class for lunch break policies."""

    @abstractmethod
    def get_lunch_duration(self, shift_minutes: int, constraints: ScheduleConstraints) -> int:
        """Get lunch duration in minutes for a shift (0 if no lunch)."""
        pass

    @abstractmethod
    def place_lunch(self, start: int, end: int, duration: int) -> Optional[Window]:
        """Get the lunch window for a shift, or None if it cannot be placed."""
        pass


class BreakPolicy(ABC):
    """Abstract base class for rest break policies."""

    @abstractmethod
    def get_break_count(self, shift_minutes: int) -> int:
        """Get number of breaks for a shift of the given length."""
        pass

    @abstractmethod
    def get_break_duration(self, constraints: ScheduleConstraints) -> int:
        """Get duration of each break in minutes."""
        pass

    @abstractmethod
    def place_breaks(
        self,
        start: int,
        end: int,
        break_count: int,
        duration: int,
        lunch: Optional[Window] = None,
    ) -> list[Window]:
        """Get break windows for a shift, avoiding the lunch window."""
        pass


def _strictly_inside(window: Window, start: int, end: int) -> bool:
    return start < window[0] and window[1] < end


def _overlaps(a: Window, b: Window) -> bool:
    return a[0] < b[1] and b[0] < a[1]


@dataclass
class DefaultLunchPolicy(LunchPolicy):
    """Default lunch policy implementation.

    - Shifts of 6 hours or more get one lunch.
    - Duration comes from the constraint set, falling back to 60 minutes.
    - The lunch is centered on the shift midpoint.
    """

    lunch_threshold: int = 360  # 6 hours
    default_duration: int = 60

    def get_lunch_duration(self, shift_minutes: int, constraints: ScheduleConstraints) -> int:
        if shift_minutes < self.lunch_threshold:
            return 0
        return constraints.lunch_break_duration or self.default_duration

    def place_lunch(self, start: int, end: int, duration: int) -> Optional[Window]:
        if duration <= 0:
            return None
        midpoint = start + (end - start) // 2
        lunch_start = midpoint - duration // 2
        window = (lunch_start, lunch_start + duration)
        if not _strictly_inside(window, start, end):
            return None
        return window


@dataclass
class DefaultBreakPolicy(BreakPolicy):
    """Default break policy implementation.

    - One break per completed 4-hour block of the shift.
    - Duration comes from the constraint set, falling back to 15 minutes.
    - Breaks are evenly spaced from shift start: break i of n starts at
      ``start + i * length / (n + 1)``.
    - A break colliding with lunch moves to just after lunch, or to just
      before it when it does not fit after. Breaks that cannot sit strictly
      inside the shift are dropped.
    """

    block_minutes: int = 240  # 4 hours
    default_duration: int = 15

    def get_break_count(self, shift_minutes: int) -> int:
        return shift_minutes // self.block_minutes

    def get_break_duration(self, constraints: ScheduleConstraints) -> int:
        return constraints.min_break_duration or self.default_duration

    def place_breaks(
        self,
        start: int,
        end: int,
        break_count: int,
        duration: int,
        lunch: Optional[Window] = None,
    ) -> list[Window]:
        if break_count <= 0 or duration <= 0:
            return []

        length = end - start
        placed: list[Window] = []
        for i in range(1, break_count + 1):
            target = start + (i * length) // (break_count + 1)
            options = [(target, target + duration)]
            if lunch is not None:
                options.append((lunch[1], lunch[1] + duration))
                options.append((lunch[0] - duration, lunch[0]))

            for window in options:
                if not _strictly_inside(window, start, end):
                    continue
                if lunch is not None and _overlaps(window, lunch):
                    continue
                if any(_overlaps(window, other) for other in placed):
                    continue
                placed.append(window)
                break

        return sorted(placed)
