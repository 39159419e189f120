"""Validation module for verifying generated shifts and forecasts.

The engines enforce their rules while building records; this module checks
the finished output independently so a regression in either engine, or a
record edited after generation, is caught before publishing.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from staffcast.domain.models import (
    Agent,
    BreakWindow,
    ForecastRecord,
    ScheduleConstraints,
    ShiftRecord,
    TimeOffRecord,
    time_to_minutes,
)


class ViolationType(Enum):
    """Types of constraint violations."""

    UNKNOWN_AGENT = "unknown_agent"
    END_NOT_AFTER_START = "end_not_after_start"
    LUNCH_OUTSIDE_SHIFT = "lunch_outside_shift"
    BREAK_OUTSIDE_SHIFT = "break_outside_shift"
    BREAK_OVERLAPS_LUNCH = "break_overlaps_lunch"
    BREAKS_OVERLAP = "breaks_overlap"
    MAX_DAILY_HOURS_EXCEEDED = "max_daily_hours_exceeded"
    MAX_WEEKLY_HOURS_EXCEEDED = "max_weekly_hours_exceeded"
    INSUFFICIENT_REST = "insufficient_rest"
    TIME_OFF_CONFLICT = "time_off_conflict"
    VOLUME_OUT_OF_BOUNDS = "volume_out_of_bounds"
    BELOW_MINIMUM_STAFFING = "below_minimum_staffing"
    OPTIMAL_BELOW_REQUIRED = "optimal_below_required"
    DUPLICATE_FORECAST = "duplicate_forecast"


@dataclass
class ConstraintViolation:
    """A single constraint violation."""

    violation_type: ViolationType
    message: str
    agent_id: Optional[str] = None
    shift_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.violation_type.value}]"]
        if self.agent_id:
            parts.append(f"Agent {self.agent_id}:")
        parts.append(self.message)
        return " ".join(parts)


@dataclass
class ValidationResult:
    """Result of a validation run."""

    is_valid: bool = True
    violations: list[ConstraintViolation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_violation(self, violation: ConstraintViolation) -> None:
        """Add a violation and mark as invalid."""
        self.violations.append(violation)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def of_type(self, violation_type: ViolationType) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.violation_type == violation_type]


def _window(window: BreakWindow) -> tuple[int, int]:
    return time_to_minutes(window.start_time), time_to_minutes(window.end_time)


def _overlaps(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] < b[1] and b[0] < a[1]


class ScheduleValidator:
    """Validates shifts and forecasts against the scheduling constraints.

    Example:
        >>> validator = ScheduleValidator()
        >>> result = validator.validate(shifts, agents_map, constraints)
        >>> if not result.is_valid:
        ...     for violation in result.violations:
        ...         print(violation)
    """

    def validate(
        self,
        shifts: list[ShiftRecord],
        agents_map: dict[str, Agent],
        constraints: Optional[ScheduleConstraints] = None,
        time_off: Iterable[TimeOffRecord] = (),
    ) -> ValidationResult:
        """Validate a set of shifts.

        Args:
            shifts: Shifts to check (any number of days).
            agents_map: Dict mapping agent IDs to Agent objects.
            constraints: Constraint set the shifts were generated with.
            time_off: Time-off records; approved ones must not overlap shifts.

        Returns:
            ValidationResult with is_valid flag and any violations.
        """
        constraints = constraints or ScheduleConstraints()
        result = ValidationResult()
        approved_off = [t for t in time_off if t.is_approved]

        for shift in shifts:
            agent = agents_map.get(shift.agent_id)
            if agent is None:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.UNKNOWN_AGENT,
                        message=f"Unknown agent ID: {shift.agent_id}",
                        agent_id=shift.agent_id,
                        shift_id=shift.id,
                    )
                )
                continue
            self._validate_shift(shift, result)

            for record in approved_off:
                if record.agent_id == shift.agent_id and record.covers(shift.shift_date):
                    result.add_violation(
                        ConstraintViolation(
                            violation_type=ViolationType.TIME_OFF_CONFLICT,
                            message=f"Shift on {shift.shift_date} during approved time off",
                            agent_id=shift.agent_id,
                            shift_id=shift.id,
                        )
                    )

        self._validate_daily_hours(shifts, agents_map, result)
        self._validate_rest_gaps(shifts, constraints, result)
        self._validate_weekly_hours(shifts, agents_map, constraints, result)
        return result

    def _validate_shift(self, shift: ShiftRecord, result: ValidationResult) -> None:
        """Validate a single shift's window and its breaks."""
        start = time_to_minutes(shift.start_time)
        end = time_to_minutes(shift.end_time)

        # Generated shifts never cross midnight
        if end <= start:
            result.add_violation(
                ConstraintViolation(
                    violation_type=ViolationType.END_NOT_AFTER_START,
                    message=f"Shift ends at {shift.end_time} before it starts at {shift.start_time}",
                    agent_id=shift.agent_id,
                    shift_id=shift.id,
                )
            )
            return

        lunch = _window(shift.lunch_break) if shift.lunch_break else None
        if lunch and not (start < lunch[0] and lunch[1] < end):
            result.add_violation(
                ConstraintViolation(
                    violation_type=ViolationType.LUNCH_OUTSIDE_SHIFT,
                    message="Lunch is not strictly inside the shift",
                    agent_id=shift.agent_id,
                    shift_id=shift.id,
                )
            )

        breaks = [_window(b) for b in shift.breaks]
        for i, window in enumerate(breaks):
            if not (start < window[0] and window[1] < end):
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.BREAK_OUTSIDE_SHIFT,
                        message=f"Break {i + 1} is not strictly inside the shift",
                        agent_id=shift.agent_id,
                        shift_id=shift.id,
                    )
                )
            if lunch and _overlaps(window, lunch):
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.BREAK_OVERLAPS_LUNCH,
                        message=f"Break {i + 1} overlaps with lunch",
                        agent_id=shift.agent_id,
                        shift_id=shift.id,
                    )
                )

        for i, first in enumerate(breaks):
            for j, second in enumerate(breaks[i + 1 :], i + 1):
                if _overlaps(first, second):
                    result.add_violation(
                        ConstraintViolation(
                            violation_type=ViolationType.BREAKS_OVERLAP,
                            message=f"Break {i + 1} overlaps with break {j + 1}",
                            agent_id=shift.agent_id,
                            shift_id=shift.id,
                        )
                    )

    def _validate_daily_hours(
        self,
        shifts: list[ShiftRecord],
        agents_map: dict[str, Agent],
        result: ValidationResult,
    ) -> None:
        daily: dict[tuple[str, date], float] = {}
        for shift in shifts:
            key = (shift.agent_id, shift.shift_date)
            daily[key] = daily.get(key, 0.0) + shift.duration_hours

        for (agent_id, day), hours in daily.items():
            agent = agents_map.get(agent_id)
            if agent and not agent.overtime_eligible and hours > agent.max_hours_per_day:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.MAX_DAILY_HOURS_EXCEEDED,
                        message=(
                            f"{hours:g} h on {day} exceeds daily max {agent.max_hours_per_day:g} h"
                        ),
                        agent_id=agent_id,
                        details={"date": day.isoformat(), "hours": hours},
                    )
                )

    def _validate_rest_gaps(
        self,
        shifts: list[ShiftRecord],
        constraints: ScheduleConstraints,
        result: ValidationResult,
    ) -> None:
        by_agent: dict[str, list[tuple[datetime, datetime, ShiftRecord]]] = {}
        for shift in shifts:
            start = datetime.combine(shift.shift_date, shift.start_time)
            end = start + timedelta(minutes=shift.duration_minutes)
            by_agent.setdefault(shift.agent_id, []).append((start, end, shift))

        for agent_id, windows in by_agent.items():
            windows.sort(key=lambda w: w[0])
            for (_, prev_end, _), (next_start, _, shift) in zip(windows, windows[1:]):
                gap = (next_start - prev_end).total_seconds() / 3600.0
                if gap < constraints.min_time_between_shifts:
                    result.add_violation(
                        ConstraintViolation(
                            violation_type=ViolationType.INSUFFICIENT_REST,
                            message=(
                                f"Only {gap:g} h rest before shift on {shift.shift_date}, "
                                f"minimum {constraints.min_time_between_shifts:g} h"
                            ),
                            agent_id=agent_id,
                            shift_id=shift.id,
                            details={"gap_hours": gap},
                        )
                    )

    def _validate_weekly_hours(
        self,
        shifts: list[ShiftRecord],
        agents_map: dict[str, Agent],
        constraints: ScheduleConstraints,
        result: ValidationResult,
    ) -> None:
        weekly: dict[tuple[str, int, int], float] = {}
        for shift in shifts:
            year, week, _ = shift.shift_date.isocalendar()
            key = (shift.agent_id, year, week)
            weekly[key] = weekly.get(key, 0.0) + shift.duration_hours

        for (agent_id, year, week), hours in weekly.items():
            agent = agents_map.get(agent_id)
            if agent is None:
                continue
            limit = min(agent.max_hours_per_week, constraints.max_hours_per_week)
            if hours > limit:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.MAX_WEEKLY_HOURS_EXCEEDED,
                        message=f"{hours:g} h in week {year}-W{week:02d} exceeds max {limit:g} h",
                        agent_id=agent_id,
                        details={"total_hours": hours, "max_hours": limit},
                    )
                )

    def validate_forecasts(self, records: Iterable[ForecastRecord]) -> ValidationResult:
        """Check volume bounds, staffing ordering and key uniqueness."""
        result = ValidationResult()
        seen = set()
        for record in records:
            if not record.min_volume <= record.predicted_volume <= record.max_volume:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.VOLUME_OUT_OF_BOUNDS,
                        message=(
                            f"Volume {record.predicted_volume} outside "
                            f"[{record.min_volume}, {record.max_volume}] for {record.key}"
                        ),
                    )
                )
            if record.required_agents < record.minimum_agents:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.BELOW_MINIMUM_STAFFING,
                        message=(
                            f"Required agents {record.required_agents} below minimum "
                            f"{record.minimum_agents} for {record.key}"
                        ),
                    )
                )
            if record.optimal_agents < record.required_agents:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.OPTIMAL_BELOW_REQUIRED,
                        message=f"Optimal agents below required for {record.key}",
                    )
                )
            if record.key in seen:
                result.add_violation(
                    ConstraintViolation(
                        violation_type=ViolationType.DUPLICATE_FORECAST,
                        message=f"Duplicate forecast for {record.key}",
                    )
                )
            seen.add(record.key)
        return result
