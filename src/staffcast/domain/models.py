"""Domain models for forecasting and shift scheduling.

This module contains the core records consumed and produced by the engines:
channels, agents, forecasts, time off, shifts and schedules, together with
the constraint and preference sets used during schedule generation.
"""

import math
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, time, timedelta
from enum import Enum
from typing import Optional

from staffcast.domain.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: time) -> int:
    """Minutes from midnight for a time of day."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Time of day for minutes from midnight (wraps past midnight)."""
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    return time(hour=hours, minute=mins)


def shift_hours(start: time, end: time) -> float:
    """Duration in hours between two times of day.

    An end before the start is treated as crossing midnight.
    """
    start_minutes = time_to_minutes(start)
    end_minutes = time_to_minutes(end)
    if end_minutes < start_minutes:
        end_minutes += MINUTES_PER_DAY
    return (end_minutes - start_minutes) / 60.0


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    hours, _, minutes = value.partition(":")
    try:
        return time(hour=int(hours), minute=int(minutes or 0))
    except ValueError as exc:
        raise ValidationError(f"Invalid time of day: {value!r}") from exc


class ServiceType(Enum):
    """Contact channel type."""

    VOICE_INBOUND = "voice_inbound"
    VOICE_OUTBOUND = "voice_outbound"
    CHAT = "chat"
    EMAIL = "email"
    SMS = "sms"


class AgentStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


class ForecastStatus(Enum):
    """Forecast lifecycle. Transitions are linear and forward only."""

    GENERATED = "generated"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    def next_status(self) -> Optional["ForecastStatus"]:
        """The following lifecycle state, or None once archived."""
        order = list(ForecastStatus)
        index = order.index(self)
        if index + 1 < len(order):
            return order[index + 1]
        return None


class TimeOffStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELLED = "cancelled"


class ShiftType(Enum):
    REGULAR = "regular"
    OVERTIME = "overtime"
    PART_TIME = "part_time"


class ShiftStatus(Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScheduleStatus(Enum):
    """Schedule lifecycle. The core only moves DRAFT to GENERATED."""

    DRAFT = "draft"
    GENERATED = "generated"
    PUBLISHED = "published"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ScheduleType(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class BreakKind(Enum):
    BREAK = "break"
    LUNCH = "lunch"


@dataclass
class Channel:
    """A contact channel with its service parameters.

    Attributes:
        id: Unique identifier for the channel.
        name: Display name.
        service_type: Kind of contact handled on this channel.
        operating_hours_start: Opening time (inclusive).
        operating_hours_end: Closing time (exclusive).
        average_handle_time: Talk/handle time per contact in minutes.
        wrap_up_time: After-contact work per contact in minutes.
        service_level_target: Fraction of contacts to answer within threshold.
        service_level_threshold: Answer threshold in seconds.
        shrinkage_factor: Fraction of paid time unavailable for contacts.
        min_staffing_level: Floor for every staffing figure on this channel.
        preferred_staffing_buffer: Extra fraction on top of required staff.
        is_active: Inactive channels are skipped by periodic refreshes.
    """

    id: str
    name: str = ""
    service_type: ServiceType = ServiceType.VOICE_INBOUND
    operating_hours_start: time = time(8, 0)
    operating_hours_end: time = time(20, 0)
    average_handle_time: float = 5.0
    wrap_up_time: float = 2.0
    service_level_target: float = 0.80
    service_level_threshold: int = 20
    shrinkage_factor: float = 0.25
    min_staffing_level: int = 1
    preferred_staffing_buffer: float = 0.10
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.operating_hours_start >= self.operating_hours_end:
            raise ValidationError(
                f"Channel {self.id}: operating hours start must be before end",
                "operating_hours_start",
            )
        if not 0.0 <= self.shrinkage_factor < 1.0:
            raise ValidationError(
                f"Channel {self.id}: shrinkage factor must be in [0, 1), "
                f"got {self.shrinkage_factor}",
                "shrinkage_factor",
            )
        if self.min_staffing_level < 0:
            raise ValidationError(
                f"Channel {self.id}: minimum staffing level cannot be negative",
                "min_staffing_level",
            )

    @property
    def total_handle_time(self) -> float:
        """Handle plus wrap-up time in minutes."""
        return self.average_handle_time + self.wrap_up_time

    def is_operating_hour(self, hour: int) -> bool:
        """Check if an hour of the day falls inside the operating window."""
        return self.operating_hours_start.hour <= hour < self.operating_hours_end.hour


@dataclass
class Agent:
    """An agent who can be scheduled.

    Attributes:
        id: Unique identifier for the agent.
        name: Display name.
        status: Employment status; only active agents are scheduled.
        skills: Skill names the agent holds.
        channel_ids: Channels the agent may work.
        average_handle_time: Personal handle time in minutes, if known.
        first_call_resolution_rate: Resolution rate as a fraction.
        customer_satisfaction_score: Satisfaction score (1-5 scale).
        can_work_weekends: Weekend flexibility flag.
        can_work_holidays: Holiday flexibility flag.
        overtime_eligible: Whether overtime shifts may be assigned.
        max_hours_per_day: Daily hour limit.
        max_hours_per_week: Weekly hour limit.
        hourly_rate: Pay rate used for labor cost.
    """

    id: str
    name: str = ""
    status: AgentStatus = AgentStatus.ACTIVE
    skills: set[str] = field(default_factory=set)
    channel_ids: set[str] = field(default_factory=set)
    average_handle_time: Optional[float] = None
    first_call_resolution_rate: Optional[float] = None
    customer_satisfaction_score: Optional[float] = None
    can_work_weekends: bool = False
    can_work_holidays: bool = False
    overtime_eligible: bool = False
    max_hours_per_day: float = 8.0
    max_hours_per_week: float = 40.0
    hourly_rate: float = 0.0

    def __post_init__(self) -> None:
        if self.max_hours_per_week < self.max_hours_per_day:
            raise ValidationError(
                f"Agent {self.id}: max hours per week must be at least max hours per day",
                "max_hours_per_week",
            )

    @property
    def is_active(self) -> bool:
        return self.status == AgentStatus.ACTIVE

    def can_work_channel(self, channel_id: str) -> bool:
        return channel_id in self.channel_ids


@dataclass(frozen=True)
class HistoricalSample:
    """Observed contact volume for a channel in one past hour."""

    sample_date: date
    volume: int
    hour: Optional[int] = None


@dataclass(frozen=True)
class ForecastKey:
    """Uniqueness key for a forecast record."""

    channel_id: str
    skill: Optional[str]
    forecast_date: date
    forecast_hour: int


@dataclass
class ForecastAccuracy:
    """Accuracy of a forecast against the observed volume."""

    accuracy: float
    mean_absolute_error: float
    mean_squared_error: float


def score_accuracy(predicted_volume: int, actual_volume: int) -> Optional[ForecastAccuracy]:
    """Score a prediction against the observed volume.

    Returns None when either side is zero, as no meaningful ratio exists.
    """
    if not predicted_volume or not actual_volume:
        return None
    error = abs(actual_volume - predicted_volume)
    return ForecastAccuracy(
        accuracy=1 - error / max(actual_volume, predicted_volume),
        mean_absolute_error=float(error),
        mean_squared_error=float(error * error),
    )


@dataclass
class ForecastRecord:
    """Hourly demand and staffing forecast for a channel (and optional skill).

    Attributes:
        channel_id: Channel the forecast applies to.
        forecast_date: Date forecasted.
        forecast_hour: Hour of the day (0-23).
        predicted_volume: Expected number of contacts.
        confidence_level: Confidence in the prediction (0-1).
        min_volume: Lower volume bound.
        max_volume: Upper volume bound.
        required_agents: Agents needed to meet the service level.
        optimal_agents: Required agents plus the channel's buffer.
        minimum_agents: Channel staffing floor.
        predicted_service_level: Approximate service level at required staffing.
        predicted_wait_time: Approximate average wait in seconds.
        skill: Optional skill the forecast is split by.
        seasonal_factor: Combined day/hour/month multiplier applied.
        trend_factor: Trend multiplier applied.
        special_event_factor: Special event multiplier applied.
        weather_factor: Weather multiplier applied.
        holiday_factor: Holiday multiplier applied.
        status: Lifecycle state.
        actual_volume: Observed volume, filled in after the fact.
    """

    channel_id: str
    forecast_date: date
    forecast_hour: int
    predicted_volume: int
    confidence_level: float
    min_volume: int
    max_volume: int
    required_agents: int
    optimal_agents: int
    minimum_agents: int
    predicted_service_level: float = 0.0
    predicted_wait_time: float = 0.0
    skill: Optional[str] = None
    seasonal_factor: float = 1.0
    trend_factor: float = 1.0
    special_event_factor: float = 1.0
    weather_factor: float = 1.0
    holiday_factor: float = 1.0
    status: ForecastStatus = ForecastStatus.GENERATED
    forecast_method: str = "seasonal_decomposition"
    model_version: str = "1.0.0"
    actual_volume: Optional[int] = None
    forecast_accuracy: Optional[float] = None
    mean_absolute_error: Optional[float] = None
    mean_squared_error: Optional[float] = None
    is_manual_override: bool = False
    override_reason: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not 0 <= self.forecast_hour <= 23:
            raise ValidationError(
                f"Forecast hour must be in 0-23, got {self.forecast_hour}", "forecast_hour"
            )
        if not self.min_volume <= self.predicted_volume <= self.max_volume:
            raise ValidationError(
                f"Volume bounds violated: {self.min_volume} <= "
                f"{self.predicted_volume} <= {self.max_volume}",
                "predicted_volume",
            )

    @property
    def key(self) -> ForecastKey:
        return ForecastKey(self.channel_id, self.skill, self.forecast_date, self.forecast_hour)

    def with_actual(self, actual_volume: int) -> "ForecastRecord":
        """Copy of this record with the observed volume and accuracy filled in."""
        scored = score_accuracy(self.predicted_volume, actual_volume)
        return replace(
            self,
            actual_volume=actual_volume,
            forecast_accuracy=scored.accuracy if scored else None,
            mean_absolute_error=scored.mean_absolute_error if scored else None,
            mean_squared_error=scored.mean_squared_error if scored else None,
        )

    def is_accurate(self, threshold: float = 0.80) -> bool:
        return self.forecast_accuracy is not None and self.forecast_accuracy >= threshold

    def is_within_range(self) -> Optional[bool]:
        """Whether the observed volume fell inside the predicted bounds."""
        if self.actual_volume is None:
            return None
        return self.min_volume <= self.actual_volume <= self.max_volume

    def error_percentage(self) -> Optional[float]:
        if not self.actual_volume:
            return None
        return abs(self.actual_volume - self.predicted_volume) / self.actual_volume * 100


@dataclass
class TimeOffRecord:
    """A time-off request for an agent.

    Attributes:
        agent_id: Agent requesting time off.
        start_date: First day off.
        end_date: Last day off (inclusive).
        status: Approval state; only approved records exclude the agent.
    """

    agent_id: str
    start_date: date
    end_date: date
    status: TimeOffStatus = TimeOffStatus.PENDING

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValidationError(
                f"Time off for {self.agent_id}: end date before start date", "end_date"
            )

    @property
    def is_approved(self) -> bool:
        return self.status == TimeOffStatus.APPROVED

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class ScheduleConstraints:
    """Labor constraints applied while assigning shifts.

    Durations are in minutes except where the name says hours.
    """

    max_consecutive_days: int = 5
    min_days_off_per_week: int = 2
    max_hours_per_day: float = 8.0
    max_hours_per_week: float = 40.0
    min_break_duration: int = 30
    lunch_break_duration: int = 60
    min_time_between_shifts: float = 8.0
    overtime_multiplier: float = 1.5

    @classmethod
    def from_dict(cls, overrides: Optional[dict] = None) -> "ScheduleConstraints":
        """Build constraints from defaults plus a partial override mapping."""
        return _from_overrides(cls, overrides)


@dataclass
class OptimizationPreferences:
    """Toggles for the post-assignment optimization passes."""

    prioritize_agent_preferences: bool = True
    minimize_overtime: bool = True
    balance_workload: bool = True
    optimize_for_service_level: bool = True
    allow_split_shifts: bool = False

    @classmethod
    def from_dict(cls, overrides: Optional[dict] = None) -> "OptimizationPreferences":
        """Build preferences from defaults plus a partial override mapping."""
        return _from_overrides(cls, overrides)


def _from_overrides(cls, overrides: Optional[dict]):
    known = {f.name for f in fields(cls)}
    overrides = overrides or {}
    unknown = set(overrides) - known
    if unknown:
        raise ValidationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    return cls(**overrides)


@dataclass(frozen=True)
class BreakWindow:
    """A break or lunch placed inside a shift."""

    start_time: time
    end_time: time
    kind: BreakKind = BreakKind.BREAK

    @property
    def duration_minutes(self) -> int:
        return time_to_minutes(self.end_time) - time_to_minutes(self.start_time)

    def __repr__(self) -> str:
        return (
            f"BreakWindow({self.kind.value} {self.start_time.strftime('%H:%M')}-"
            f"{self.end_time.strftime('%H:%M')})"
        )


def shift_cost(
    start: time,
    end: time,
    hourly_rate: float,
    regular_hours_limit: float,
    overtime_multiplier: float = 1.5,
) -> float:
    """Labor cost of a shift, paying hours past the daily limit at overtime rate."""
    hours = shift_hours(start, end)
    regular = min(hours, regular_hours_limit)
    overtime = max(0.0, hours - regular_hours_limit)
    return round(hourly_rate * regular + hourly_rate * overtime_multiplier * overtime, 2)


@dataclass
class ShiftRecord:
    """A concrete shift assigned to an agent.

    Attributes:
        agent_id: Agent working the shift.
        shift_date: Date of the shift.
        start_time: Shift start.
        end_time: Shift end.
        shift_type: Regular, overtime or part-time.
        schedule_id: Schedule owning this shift.
        primary_channel_id: Main channel worked, if selected.
        secondary_channel_ids: Other channels the agent may cover.
        required_skills: Skills needed for the shift.
        breaks: Rest breaks inside the shift.
        lunch_break: Lunch inside the shift, if any.
        expected_volume: Contacts expected during the shift.
        hourly_rate: Pay rate snapshot.
        total_cost: Labor cost of the shift.
        status: Lifecycle state.
    """

    agent_id: str
    shift_date: date
    start_time: time
    end_time: time
    shift_type: ShiftType = ShiftType.REGULAR
    schedule_id: Optional[str] = None
    primary_channel_id: Optional[str] = None
    secondary_channel_ids: list[str] = field(default_factory=list)
    required_skills: list[str] = field(default_factory=list)
    breaks: list[BreakWindow] = field(default_factory=list)
    lunch_break: Optional[BreakWindow] = None
    expected_volume: int = 0
    hourly_rate: float = 0.0
    total_cost: float = 0.0
    status: ShiftStatus = ShiftStatus.SCHEDULED
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        start = time_to_minutes(self.start_time)
        end = time_to_minutes(self.end_time)
        if end <= start:
            raise ValidationError(
                f"Shift end {self.end_time} must be after start {self.start_time}", "end_time"
            )
        for window in self.all_breaks():
            window_start = time_to_minutes(window.start_time)
            window_end = time_to_minutes(window.end_time)
            if not (start < window_start and window_end < end):
                raise ValidationError(
                    f"{window!r} is not strictly inside shift "
                    f"{self.start_time}-{self.end_time}",
                    "lunch_break" if window.kind == BreakKind.LUNCH else "breaks",
                )

    @property
    def duration_hours(self) -> float:
        return shift_hours(self.start_time, self.end_time)

    @property
    def duration_minutes(self) -> int:
        return round(self.duration_hours * 60)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        """End in minutes from midnight of the shift date (past 1440 if overnight)."""
        return self.start_minutes + self.duration_minutes

    def is_overtime(self, regular_hours_limit: float = 8.0) -> bool:
        return self.shift_type == ShiftType.OVERTIME or self.duration_hours > regular_hours_limit

    def covers_hour(self, hour: int) -> bool:
        """Check if the shift spans the whole clock hour starting at ``hour``."""
        return self.start_minutes <= hour * 60 and (hour + 1) * 60 <= self.end_minutes

    def overlaps(self, other: "ShiftRecord") -> bool:
        if self.shift_date != other.shift_date:
            return False
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def all_breaks(self) -> list[BreakWindow]:
        """Breaks and lunch together, ordered by start time."""
        windows = list(self.breaks)
        if self.lunch_break is not None:
            windows.append(self.lunch_break)
        return sorted(windows, key=lambda w: w.start_time)


def default_schedule_name(schedule_type: ScheduleType, start_date: date) -> str:
    """Human readable schedule name derived from type and start date."""
    if schedule_type == ScheduleType.MONTHLY:
        return f"{start_date.strftime('%B')} {start_date.year} Schedule"
    if schedule_type == ScheduleType.WEEKLY:
        return f"Week of {start_date.isoformat()}"
    if schedule_type == ScheduleType.DAILY:
        return f"Daily Schedule {start_date.isoformat()}"
    return f"Schedule {start_date.isoformat()}"


@dataclass
class Schedule:
    """A planning period with the shifts generated for it.

    Attributes:
        start_date: First date of the period.
        end_date: Last date of the period (inclusive).
        schedule_type: Daily, weekly, monthly or custom period.
        constraints: Labor constraints used for generation.
        preferences: Optimization toggles used for generation.
        channel_ids: Channels the schedule was generated for; None means all.
        status: Lifecycle state.
        service_level_achieved: Aggregate service level of generated shifts.
        coverage_percentage: Fraction of required staffing met.
        total_labor_cost: Sum of shift costs.
    """

    start_date: date
    end_date: date
    schedule_type: ScheduleType = ScheduleType.CUSTOM
    name: str = ""
    constraints: ScheduleConstraints = field(default_factory=ScheduleConstraints)
    preferences: OptimizationPreferences = field(default_factory=OptimizationPreferences)
    channel_ids: Optional[list[str]] = None
    status: ScheduleStatus = ScheduleStatus.DRAFT
    service_level_achieved: Optional[float] = None
    coverage_percentage: Optional[float] = None
    total_labor_cost: Optional[float] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValidationError(
                f"Schedule end date {self.end_date} is before start date {self.start_date}",
                "end_date",
            )
        if not self.name:
            self.name = default_schedule_name(self.schedule_type, self.start_date)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def schedule_dates(self) -> list[date]:
        """List of all dates in the scheduling period."""
        return [self.start_date + timedelta(days=i) for i in range(self.duration_days)]

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class ChannelDemand:
    """Staffing demand of one channel within an hour."""

    agents: int = 0
    optimal_agents: int = 0
    volume: int = 0
    workload: float = 0.0
    skills: set[str] = field(default_factory=set)


@dataclass
class HourlyRequirement:
    """Aggregated staffing requirement across channels for one hour.

    Attributes:
        hour: Hour of the day (0-23).
        total_agents: Sum of required agents over channels.
        total_volume: Sum of predicted volume over channels.
        total_optimal: Sum of optimal agents over channels.
        total_workload: Offered workload in Erlangs, when known.
        channels: Per-channel breakdown keyed by channel id.
    """

    hour: int
    total_agents: int = 0
    total_volume: int = 0
    total_optimal: int = 0
    total_workload: float = 0.0
    channels: dict[str, ChannelDemand] = field(default_factory=dict)

    def add(
        self,
        channel_id: str,
        agents: int,
        volume: int,
        optimal_agents: int = 0,
        workload: float = 0.0,
        skill: Optional[str] = None,
    ) -> None:
        """Add one forecast's demand into this hour."""
        self.total_agents += agents
        self.total_volume += volume
        self.total_optimal += optimal_agents
        self.total_workload += workload
        demand = self.channels.setdefault(channel_id, ChannelDemand())
        demand.agents += agents
        demand.optimal_agents += optimal_agents
        demand.volume += volume
        demand.workload += workload
        if skill:
            demand.skills.add(skill)


@dataclass(frozen=True)
class ShiftTemplate:
    """A candidate shift window ranked by how much peak demand it covers.

    Attributes:
        start: Start time of the window.
        end: End time of the window (exclusive).
        label: Catalog label (e.g. "morning", "part_time").
        part_time: True for part-time windows.
        priority: Number of peak hours covered.
    """

    start: time
    end: time
    label: str = ""
    part_time: bool = False
    priority: int = 0

    def __post_init__(self) -> None:
        if time_to_minutes(self.end) <= time_to_minutes(self.start):
            raise ValidationError(
                f"Template end {self.end} must be after start {self.start}", "end"
            )

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + round(self.hours * 60)

    @property
    def hours(self) -> float:
        return shift_hours(self.start, self.end)

    def covers_hour(self, hour: int) -> bool:
        """Half-open check: the window contains the start of ``hour``."""
        return self.start_minutes <= hour * 60 < self.end_minutes

    def hours_covered(self) -> list[int]:
        """Clock hours whose start falls inside the window."""
        first = math.ceil(self.start_minutes / 60)
        return [h for h in range(first, 24) if self.covers_hour(h)]

    def with_priority(self, priority: int) -> "ShiftTemplate":
        return replace(self, priority=priority)

    def __repr__(self) -> str:
        return (
            f"ShiftTemplate({self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}, "
            f"priority={self.priority})"
        )


@dataclass
class Assignment:
    """An agent picked for a shift template on a date."""

    agent_id: str
    schedule_date: date
    template: ShiftTemplate
    shift_type: ShiftType = ShiftType.REGULAR
    primary_channel_id: Optional[str] = None
    secondary_channel_ids: list[str] = field(default_factory=list)
    required_skills: list[str] = field(default_factory=list)
    expected_volume: int = 0

    @property
    def hours(self) -> float:
        return self.template.hours
