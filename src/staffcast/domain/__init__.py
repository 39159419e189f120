"""Domain models, errors and placement policies."""

from staffcast.domain.errors import (
    AgentNotFound,
    ChannelNotFound,
    DataUnavailableError,
    NotFoundError,
    ScheduleNotFound,
    StaffcastError,
    ValidationError,
)
from staffcast.domain.models import (
    Agent,
    AgentStatus,
    Assignment,
    BreakKind,
    BreakWindow,
    Channel,
    ChannelDemand,
    ForecastAccuracy,
    ForecastKey,
    ForecastRecord,
    ForecastStatus,
    HistoricalSample,
    HourlyRequirement,
    OptimizationPreferences,
    Schedule,
    ScheduleConstraints,
    ScheduleStatus,
    ScheduleType,
    ServiceType,
    ShiftRecord,
    ShiftStatus,
    ShiftTemplate,
    ShiftType,
    TimeOffRecord,
    TimeOffStatus,
    score_accuracy,
    shift_cost,
    shift_hours,
)
from staffcast.domain.policies import (
    BreakPolicy,
    DefaultBreakPolicy,
    DefaultLunchPolicy,
    LunchPolicy,
)

__all__ = [
    # Errors
    "AgentNotFound",
    "ChannelNotFound",
    "DataUnavailableError",
    "NotFoundError",
    "ScheduleNotFound",
    "StaffcastError",
    "ValidationError",
    # Models
    "Agent",
    "AgentStatus",
    "Assignment",
    "BreakKind",
    "BreakWindow",
    "Channel",
    "ChannelDemand",
    "ForecastAccuracy",
    "ForecastKey",
    "ForecastRecord",
    "ForecastStatus",
    "HistoricalSample",
    "HourlyRequirement",
    "OptimizationPreferences",
    "Schedule",
    "ScheduleConstraints",
    "ScheduleStatus",
    "ScheduleType",
    "ServiceType",
    "ShiftRecord",
    "ShiftStatus",
    "ShiftTemplate",
    "ShiftType",
    "TimeOffRecord",
    "TimeOffStatus",
    "score_accuracy",
    "shift_cost",
    "shift_hours",
    # Policies
    "BreakPolicy",
    "DefaultBreakPolicy",
    "DefaultLunchPolicy",
    "LunchPolicy",
]
