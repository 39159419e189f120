"""Schedule optimizer orchestrating pattern generation and agent assignment.

For each date in a planning period the optimizer aggregates that day's
forecasts into hourly requirements, builds ranked shift templates, assigns
agents, and turns the assignments into shifts with breaks and costs. It also
exposes the daily intraday reoptimization entry point, which compares live
staffing against forecasts and hands deviations to an OpportunityHandler.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional, Union

from staffcast.domain.errors import ScheduleNotFound, ValidationError
from staffcast.domain.models import (
    Channel,
    ForecastRecord,
    ForecastStatus,
    HourlyRequirement,
    OptimizationPreferences,
    Schedule,
    ScheduleConstraints,
    ScheduleStatus,
    ScheduleType,
    ShiftRecord,
    ShiftStatus,
    ShiftTemplate,
)
from staffcast.forecasting.staffing import estimate_service_level, workload_erlangs
from staffcast.scheduling.assignment import AgentAssignmentEngine
from staffcast.scheduling.cpsat_pattern_generator import (
    CPSATPatternGenerator,
    PatternSolverConfig,
)
from staffcast.scheduling.passes import (
    OptimizationPass,
    PassContext,
    apply_passes,
    build_pass_pipeline,
)
from staffcast.scheduling.pattern_generator import ShiftPatternGenerator
from staffcast.storage.interfaces import ForecastStore, NotificationSink

logger = logging.getLogger(__name__)

SCHEDULES_OPTIMIZED_EVENT = "schedules-optimized"
STAFFING_DEVIATION_EVENT = "staffing-deviation"

LIVE_SHIFT_STATUSES = (ShiftStatus.SCHEDULED, ShiftStatus.CONFIRMED, ShiftStatus.IN_PROGRESS)


class PatternSolverType(Enum):
    """Which shift pattern generator to use."""

    CATALOG = "catalog"  # Rank the fixed template catalog
    CPSAT = "cpsat"  # OR-Tools CP-SAT template counts
    HYBRID = "hybrid"  # Try CP-SAT, fall back to catalog


@dataclass
class OptimizerConfig:
    """Configuration for schedule optimization.

    Attributes:
        pattern_solver: Which pattern generator to use.
        pattern_solver_config: Configuration for the CP-SAT generator.
        forecast_statuses: Forecast states used as demand input.
    """

    pattern_solver: PatternSolverType = PatternSolverType.CATALOG
    pattern_solver_config: PatternSolverConfig = field(default_factory=PatternSolverConfig)
    forecast_statuses: tuple[ForecastStatus, ...] = (
        ForecastStatus.APPROVED,
        ForecastStatus.PUBLISHED,
    )


@dataclass
class ScheduleMetrics:
    """Aggregate quality figures of a generated schedule.

    Attributes:
        coverage: Fraction of required agent-hours met (1.0 with no demand).
        service_level: Volume-weighted estimated service level, None with
            no forecast volume.
        total_cost: Sum of shift labor costs.
        total_shifts: Number of shifts.
        total_hours: Sum of shift durations.
        overtime_hours: Hours past the daily regular limit.
    """

    coverage: float = 1.0
    service_level: Optional[float] = None
    total_cost: float = 0.0
    total_shifts: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0


@dataclass
class ScheduleResult:
    """Result from schedule generation.

    Attributes:
        schedule: The persisted schedule, now in GENERATED state.
        shifts: Persisted shifts.
        metrics: Aggregate metrics.
        requirements: Hourly requirements per date.
        solver_stats: Pattern generator statistics per date.
    """

    schedule: Schedule
    shifts: list[ShiftRecord] = field(default_factory=list)
    metrics: ScheduleMetrics = field(default_factory=ScheduleMetrics)
    requirements: dict[date, dict[int, HourlyRequirement]] = field(default_factory=dict)
    solver_stats: dict[date, dict] = field(default_factory=dict)

    def get_summary(self) -> dict:
        return {
            "schedule_id": self.schedule.id,
            "name": self.schedule.name,
            "num_days": self.schedule.duration_days,
            "total_shifts": self.metrics.total_shifts,
            "total_hours": self.metrics.total_hours,
            "coverage": self.metrics.coverage,
            "service_level": self.metrics.service_level,
            "total_cost": self.metrics.total_cost,
        }


class OpportunityKind(Enum):
    UNDERSTAFFED = "understaffed"
    OVERSTAFFED = "overstaffed"


@dataclass(frozen=True)
class StaffingOpportunity:
    """A deviation between live staffing and forecast demand in one hour.

    Attributes:
        schedule_id: Schedule the shifts belong to.
        day: Date of the deviation.
        hour: Hour of the day.
        kind: Understaffed or overstaffed.
        scheduled: Agents on shift for the whole hour.
        required: Required agents from forecasts.
        optimal: Optimal agents from forecasts.
        delta: Deficit below required, or surplus above optimal.
    """

    schedule_id: str
    day: date
    hour: int
    kind: OpportunityKind
    scheduled: int
    required: int
    optimal: int
    delta: int

    def to_payload(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "date": self.day.isoformat(),
            "hour": self.hour,
            "kind": self.kind.value,
            "scheduled": self.scheduled,
            "required": self.required,
            "optimal": self.optimal,
            "delta": self.delta,
        }


class OpportunityHandler(ABC):
    """Abstract base class for acting on an intraday staffing deviation."""

    @abstractmethod
    def handle(self, opportunity: StaffingOpportunity) -> None:
        """Apply the opportunity. Raising marks it as failed."""
        pass


class NotifyingOpportunityHandler(OpportunityHandler):
    """Publishes each deviation for a human or downstream system to act on."""

    def __init__(self, notifier: Optional[NotificationSink] = None):
        self.notifier = notifier

    def handle(self, opportunity: StaffingOpportunity) -> None:
        if self.notifier is None:
            logger.info("Staffing deviation: %s", opportunity.to_payload())
            return
        self.notifier.emit(STAFFING_DEVIATION_EVENT, opportunity.to_payload())


@dataclass
class IntradayResult:
    """Outcome of reoptimizing one schedule for one date."""

    schedule_id: str
    day: date
    opportunities: list[StaffingOpportunity] = field(default_factory=list)
    applied: int = 0
    failed: int = 0


def build_hourly_requirements(
    forecasts: Iterable[ForecastRecord],
    channels: Optional[Mapping[str, Channel]] = None,
) -> dict[int, HourlyRequirement]:
    """Aggregate one day's forecasts into per-hour requirements.

    Workload is filled in for channels present in ``channels``.
    """
    channels = channels or {}
    requirements: dict[int, HourlyRequirement] = {}
    for forecast in forecasts:
        hour = forecast.forecast_hour
        requirement = requirements.setdefault(hour, HourlyRequirement(hour=hour))
        channel = channels.get(forecast.channel_id)
        requirement.add(
            forecast.channel_id,
            agents=forecast.required_agents,
            volume=forecast.predicted_volume,
            optimal_agents=forecast.optimal_agents,
            workload=workload_erlangs(forecast.predicted_volume, channel) if channel else 0.0,
            skill=forecast.skill,
        )
    return dict(sorted(requirements.items()))


def scheduled_agents(shifts: Iterable[ShiftRecord], hour: int) -> int:
    """Number of shifts spanning the whole clock hour."""
    return sum(1 for s in shifts if s.covers_hour(hour))


def compute_metrics(
    shifts: list[ShiftRecord],
    requirements_by_date: Mapping[date, Mapping[int, HourlyRequirement]],
    constraints: Optional[ScheduleConstraints] = None,
) -> ScheduleMetrics:
    """Coverage, service level and cost of a set of shifts.

    Args:
        shifts: Shifts of the schedule.
        requirements_by_date: Hourly requirements per date.
        constraints: Supplies the regular daily hour limit.
    """
    constraints = constraints or ScheduleConstraints()
    by_date: dict[date, list[ShiftRecord]] = {}
    for shift in shifts:
        by_date.setdefault(shift.shift_date, []).append(shift)

    required_total = 0
    met_total = 0
    weighted_service = 0.0
    volume_total = 0
    for day, requirements in requirements_by_date.items():
        day_shifts = by_date.get(day, [])
        for hour, requirement in requirements.items():
            scheduled = scheduled_agents(day_shifts, hour)
            required_total += requirement.total_agents
            met_total += min(scheduled, requirement.total_agents)
            if requirement.total_volume > 0:
                service = estimate_service_level(requirement.total_workload, scheduled)
                weighted_service += service * requirement.total_volume
                volume_total += requirement.total_volume

    total_hours = sum(s.duration_hours for s in shifts)
    overtime_hours = sum(
        max(0.0, s.duration_hours - constraints.max_hours_per_day) for s in shifts
    )
    return ScheduleMetrics(
        coverage=met_total / required_total if required_total else 1.0,
        service_level=weighted_service / volume_total if volume_total else None,
        total_cost=round(sum(s.total_cost for s in shifts), 2),
        total_shifts=len(shifts),
        total_hours=total_hours,
        overtime_hours=overtime_hours,
    )


class ScheduleOptimizer:
    """Generates schedules over a period and reoptimizes them intraday.

    Example:
        >>> optimizer = ScheduleOptimizer(store, notifier)
        >>> result = optimizer.generate(date(2024, 6, 10), date(2024, 6, 16))
        >>> result.metrics.coverage
        0.94
    """

    def __init__(
        self,
        store: ForecastStore,
        notifier: Optional[NotificationSink] = None,
        pattern_generator: Optional[ShiftPatternGenerator] = None,
        cpsat_generator: Optional[CPSATPatternGenerator] = None,
        assignment_engine: Optional[AgentAssignmentEngine] = None,
        pass_overrides: Optional[Mapping[str, OptimizationPass]] = None,
        opportunity_handler: Optional[OpportunityHandler] = None,
        config: Optional[OptimizerConfig] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or OptimizerConfig()
        self.pattern_generator = pattern_generator or ShiftPatternGenerator()
        self.cpsat_generator = cpsat_generator or CPSATPatternGenerator(
            catalog=self.pattern_generator.catalog,
            config=self.config.pattern_solver_config,
        )
        self.assignment_engine = assignment_engine or AgentAssignmentEngine()
        self.pass_overrides = dict(pass_overrides or {})
        self.opportunity_handler = opportunity_handler or NotifyingOpportunityHandler(notifier)
        self.clock = clock or date.today

    def generate(
        self,
        period_start: date,
        period_end: date,
        agent_ids: Optional[Iterable[str]] = None,
        channel_ids: Optional[Iterable[str]] = None,
        constraints: Union[ScheduleConstraints, dict, None] = None,
        preferences: Union[OptimizationPreferences, dict, None] = None,
        schedule_type: Union[ScheduleType, str] = ScheduleType.CUSTOM,
    ) -> ScheduleResult:
        """Generate and persist a schedule for a planning period.

        Args:
            period_start: First date of the period.
            period_end: Last date of the period (inclusive).
            agent_ids: Restrict the agent pool (None = all active agents).
            channel_ids: Restrict forecasts to these channels.
            constraints: Constraint set or partial override mapping.
            preferences: Preference set or partial override mapping.
            schedule_type: Period type, used for the default name.

        Returns:
            ScheduleResult with persisted schedule, shifts and metrics.

        Raises:
            ValidationError: On an invalid range or unknown override key.
        """
        if period_end < period_start:
            raise ValidationError(
                f"Schedule end date {period_end} is before start date {period_start}",
                "period_end",
            )
        if not isinstance(constraints, ScheduleConstraints):
            constraints = ScheduleConstraints.from_dict(constraints)
        if not isinstance(preferences, OptimizationPreferences):
            preferences = OptimizationPreferences.from_dict(preferences)
        try:
            schedule_type = ScheduleType(schedule_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown schedule type: {schedule_type!r}", "schedule_type") from exc

        channel_filter = list(channel_ids) if channel_ids else None
        schedule = self.store.create_schedule(
            Schedule(
                start_date=period_start,
                end_date=period_end,
                schedule_type=schedule_type,
                constraints=constraints,
                preferences=preferences,
                channel_ids=channel_filter,
            )
        )

        # Snapshot of inputs for the whole run
        agents = self.store.get_active_agents(agent_ids)
        forecasts = self.store.get_forecasts(
            period_start,
            period_end,
            channel_ids=channel_filter,
            statuses=self.config.forecast_statuses,
        )
        channels = self._load_channels(forecasts)
        time_off = self.store.get_approved_time_off(
            [a.id for a in agents], period_start, period_end
        )

        forecasts_by_date: dict[date, list[ForecastRecord]] = {}
        for forecast in forecasts:
            forecasts_by_date.setdefault(forecast.forecast_date, []).append(forecast)

        self.assignment_engine.reset()
        agents_by_id = {a.id: a for a in agents}
        requirements_by_date: dict[date, dict[int, HourlyRequirement]] = {}
        solver_stats: dict[date, dict] = {}
        shifts: list[ShiftRecord] = []

        for day in schedule.schedule_dates:
            requirements = build_hourly_requirements(forecasts_by_date.get(day, []), channels)
            requirements_by_date[day] = requirements
            if not any(r.total_agents > 0 for r in requirements.values()):
                logger.info("No staffing requirement for %s, skipping", day)
                continue
            if not agents:
                logger.warning("No available agents for %s", day)
                continue

            templates, solver_stats[day] = self._generate_patterns(
                requirements, constraints, len(agents)
            )
            assignments = self.assignment_engine.assign(
                templates,
                agents,
                constraints,
                day,
                time_off=time_off,
                requirements=requirements,
            )
            shifts.extend(
                self.assignment_engine.build_shift(
                    a, agents_by_id[a.agent_id], constraints, schedule_id=schedule.id
                )
                for a in assignments
            )

        context = PassContext(
            constraints=constraints,
            preferences=preferences,
            agents=agents_by_id,
            requirements=requirements_by_date,
        )
        shifts = apply_passes(
            shifts, build_pass_pipeline(preferences, self.pass_overrides), context
        )
        saved = [self.store.create_shift(s) for s in shifts]

        metrics = compute_metrics(saved, requirements_by_date, constraints)
        schedule.service_level_achieved = metrics.service_level
        schedule.coverage_percentage = metrics.coverage
        schedule.total_labor_cost = metrics.total_cost
        schedule.status = ScheduleStatus.GENERATED
        schedule = self.store.update_schedule(schedule)

        logger.info(
            "Generated schedule %s with %d shifts (coverage %.2f)",
            schedule.id,
            len(saved),
            metrics.coverage,
        )
        return ScheduleResult(
            schedule=schedule,
            shifts=saved,
            metrics=metrics,
            requirements=requirements_by_date,
            solver_stats=solver_stats,
        )

    def build_hourly_requirements(
        self, forecasts: Iterable[ForecastRecord]
    ) -> dict[int, HourlyRequirement]:
        """Hourly requirements for forecasts, with workload from stored channels."""
        forecasts = list(forecasts)
        return build_hourly_requirements(forecasts, self._load_channels(forecasts))

    def compute_metrics(
        self,
        shifts: list[ShiftRecord],
        requirements_by_date: Mapping[date, Mapping[int, HourlyRequirement]],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> ScheduleMetrics:
        return compute_metrics(shifts, requirements_by_date, constraints)

    def _load_channels(self, forecasts: Iterable[ForecastRecord]) -> dict[str, Channel]:
        channels = {}
        for channel_id in sorted({f.channel_id for f in forecasts}):
            channel = self.store.get_channel(channel_id)
            if channel is None:
                logger.warning("Channel %s of stored forecasts not found", channel_id)
                continue
            channels[channel_id] = channel
        return channels

    def _generate_patterns(
        self,
        requirements: Mapping[int, HourlyRequirement],
        constraints: ScheduleConstraints,
        agent_count: int,
    ) -> tuple[list[ShiftTemplate], dict]:
        """Run the configured pattern generator for one day."""
        solver_type = self.config.pattern_solver
        stats: dict = {"solver_type": solver_type.value}

        if solver_type == PatternSolverType.CATALOG:
            stats["method"] = "catalog"
            return self.pattern_generator.generate(requirements, constraints), stats

        result = self.cpsat_generator.solve(requirements, max_agents=agent_count)
        stats.update({
            "status": result.status,
            "undercoverage": result.undercoverage,
            "solve_time": result.solve_time_seconds,
        })
        if result.is_feasible and result.templates is not None:
            stats["used"] = "cpsat"
            return result.templates, stats

        logger.warning("CP-SAT pattern generation returned %s, using catalog", result.status)
        stats["used"] = "catalog"
        stats["fallback"] = True
        return self.pattern_generator.generate(requirements, constraints), stats

    def find_opportunities(
        self,
        schedule_id: str,
        day: date,
        shifts: list[ShiftRecord],
        requirements: Mapping[int, HourlyRequirement],
    ) -> list[StaffingOpportunity]:
        """Hours where live staffing is below required or above optimal."""
        opportunities = []
        for hour, requirement in sorted(requirements.items()):
            scheduled = scheduled_agents(shifts, hour)
            if scheduled < requirement.total_agents:
                kind = OpportunityKind.UNDERSTAFFED
                delta = requirement.total_agents - scheduled
            elif scheduled > requirement.total_optimal:
                kind = OpportunityKind.OVERSTAFFED
                delta = scheduled - requirement.total_optimal
            else:
                continue
            opportunities.append(
                StaffingOpportunity(
                    schedule_id=schedule_id,
                    day=day,
                    hour=hour,
                    kind=kind,
                    scheduled=scheduled,
                    required=requirement.total_agents,
                    optimal=requirement.total_optimal,
                    delta=delta,
                )
            )
        return opportunities

    def reoptimize_intraday(self, schedule_id: str, day: date) -> IntradayResult:
        """Compare a day's live shifts to its forecasts and act on deviations.

        Each opportunity is handled independently; a failing one is logged
        and counted without blocking the rest.

        Raises:
            ScheduleNotFound: If the schedule does not exist.
        """
        schedule = self.store.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFound(schedule_id)

        shifts = self.store.get_shifts(schedule_id, day, statuses=LIVE_SHIFT_STATUSES)
        # Same channel scope the schedule was generated for
        forecasts = self.store.get_forecasts(
            day, day, channel_ids=schedule.channel_ids, statuses=self.config.forecast_statuses
        )
        requirements = self.build_hourly_requirements(forecasts)

        result = IntradayResult(schedule_id=schedule_id, day=day)
        result.opportunities = self.find_opportunities(schedule_id, day, shifts, requirements)
        for opportunity in result.opportunities:
            try:
                self.opportunity_handler.handle(opportunity)
                result.applied += 1
            except Exception:
                logger.exception(
                    "Applying %s opportunity at hour %d failed",
                    opportunity.kind.value,
                    opportunity.hour,
                )
                result.failed += 1

        logger.info(
            "Intraday reoptimization of %s on %s: %d applied, %d failed",
            schedule_id,
            day,
            result.applied,
            result.failed,
        )
        return result

    def optimize_daily_schedules(self, today: Optional[date] = None) -> list[IntradayResult]:
        """Reoptimize every published or active schedule covering today.

        Intended for a daily trigger. Never raises.
        """
        results: list[IntradayResult] = []
        failed = 0
        try:
            today = today or self.clock()
            for schedule in self.store.get_active_schedules(today):
                try:
                    results.append(self.reoptimize_intraday(schedule.id, today))
                except Exception:
                    logger.exception("Reoptimizing schedule %s failed", schedule.id)
                    failed += 1

            if self.notifier is not None:
                self.notifier.emit(
                    SCHEDULES_OPTIMIZED_EVENT,
                    {
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                        "schedules": len(results),
                        "failed": failed,
                    },
                )
        except Exception:
            logger.exception("Daily schedule optimization failed")
        return results


def create_schedule_optimizer(
    store: ForecastStore,
    notifier: Optional[NotificationSink] = None,
    pattern_solver: str = "catalog",
    time_limit: float = 10.0,
) -> ScheduleOptimizer:
    """Factory function to create a schedule optimizer.

    Args:
        store: Storage collaborator.
        notifier: Event sink.
        pattern_solver: "catalog", "cpsat", or "hybrid".
        time_limit: CP-SAT solver time limit in seconds.
    """
    config = OptimizerConfig(
        pattern_solver=PatternSolverType(pattern_solver.lower()),
        pattern_solver_config=PatternSolverConfig(time_limit_seconds=time_limit),
    )
    return ScheduleOptimizer(store, notifier, config=config)
