"""Greedy assignment of ranked agents to shift templates.

The engine walks the templates in priority order and gives each one to the
highest-ranked agent who still satisfies the labor constraints. Workload
state (weekly hours, last shift end, worked days) is kept on the engine so
it carries across the days of one optimizer run; call ``reset`` between runs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional, Sequence

from staffcast.domain.models import (
    Agent,
    Assignment,
    BreakKind,
    BreakWindow,
    HourlyRequirement,
    ScheduleConstraints,
    ShiftRecord,
    ShiftTemplate,
    ShiftType,
    TimeOffRecord,
    minutes_to_time,
    shift_cost,
)
from staffcast.domain.policies import (
    BreakPolicy,
    DefaultBreakPolicy,
    DefaultLunchPolicy,
    LunchPolicy,
)
from staffcast.scheduling.strategies import (
    ChannelSelector,
    DemandWeightedChannelSelector,
    MatchingSkillSelector,
    SkillSelector,
    VolumeEstimator,
    WindowVolumeEstimator,
)

logger = logging.getLogger(__name__)

DEFAULT_SATISFACTION_SCORE = 3.0
DEFAULT_RESOLUTION_RATE = 0.5
WEEKEND_BONUS = 0.2
OVERTIME_BONUS = 0.1


def iso_week(day: date) -> tuple[int, int]:
    year, week, _ = day.isocalendar()
    return year, week


@dataclass
class AgentWorkload:
    """Tracks an agent's assigned work across the days of a run.

    Attributes:
        agent_id: ID of the agent.
        weekly_hours: Hours assigned per ISO (year, week).
        daily_hours: Hours assigned per date.
        days_worked: Dates with at least one shift.
        last_shift_end: End of the latest assigned shift.
    """

    agent_id: str
    weekly_hours: dict[tuple[int, int], float] = field(default_factory=dict)
    daily_hours: dict[date, float] = field(default_factory=dict)
    days_worked: set[date] = field(default_factory=set)
    last_shift_end: Optional[datetime] = None

    def hours_in_week(self, day: date) -> float:
        return self.weekly_hours.get(iso_week(day), 0.0)

    def hours_on(self, day: date) -> float:
        return self.daily_hours.get(day, 0.0)

    def days_in_week(self, day: date) -> int:
        week = iso_week(day)
        return sum(1 for d in self.days_worked if iso_week(d) == week)

    def consecutive_days_before(self, day: date) -> int:
        """Length of the worked run ending the day before ``day``."""
        count = 0
        current = day - timedelta(days=1)
        while current in self.days_worked:
            count += 1
            current -= timedelta(days=1)
        return count

    def rest_hours_before(self, start: datetime) -> Optional[float]:
        """Hours between the last shift end and ``start`` (negative on overlap)."""
        if self.last_shift_end is None:
            return None
        return (start - self.last_shift_end).total_seconds() / 3600.0

    def record(self, day: date, start: datetime, end: datetime) -> None:
        hours = (end - start).total_seconds() / 3600.0
        week = iso_week(day)
        self.weekly_hours[week] = self.weekly_hours.get(week, 0.0) + hours
        self.daily_hours[day] = self.daily_hours.get(day, 0.0) + hours
        self.days_worked.add(day)
        if self.last_shift_end is None or end > self.last_shift_end:
            self.last_shift_end = end


def suitability_score(agent: Agent) -> float:
    """Ranking score from performance figures and flexibility flags."""
    satisfaction = agent.customer_satisfaction_score
    resolution = agent.first_call_resolution_rate
    score = satisfaction if satisfaction is not None else DEFAULT_SATISFACTION_SCORE
    score += resolution if resolution is not None else DEFAULT_RESOLUTION_RATE
    if agent.can_work_weekends:
        score += WEEKEND_BONUS
    if agent.overtime_eligible:
        score += OVERTIME_BONUS
    return score


def classify_shift(template: ShiftTemplate, constraints: ScheduleConstraints) -> ShiftType:
    if template.part_time:
        return ShiftType.PART_TIME
    if template.hours > constraints.max_hours_per_day:
        return ShiftType.OVERTIME
    return ShiftType.REGULAR


def _window_datetimes(day: date, template: ShiftTemplate) -> tuple[datetime, datetime]:
    start = datetime.combine(day, template.start)
    return start, start + timedelta(minutes=template.end_minutes - template.start_minutes)


class AgentAssignmentEngine:
    """Assigns agents to shift templates under labor constraints.

    Args:
        lunch_policy: Lunch placement rules.
        break_policy: Rest break placement rules.
        channel_selector: Chooses primary and secondary channels.
        skill_selector: Chooses required skills.
        volume_estimator: Estimates contacts expected during a shift.
    """

    def __init__(
        self,
        lunch_policy: Optional[LunchPolicy] = None,
        break_policy: Optional[BreakPolicy] = None,
        channel_selector: Optional[ChannelSelector] = None,
        skill_selector: Optional[SkillSelector] = None,
        volume_estimator: Optional[VolumeEstimator] = None,
    ):
        self.lunch_policy = lunch_policy or DefaultLunchPolicy()
        self.break_policy = break_policy or DefaultBreakPolicy()
        self.channel_selector = channel_selector or DemandWeightedChannelSelector()
        self.skill_selector = skill_selector or MatchingSkillSelector()
        self.volume_estimator = volume_estimator or WindowVolumeEstimator()
        self.workloads: dict[str, AgentWorkload] = {}

    def reset(self) -> None:
        """Forget workload state from earlier assignments."""
        self.workloads = {}

    def workload(self, agent_id: str) -> AgentWorkload:
        if agent_id not in self.workloads:
            self.workloads[agent_id] = AgentWorkload(agent_id=agent_id)
        return self.workloads[agent_id]

    def rank_agents(self, agents: Iterable[Agent]) -> list[Agent]:
        """Agents by suitability score, best first; ties keep input order."""
        return sorted(agents, key=lambda a: -suitability_score(a))

    def is_eligible(
        self,
        agent: Agent,
        template: ShiftTemplate,
        schedule_date: date,
        constraints: ScheduleConstraints,
    ) -> bool:
        """Check whether an agent can take a template on a date."""
        state = self.workload(agent.id)
        hours = template.hours

        weekly_limit = min(agent.max_hours_per_week, constraints.max_hours_per_week)
        if state.hours_in_week(schedule_date) + hours > weekly_limit:
            return False

        start, _ = _window_datetimes(schedule_date, template)
        rest = state.rest_hours_before(start)
        if rest is not None and rest < constraints.min_time_between_shifts:
            return False

        if not agent.overtime_eligible and state.hours_on(schedule_date) + hours > agent.max_hours_per_day:
            return False

        if schedule_date not in state.days_worked:
            if state.consecutive_days_before(schedule_date) + 1 > constraints.max_consecutive_days:
                return False
            max_days = 7 - constraints.min_days_off_per_week
            if state.days_in_week(schedule_date) + 1 > max_days:
                return False

        return True

    def assign(
        self,
        templates: Sequence[ShiftTemplate],
        available_agents: Iterable[Agent],
        constraints: ScheduleConstraints,
        schedule_date: date,
        time_off: Iterable[TimeOffRecord] = (),
        requirements: Optional[Mapping[int, HourlyRequirement]] = None,
    ) -> list[Assignment]:
        """Assign one agent per template for a date.

        Args:
            templates: Templates in priority order.
            available_agents: Agent snapshot for the run.
            constraints: Labor constraints.
            schedule_date: Date being scheduled.
            time_off: Time-off records; approved ones covering the date
                exclude the agent.
            requirements: Hourly requirements for strategy decisions.

        Returns:
            Assignments in template order. Templates without an eligible
            agent are dropped.
        """
        off = {t.agent_id for t in time_off if t.is_approved and t.covers(schedule_date)}
        candidates = self.rank_agents(
            a for a in available_agents if a.is_active and a.id not in off
        )

        assignments = []
        for template in templates:
            agent = next(
                (a for a in candidates if self.is_eligible(a, template, schedule_date, constraints)),
                None,
            )
            if agent is None:
                logger.debug("No eligible agent for %r on %s", template, schedule_date)
                continue

            primary = self.channel_selector.select_primary(agent, template, requirements)
            assignment = Assignment(
                agent_id=agent.id,
                schedule_date=schedule_date,
                template=template,
                shift_type=classify_shift(template, constraints),
                primary_channel_id=primary,
                secondary_channel_ids=self.channel_selector.select_secondary(
                    agent, template, requirements, primary
                ),
                required_skills=self.skill_selector.required_skills(agent, template, requirements),
                expected_volume=self.volume_estimator.expected_volume(
                    template, requirements, primary
                ),
            )
            start, end = _window_datetimes(schedule_date, template)
            self.workload(agent.id).record(schedule_date, start, end)
            assignments.append(assignment)

        logger.debug(
            "Assigned %d of %d templates on %s", len(assignments), len(templates), schedule_date
        )
        return assignments

    def build_shift(
        self,
        assignment: Assignment,
        agent: Agent,
        constraints: ScheduleConstraints,
        schedule_id: Optional[str] = None,
    ) -> ShiftRecord:
        """Turn an assignment into a shift with breaks, lunch and cost."""
        template = assignment.template
        start, end = template.start_minutes, template.end_minutes
        length = end - start

        lunch_duration = self.lunch_policy.get_lunch_duration(length, constraints)
        lunch = self.lunch_policy.place_lunch(start, end, lunch_duration)
        breaks = self.break_policy.place_breaks(
            start,
            end,
            self.break_policy.get_break_count(length),
            self.break_policy.get_break_duration(constraints),
            lunch,
        )

        return ShiftRecord(
            agent_id=agent.id,
            shift_date=assignment.schedule_date,
            start_time=template.start,
            end_time=template.end,
            shift_type=assignment.shift_type,
            schedule_id=schedule_id,
            primary_channel_id=assignment.primary_channel_id,
            secondary_channel_ids=list(assignment.secondary_channel_ids),
            required_skills=list(assignment.required_skills),
            breaks=[
                BreakWindow(minutes_to_time(b0), minutes_to_time(b1), BreakKind.BREAK)
                for b0, b1 in breaks
            ],
            lunch_break=(
                BreakWindow(minutes_to_time(lunch[0]), minutes_to_time(lunch[1]), BreakKind.LUNCH)
                if lunch
                else None
            ),
            expected_volume=assignment.expected_volume,
            hourly_rate=agent.hourly_rate,
            total_cost=shift_cost(
                template.start,
                template.end,
                agent.hourly_rate,
                constraints.max_hours_per_day,
                constraints.overtime_multiplier,
            ),
        )
