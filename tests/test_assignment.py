"""Tests for agent assignment and shift construction."""

from datetime import date, datetime, time, timedelta

import pytest

from staffcast.domain.models import (
    Agent,
    AgentStatus,
    BreakKind,
    HourlyRequirement,
    ScheduleConstraints,
    ShiftTemplate,
    ShiftType,
    TimeOffRecord,
    TimeOffStatus,
)
from staffcast.scheduling.assignment import (
    AgentAssignmentEngine,
    AgentWorkload,
    classify_shift,
    suitability_score,
)
from staffcast.scheduling.strategies import (
    DemandWeightedChannelSelector,
    MatchingSkillSelector,
    WindowVolumeEstimator,
)

MONDAY = date(2024, 6, 10)

DAY = ShiftTemplate(time(8), time(16), "morning")
LATE = ShiftTemplate(time(9), time(17), "day")
EVENING = ShiftTemplate(time(14), time(22), "evening")
PART_TIME = ShiftTemplate(time(8), time(12), "part_time", part_time=True)
LONG = ShiftTemplate(time(8), time(18), "long")


def agent(agent_id: str, **kwargs) -> Agent:
    kwargs.setdefault("channel_ids", {"voice"})
    return Agent(id=agent_id, **kwargs)


@pytest.fixture
def engine():
    return AgentAssignmentEngine()


@pytest.fixture
def constraints():
    return ScheduleConstraints()


# =============================================================================
# Ranking
# =============================================================================


class TestRanking:
    """Tests for suitability scoring and ranking."""

    def test_default_score(self):
        assert suitability_score(agent("a")) == pytest.approx(3.5)

    def test_flexibility_bonuses(self):
        flexible = agent("a", can_work_weekends=True, overtime_eligible=True)
        assert suitability_score(flexible) == pytest.approx(3.8)

    def test_higher_score_ranks_first(self, engine):
        agents = [agent("a"), agent("b", customer_satisfaction_score=4.5)]
        assert [a.id for a in engine.rank_agents(agents)] == ["b", "a"]

    def test_ties_keep_input_order(self, engine):
        agents = [agent(f"a{i}") for i in range(6)]
        for _ in range(3):
            assert [a.id for a in engine.rank_agents(agents)] == [a.id for a in agents]


# =============================================================================
# Assignment
# =============================================================================


class TestAssign:
    """Tests for AgentAssignmentEngine.assign."""

    def test_tied_agents_assigned_in_input_order(self, constraints):
        agents = [agent("first"), agent("second")]
        for _ in range(3):
            engine = AgentAssignmentEngine()
            assignments = engine.assign([DAY, LATE], agents, constraints, MONDAY)
            assert [a.agent_id for a in assignments] == ["first", "second"]

    def test_overlapping_template_goes_to_next_agent(self, engine, constraints):
        assignments = engine.assign([DAY, PART_TIME], [agent("a"), agent("b")], constraints, MONDAY)
        assert [(a.agent_id, a.template) for a in assignments] == [("a", DAY), ("b", PART_TIME)]

    def test_template_without_agent_is_dropped(self, engine, constraints):
        assignments = engine.assign([DAY, LATE, EVENING], [agent("a")], constraints, MONDAY)
        assert len(assignments) == 1

    def test_approved_time_off_excludes_agent(self, engine, constraints):
        time_off = [TimeOffRecord("a", MONDAY, MONDAY, TimeOffStatus.APPROVED)]
        assignments = engine.assign([DAY], [agent("a"), agent("b")], constraints, MONDAY, time_off)
        assert assignments[0].agent_id == "b"

    def test_pending_time_off_does_not_exclude(self, engine, constraints):
        time_off = [TimeOffRecord("a", MONDAY, MONDAY, TimeOffStatus.PENDING)]
        assignments = engine.assign([DAY], [agent("a"), agent("b")], constraints, MONDAY, time_off)
        assert assignments[0].agent_id == "a"

    def test_inactive_agents_skipped(self, engine, constraints):
        agents = [agent("a", status=AgentStatus.ON_LEAVE), agent("b")]
        assert engine.assign([DAY], agents, constraints, MONDAY)[0].agent_id == "b"

    def test_weekly_hours_limit(self, engine, constraints):
        part_timer = agent("a", max_hours_per_day=8, max_hours_per_week=12)
        assert engine.assign([DAY], [part_timer], constraints, MONDAY)
        assert engine.assign([DAY], [part_timer], constraints, MONDAY + timedelta(days=1)) == []

    def test_constraint_weekly_limit_applies_when_lower(self, engine):
        constraints = ScheduleConstraints(max_hours_per_week=10)
        a = agent("a")
        assert engine.assign([DAY], [a], constraints, MONDAY)
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=1)) == []

    def test_rest_gap_across_days(self, engine):
        constraints = ScheduleConstraints(min_time_between_shifts=12)
        a = agent("a")
        assert engine.assign([EVENING], [a], constraints, MONDAY)
        # 22:00 to 08:00 is only 10 hours
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=1)) == []
        # 22:00 to 10:00 the day after is fine
        later = ShiftTemplate(time(10), time(18))
        assert engine.assign([later], [a], constraints, MONDAY + timedelta(days=1))

    def test_daily_limit_unless_overtime_eligible(self, engine, constraints):
        regular = agent("regular")
        overtime = agent("overtime", overtime_eligible=True, max_hours_per_week=50)
        assignments = engine.assign([LONG], [regular, overtime], constraints, MONDAY)

        assert assignments[0].agent_id == "overtime"
        assert AgentAssignmentEngine().assign([LONG], [regular], constraints, MONDAY) == []

    def test_max_consecutive_days(self, engine):
        constraints = ScheduleConstraints(max_consecutive_days=2, min_days_off_per_week=0)
        a = agent("a")
        assert engine.assign([DAY], [a], constraints, MONDAY)
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=1))
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=2)) == []

    def test_days_off_per_week(self, engine):
        constraints = ScheduleConstraints(max_consecutive_days=7, min_days_off_per_week=5)
        a = agent("a")
        assert engine.assign([DAY], [a], constraints, MONDAY)
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=2))
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=4)) == []
        # The following ISO week starts fresh
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=7))

    def test_reset_clears_workload(self, engine):
        constraints = ScheduleConstraints(max_hours_per_week=10)
        a = agent("a")
        engine.assign([DAY], [a], constraints, MONDAY)
        engine.reset()
        assert engine.assign([DAY], [a], constraints, MONDAY + timedelta(days=1))

    def test_shift_types(self, engine, constraints):
        agents = [agent(f"a{i}", overtime_eligible=True, max_hours_per_week=60) for i in range(3)]
        assignments = engine.assign([DAY, PART_TIME, LONG], agents, constraints, MONDAY)
        assert [a.shift_type for a in assignments] == [
            ShiftType.REGULAR,
            ShiftType.PART_TIME,
            ShiftType.OVERTIME,
        ]

    def test_classify_shift(self, constraints):
        assert classify_shift(LONG, ScheduleConstraints(max_hours_per_day=10)) == ShiftType.REGULAR
        assert classify_shift(LONG, constraints) == ShiftType.OVERTIME


class TestAgentWorkload:
    """Tests for AgentWorkload bookkeeping."""

    def test_overlap_is_negative_rest(self):
        state = AgentWorkload("a")
        state.record(MONDAY, datetime(2024, 6, 10, 8), datetime(2024, 6, 10, 16))
        assert state.rest_hours_before(datetime(2024, 6, 10, 12)) == -4.0
        assert state.hours_in_week(MONDAY + timedelta(days=3)) == 8.0
        assert state.consecutive_days_before(MONDAY + timedelta(days=1)) == 1


# =============================================================================
# Strategies
# =============================================================================


def multi_channel_requirements() -> dict[int, HourlyRequirement]:
    reqs = {}
    for hour in range(8, 20):
        requirement = HourlyRequirement(hour=hour)
        requirement.add("voice", agents=3, volume=30, skill="technical")
        requirement.add("chat", agents=1 if hour < 14 else 5, volume=12, skill="billing")
        reqs[hour] = requirement
    return reqs


class TestStrategies:
    """Tests for the default selection strategies."""

    @pytest.fixture
    def versatile(self):
        return agent("a", channel_ids={"voice", "chat", "email"}, skills={"billing", "sales"})

    def test_primary_channel_by_window_demand(self, versatile):
        selector = DemandWeightedChannelSelector()
        reqs = multi_channel_requirements()
        assert selector.select_primary(versatile, DAY, reqs) == "voice"
        assert selector.select_primary(versatile, EVENING, reqs) == "chat"

    def test_secondary_channels_have_demand(self, versatile):
        selector = DemandWeightedChannelSelector()
        reqs = multi_channel_requirements()
        assert selector.select_secondary(versatile, DAY, reqs, "voice") == ["chat"]

    def test_no_eligible_channel(self):
        selector = DemandWeightedChannelSelector()
        outsider = agent("b", channel_ids={"email"})
        assert selector.select_primary(outsider, DAY, multi_channel_requirements()) is None
        assert selector.select_primary(outsider, DAY, None) is None

    def test_required_skills_intersect_agent_skills(self, versatile):
        skills = MatchingSkillSelector().required_skills(versatile, DAY, multi_channel_requirements())
        assert skills == ["billing"]

    def test_expected_volume_for_primary_channel(self):
        estimator = WindowVolumeEstimator()
        reqs = multi_channel_requirements()
        assert estimator.expected_volume(DAY, reqs, "voice") == 8 * 30
        assert estimator.expected_volume(DAY, reqs) == 8 * 42
        assert estimator.expected_volume(DAY, None) == 0

    def test_assignment_uses_strategies(self, engine, constraints, versatile):
        assignments = engine.assign(
            [DAY], [versatile], constraints, MONDAY, requirements=multi_channel_requirements()
        )
        assignment = assignments[0]
        assert assignment.primary_channel_id == "voice"
        assert assignment.secondary_channel_ids == ["chat"]
        assert assignment.required_skills == ["billing"]
        assert assignment.expected_volume == 240


# =============================================================================
# Shift construction
# =============================================================================


class TestBuildShift:
    """Tests for AgentAssignmentEngine.build_shift."""

    def test_full_shift_breaks_lunch_and_cost(self, engine, constraints):
        a = agent("a", hourly_rate=20.0)
        assignment = engine.assign([DAY], [a], constraints, MONDAY)[0]
        shift = engine.build_shift(assignment, a, constraints, schedule_id="s1")

        assert shift.schedule_id == "s1"
        assert shift.lunch_break.kind == BreakKind.LUNCH
        assert (shift.lunch_break.start_time, shift.lunch_break.end_time) == (time(11, 30), time(12, 30))
        assert [(b.start_time, b.end_time) for b in shift.breaks] == [
            (time(10, 40), time(11, 10)),
            (time(13, 20), time(13, 50)),
        ]
        assert shift.total_cost == 160.0
        assert shift.hourly_rate == 20.0

    def test_part_time_shift_has_no_lunch(self, engine, constraints):
        a = agent("a", hourly_rate=20.0)
        assignment = engine.assign([PART_TIME], [a], constraints, MONDAY)[0]
        shift = engine.build_shift(assignment, a, constraints)

        assert shift.lunch_break is None
        assert [(b.start_time, b.end_time) for b in shift.breaks] == [(time(10), time(10, 30))]
        assert shift.total_cost == 80.0
        assert shift.shift_type == ShiftType.PART_TIME

    def test_overtime_cost(self, engine, constraints):
        a = agent("a", hourly_rate=20.0, overtime_eligible=True, max_hours_per_week=60)
        assignment = engine.assign([LONG], [a], constraints, MONDAY)[0]
        shift = engine.build_shift(assignment, a, constraints)

        # 8 regular hours plus 2 at 1.5x
        assert shift.total_cost == 220.0
        assert shift.is_overtime()

    def test_windows_strictly_inside_shift(self, engine, constraints):
        a = agent("a", overtime_eligible=True, max_hours_per_week=60)
        assignment = engine.assign([LONG], [a], constraints, MONDAY)[0]
        shift = engine.build_shift(assignment, a, constraints)

        for window in shift.all_breaks():
            assert shift.start_time < window.start_time
            assert window.end_time < shift.end_time
