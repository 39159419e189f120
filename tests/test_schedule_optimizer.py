"""Tests for the schedule optimizer and intraday reoptimization."""

from datetime import date, time, timedelta

import pytest

from staffcast.domain.errors import ScheduleNotFound, ValidationError
from staffcast.domain.models import (
    Agent,
    Channel,
    ForecastRecord,
    ForecastStatus,
    OptimizationPreferences,
    ScheduleConstraints,
    ScheduleStatus,
    ScheduleType,
    ShiftStatus,
    TimeOffRecord,
    TimeOffStatus,
)
from staffcast.scheduling import (
    BalanceWorkloadPass,
    CPSATPatternGenerator,
    MinimizeOvertimePass,
    OpportunityHandler,
    OpportunityKind,
    OptimizationPass,
    OptimizerConfig,
    PatternSolverResult,
    PatternSolverType,
    ScheduleOptimizer,
    ServiceLevelPass,
    build_hourly_requirements,
    build_pass_pipeline,
    create_schedule_optimizer,
)
from staffcast.scheduling.optimizer import SCHEDULES_OPTIMIZED_EVENT, STAFFING_DEVIATION_EVENT
from staffcast.storage import InMemoryStore, RecordingNotifier

MONDAY = date(2024, 6, 10)


def forecast(day, hour, required=2, optimal=3, volume=20, status=ForecastStatus.APPROVED,
             channel_id="voice"):
    return ForecastRecord(
        channel_id=channel_id,
        forecast_date=day,
        forecast_hour=hour,
        predicted_volume=volume,
        confidence_level=0.9,
        min_volume=max(0, volume - 5),
        max_volume=volume + 5,
        required_agents=required,
        optimal_agents=optimal,
        minimum_agents=1,
        status=status,
    )


def seeded_store(agent_count=4, hours=range(8, 20), days=(MONDAY,), required=2):
    store = InMemoryStore()
    store.add_channel(Channel(id="voice", average_handle_time=6.0, wrap_up_time=0.0))
    for i in range(agent_count):
        store.add_agent(Agent(id=f"A{i + 1}", channel_ids={"voice"}, hourly_rate=20.0))
    for day in days:
        for hour in hours:
            store.create_forecast_record(forecast(day, hour, required=required))
    return store


@pytest.fixture
def store():
    return seeded_store()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def optimizer(store, notifier):
    return ScheduleOptimizer(store, notifier)


# =============================================================================
# Hourly requirements
# =============================================================================


class TestHourlyRequirements:
    """Tests for forecast aggregation."""

    def test_sums_channels_per_hour(self):
        records = [
            forecast(MONDAY, 9, required=2, optimal=3, volume=20),
            forecast(MONDAY, 9, required=1, optimal=2, volume=8, channel_id="chat"),
            forecast(MONDAY, 10, required=3, optimal=4, volume=30),
        ]
        reqs = build_hourly_requirements(records)

        assert list(reqs) == [9, 10]
        assert reqs[9].total_agents == 3
        assert reqs[9].total_optimal == 5
        assert reqs[9].total_volume == 28
        assert set(reqs[9].channels) == {"voice", "chat"}

    def test_workload_from_channels(self):
        channel = Channel(id="voice", average_handle_time=6.0, wrap_up_time=0.0)
        reqs = build_hourly_requirements([forecast(MONDAY, 9, volume=20)], {"voice": channel})
        assert reqs[9].total_workload == pytest.approx(2.0)


# =============================================================================
# Generation
# =============================================================================


class TestGenerate:
    """Tests for ScheduleOptimizer.generate."""

    def test_generates_shifts_and_metrics(self, optimizer, store):
        result = optimizer.generate(MONDAY, MONDAY)

        windows = sorted((s.agent_id, s.start_time, s.end_time) for s in result.shifts)
        assert windows == [
            ("A1", time(8), time(16)),
            ("A2", time(8), time(12)),
            ("A3", time(9), time(17)),
            ("A4", time(10), time(18)),
        ]
        assert result.metrics.coverage == pytest.approx(21 / 24)
        assert result.metrics.total_cost == 560.0
        assert result.metrics.total_shifts == 4
        assert result.metrics.service_level is not None

    def test_persists_schedule_and_shifts(self, optimizer, store):
        result = optimizer.generate(MONDAY, MONDAY)

        schedule = store.get_schedule(result.schedule.id)
        assert schedule.status == ScheduleStatus.GENERATED
        assert schedule.coverage_percentage == pytest.approx(0.875)
        assert schedule.total_labor_cost == 560.0
        assert len(store.get_shifts(schedule.id)) == 4
        assert all(s.schedule_id == schedule.id for s in result.shifts)

    def test_summary(self, optimizer):
        summary = optimizer.generate(MONDAY, MONDAY, schedule_type="daily").get_summary()
        assert summary["name"] == "Daily Schedule 2024-06-10"
        assert summary["num_days"] == 1
        assert summary["total_shifts"] == 4

    def test_rejects_inverted_range(self, optimizer, store):
        with pytest.raises(ValidationError):
            optimizer.generate(MONDAY, MONDAY - timedelta(days=1))
        assert store.schedules == {}

    def test_rejects_unknown_constraint_key(self, optimizer, store):
        with pytest.raises(ValidationError):
            optimizer.generate(MONDAY, MONDAY, constraints={"max_hours_per_fortnight": 80})
        assert store.schedules == {}

    def test_rejects_unknown_schedule_type(self, optimizer):
        with pytest.raises(ValidationError):
            optimizer.generate(MONDAY, MONDAY, schedule_type="hourly")

    def test_constraint_overrides_merge_with_defaults(self, optimizer):
        result = optimizer.generate(MONDAY, MONDAY, constraints={"lunch_break_duration": 30})

        assert result.schedule.constraints.lunch_break_duration == 30
        assert result.schedule.constraints.max_hours_per_week == 40.0
        full_shift = next(s for s in result.shifts if s.agent_id == "A1")
        assert full_shift.lunch_break.duration_minutes == 30

    def test_only_approved_and_published_forecasts_used(self):
        store = seeded_store(hours=[])
        for hour in range(8, 12):
            store.create_forecast_record(forecast(MONDAY, hour, status=ForecastStatus.GENERATED))

        result = ScheduleOptimizer(store).generate(MONDAY, MONDAY)
        assert result.shifts == []
        assert result.metrics.coverage == 1.0
        assert result.metrics.service_level is None

    def test_no_agents_produces_empty_schedule(self):
        store = seeded_store(agent_count=0)
        result = ScheduleOptimizer(store).generate(MONDAY, MONDAY)

        assert result.shifts == []
        assert result.metrics.coverage == 0.0
        assert result.schedule.status == ScheduleStatus.GENERATED

    def test_agent_filter(self, optimizer):
        result = optimizer.generate(MONDAY, MONDAY, agent_ids=["A3"])
        assert {s.agent_id for s in result.shifts} == {"A3"}

    def test_channel_filter_without_forecasts(self, optimizer):
        result = optimizer.generate(MONDAY, MONDAY, channel_ids=["chat"])
        assert result.shifts == []

    def test_time_off_respected(self, store, optimizer):
        store.add_time_off(TimeOffRecord("A1", MONDAY, MONDAY, TimeOffStatus.APPROVED))
        result = optimizer.generate(MONDAY, MONDAY)
        assert "A1" not in {s.agent_id for s in result.shifts}

    def test_weekly_limits_carry_across_days(self):
        days = [MONDAY + timedelta(days=i) for i in range(7)]
        store = seeded_store(agent_count=2, hours=range(8, 16), days=days, required=1)
        result = ScheduleOptimizer(store).generate(days[0], days[-1])

        for agent_id in ("A1", "A2"):
            agent_shifts = [s for s in result.shifts if s.agent_id == agent_id]
            assert sum(s.duration_hours for s in agent_shifts) <= 40
            assert len({s.shift_date for s in agent_shifts}) <= 5

    def test_breaks_inside_every_shift(self, optimizer):
        result = optimizer.generate(MONDAY, MONDAY)
        for shift in result.shifts:
            for window in shift.all_breaks():
                assert shift.start_time < window.start_time
                assert window.end_time < shift.end_time


# =============================================================================
# Pattern solver selection
# =============================================================================


class InfeasibleGenerator(CPSATPatternGenerator):
    def solve(self, hourly_requirements, max_agents=None):
        return PatternSolverResult(templates=None, status="INFEASIBLE")


class TestPatternSolverSelection:
    """Tests for CP-SAT and hybrid pattern generation in the optimizer."""

    def test_hybrid_uses_cpsat_counts(self):
        store = seeded_store(agent_count=3, hours=range(8, 16))
        optimizer = create_schedule_optimizer(store, pattern_solver="hybrid", time_limit=5.0)
        result = optimizer.generate(MONDAY, MONDAY)

        assert result.solver_stats[MONDAY]["used"] == "cpsat"
        assert len(result.shifts) == 2
        assert result.metrics.coverage == 1.0

    def test_infeasible_falls_back_to_catalog(self, store):
        optimizer = ScheduleOptimizer(
            store,
            cpsat_generator=InfeasibleGenerator(),
            config=OptimizerConfig(pattern_solver=PatternSolverType.CPSAT),
        )
        result = optimizer.generate(MONDAY, MONDAY)

        stats = result.solver_stats[MONDAY]
        assert stats["used"] == "catalog"
        assert stats["fallback"] is True
        assert len(result.shifts) == 4

    def test_catalog_stats(self, optimizer):
        result = optimizer.generate(MONDAY, MONDAY)
        assert result.solver_stats[MONDAY] == {"solver_type": "catalog", "method": "catalog"}

    def test_unknown_solver_name(self, store):
        with pytest.raises(ValueError):
            create_schedule_optimizer(store, pattern_solver="genetic")


# =============================================================================
# Optimization passes
# =============================================================================


class DropLastPass(OptimizationPass):
    name = "drop_last"

    def __init__(self):
        self.calls = 0

    def apply(self, shifts, context):
        self.calls += 1
        return list(shifts[:-1])


class TestPasses:
    """Tests for the pass pipeline."""

    def test_default_order(self):
        pipeline = build_pass_pipeline(OptimizationPreferences())
        assert [p.name for p in pipeline] == [
            "balance_workload",
            "minimize_overtime",
            "agent_preferences",
            "service_level",
        ]

    def test_disabled_toggle_skips_pass(self):
        preferences = OptimizationPreferences(
            minimize_overtime=False, prioritize_agent_preferences=False
        )
        pipeline = build_pass_pipeline(preferences)
        assert [type(p) for p in pipeline] == [BalanceWorkloadPass, ServiceLevelPass]

    def test_override_replaces_pass(self):
        custom = DropLastPass()
        pipeline = build_pass_pipeline(OptimizationPreferences(), {"minimize_overtime": custom})
        assert pipeline[1] is custom
        assert not any(isinstance(p, MinimizeOvertimePass) for p in pipeline)

    def test_override_applied_during_generation(self, store):
        custom = DropLastPass()
        optimizer = ScheduleOptimizer(store, pass_overrides={"balance_workload": custom})
        result = optimizer.generate(MONDAY, MONDAY)

        assert custom.calls == 1
        assert len(result.shifts) == 3
        assert len(store.shifts) == 3

    def test_override_not_run_when_toggle_off(self, store):
        custom = DropLastPass()
        optimizer = ScheduleOptimizer(store, pass_overrides={"balance_workload": custom})
        optimizer.generate(MONDAY, MONDAY, preferences={"balance_workload": False})
        assert custom.calls == 0


# =============================================================================
# Intraday reoptimization
# =============================================================================


class FailingAtHourHandler(OpportunityHandler):
    def __init__(self, hour):
        self.hour = hour
        self.handled = []

    def handle(self, opportunity):
        if opportunity.hour == self.hour:
            raise RuntimeError("handler unavailable")
        self.handled.append(opportunity)


class TestIntraday:
    """Tests for intraday reoptimization."""

    def test_finds_under_and_overstaffed_hours(self, optimizer):
        schedule = optimizer.generate(MONDAY, MONDAY).schedule
        result = optimizer.reoptimize_intraday(schedule.id, MONDAY)

        found = [(o.hour, o.kind, o.delta) for o in result.opportunities]
        assert found == [
            (10, OpportunityKind.OVERSTAFFED, 1),
            (11, OpportunityKind.OVERSTAFFED, 1),
            (17, OpportunityKind.UNDERSTAFFED, 1),
            (18, OpportunityKind.UNDERSTAFFED, 2),
            (19, OpportunityKind.UNDERSTAFFED, 2),
        ]
        assert result.applied == 5
        assert result.failed == 0

    def test_notifies_each_deviation(self, optimizer, notifier):
        schedule = optimizer.generate(MONDAY, MONDAY).schedule
        optimizer.reoptimize_intraday(schedule.id, MONDAY)

        deviations = [p for name, p in notifier.events if name == STAFFING_DEVIATION_EVENT]
        assert len(deviations) == 5
        assert deviations[0]["date"] == "2024-06-10"
        assert deviations[0]["kind"] == "overstaffed"

    def test_failing_opportunity_does_not_block_others(self, store):
        handler = FailingAtHourHandler(hour=17)
        optimizer = ScheduleOptimizer(store, opportunity_handler=handler)
        schedule = optimizer.generate(MONDAY, MONDAY).schedule

        result = optimizer.reoptimize_intraday(schedule.id, MONDAY)
        assert result.applied == 4
        assert result.failed == 1
        assert [o.hour for o in handler.handled] == [10, 11, 18, 19]

    def test_cancelled_shifts_are_not_live(self, optimizer, store):
        result = optimizer.generate(MONDAY, MONDAY)
        for shift in result.shifts:
            shift.status = ShiftStatus.CANCELLED

        intraday = optimizer.reoptimize_intraday(result.schedule.id, MONDAY)
        assert all(o.kind == OpportunityKind.UNDERSTAFFED for o in intraday.opportunities)
        assert len(intraday.opportunities) == 12

    def test_uses_channels_of_the_schedule(self, store):
        store.add_channel(Channel(id="chat", average_handle_time=8.0, wrap_up_time=0.0))
        for hour in range(9, 18):
            store.create_forecast_record(forecast(MONDAY, hour, required=3, channel_id="chat"))
        optimizer = ScheduleOptimizer(store)

        schedule = optimizer.generate(MONDAY, MONDAY, channel_ids=["voice"]).schedule
        assert store.get_schedule(schedule.id).channel_ids == ["voice"]

        result = optimizer.reoptimize_intraday(schedule.id, MONDAY)
        assert [(o.hour, o.kind, o.delta) for o in result.opportunities] == [
            (10, OpportunityKind.OVERSTAFFED, 1),
            (11, OpportunityKind.OVERSTAFFED, 1),
            (17, OpportunityKind.UNDERSTAFFED, 1),
            (18, OpportunityKind.UNDERSTAFFED, 2),
            (19, OpportunityKind.UNDERSTAFFED, 2),
        ]

    def test_unknown_schedule(self, optimizer):
        with pytest.raises(ScheduleNotFound):
            optimizer.reoptimize_intraday("missing", MONDAY)


class TestDailyOptimization:
    """Tests for the daily reoptimization trigger."""

    def test_only_published_schedules(self, optimizer, store, notifier):
        published = optimizer.generate(MONDAY, MONDAY).schedule
        published.status = ScheduleStatus.PUBLISHED
        store.update_schedule(published)
        optimizer.generate(MONDAY, MONDAY)

        results = optimizer.optimize_daily_schedules(today=MONDAY)

        assert [r.schedule_id for r in results] == [published.id]
        name, payload = notifier.events[-1]
        assert name == SCHEDULES_OPTIMIZED_EVENT
        assert payload["schedules"] == 1
        assert payload["failed"] == 0
        assert "timestamp" in payload

    def test_uses_clock_by_default(self, store, notifier):
        optimizer = ScheduleOptimizer(store, notifier, clock=lambda: MONDAY)
        schedule = optimizer.generate(MONDAY, MONDAY).schedule
        schedule.status = ScheduleStatus.ACTIVE
        store.update_schedule(schedule)

        assert len(optimizer.optimize_daily_schedules()) == 1

    def test_never_raises(self, notifier):
        class BrokenStore(InMemoryStore):
            def get_active_schedules(self, day):
                raise ConnectionError("store down")

        optimizer = ScheduleOptimizer(BrokenStore(), notifier)
        assert optimizer.optimize_daily_schedules(today=MONDAY) == []

    def test_failing_schedule_counted(self, store, notifier):
        class FlakyOptimizer(ScheduleOptimizer):
            def reoptimize_intraday(self, schedule_id, day):
                raise RuntimeError("boom")

        optimizer = FlakyOptimizer(store, notifier)
        schedule = optimizer.generate(MONDAY, MONDAY).schedule
        schedule.status = ScheduleStatus.PUBLISHED
        store.update_schedule(schedule)

        assert optimizer.optimize_daily_schedules(today=MONDAY) == []
        assert notifier.events[-1][1]["failed"] == 1


def test_schedule_type_enum_accepted(optimizer):
    result = optimizer.generate(MONDAY, MONDAY + timedelta(days=6), schedule_type=ScheduleType.WEEKLY)
    assert result.schedule.name == "Week of 2024-06-10"
    assert isinstance(result.schedule.constraints, ScheduleConstraints)
