"""Tests for domain models."""

from datetime import date, time

import pytest

from staffcast.domain.errors import ScheduleNotFound, ValidationError
from staffcast.domain.models import (
    Agent,
    BreakKind,
    BreakWindow,
    ForecastRecord,
    ForecastStatus,
    OptimizationPreferences,
    Schedule,
    ScheduleConstraints,
    ScheduleType,
    ShiftRecord,
    TimeOffRecord,
    parse_time,
    score_accuracy,
    shift_cost,
    shift_hours,
)


class TestTimeHelpers:
    def test_shift_hours(self):
        assert shift_hours(time(8), time(16, 30)) == 8.5
        assert shift_hours(time(22), time(6)) == 8.0

    def test_parse_time(self):
        assert parse_time("08:30") == time(8, 30)
        assert parse_time("9") == time(9)
        with pytest.raises(ValidationError):
            parse_time("25:00")

    def test_shift_cost(self):
        assert shift_cost(time(8), time(16), 20.0, 8.0) == 160.0
        assert shift_cost(time(8), time(18), 20.0, 8.0) == 220.0
        assert shift_cost(time(8), time(18), 20.0, 8.0, overtime_multiplier=2.0) == 240.0


class TestForecastRecord:
    """Tests for ForecastRecord."""

    def record(self, **overrides):
        values = dict(
            channel_id="voice",
            forecast_date=date(2024, 6, 10),
            forecast_hour=9,
            predicted_volume=20,
            confidence_level=0.9,
            min_volume=15,
            max_volume=25,
            required_agents=4,
            optimal_agents=5,
            minimum_agents=2,
        )
        values.update(overrides)
        return ForecastRecord(**values)

    def test_volume_bounds_enforced(self):
        with pytest.raises(ValidationError):
            self.record(predicted_volume=30)

    def test_hour_range_enforced(self):
        with pytest.raises(ValidationError):
            self.record(forecast_hour=24)

    def test_with_actual_scores_accuracy(self):
        scored = self.record().with_actual(25)
        assert scored.actual_volume == 25
        assert scored.forecast_accuracy == pytest.approx(0.8)
        assert scored.mean_absolute_error == 5.0
        assert scored.mean_squared_error == 25.0
        assert scored.is_within_range()
        assert scored.error_percentage() == pytest.approx(20.0)

    def test_zero_actual_has_no_accuracy(self):
        scored = self.record().with_actual(0)
        assert scored.forecast_accuracy is None
        assert score_accuracy(0, 10) is None

    def test_status_moves_forward_only(self):
        assert ForecastStatus.GENERATED.next_status() == ForecastStatus.REVIEWED
        assert ForecastStatus.PUBLISHED.next_status() == ForecastStatus.ARCHIVED
        assert ForecastStatus.ARCHIVED.next_status() is None


class TestSchedule:
    """Tests for Schedule and its constraint sets."""

    @pytest.mark.parametrize(
        "schedule_type,expected",
        [
            (ScheduleType.MONTHLY, "June 2024 Schedule"),
            (ScheduleType.WEEKLY, "Week of 2024-06-10"),
            (ScheduleType.DAILY, "Daily Schedule 2024-06-10"),
            (ScheduleType.CUSTOM, "Schedule 2024-06-10"),
        ],
    )
    def test_default_names(self, schedule_type, expected):
        schedule = Schedule(date(2024, 6, 10), date(2024, 6, 16), schedule_type)
        assert schedule.name == expected

    def test_explicit_name_kept(self):
        schedule = Schedule(date(2024, 6, 10), date(2024, 6, 10), name="Launch week")
        assert schedule.name == "Launch week"

    def test_dates_inclusive(self):
        schedule = Schedule(date(2024, 6, 10), date(2024, 6, 12))
        assert schedule.duration_days == 3
        assert schedule.schedule_dates[-1] == date(2024, 6, 12)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            Schedule(date(2024, 6, 10), date(2024, 6, 9))

    def test_constraint_overrides(self):
        constraints = ScheduleConstraints.from_dict({"max_hours_per_week": 32})
        assert constraints.max_hours_per_week == 32
        assert constraints.max_consecutive_days == 5

    def test_unknown_override_key(self):
        with pytest.raises(ValidationError, match="allow_night_shifts"):
            OptimizationPreferences.from_dict({"allow_night_shifts": True})


class TestRecords:
    def test_agent_weekly_below_daily_rejected(self):
        with pytest.raises(ValidationError):
            Agent(id="a", max_hours_per_day=10, max_hours_per_week=8)

    def test_time_off_range(self):
        with pytest.raises(ValidationError):
            TimeOffRecord("a", date(2024, 6, 10), date(2024, 6, 9))

    def test_shift_covers_whole_hours_only(self):
        shift = ShiftRecord("a", date(2024, 6, 10), time(8, 30), time(16, 30))
        assert not shift.covers_hour(8)
        assert shift.covers_hour(9)
        assert shift.covers_hour(15)
        assert not shift.covers_hour(16)

    @pytest.mark.parametrize("start,end", [(time(17), time(9)), (time(9), time(9))])
    def test_shift_end_must_follow_start(self, start, end):
        with pytest.raises(ValidationError, match="must be after start"):
            ShiftRecord(agent_id="a", shift_date=date(2024, 6, 10), start_time=start, end_time=end)

    def test_shift_windows_strictly_inside(self):
        day = date(2024, 6, 10)
        lunch = BreakWindow(time(12), time(13), BreakKind.LUNCH)
        shift = ShiftRecord("a", day, time(8), time(16), lunch_break=lunch)
        assert shift.all_breaks() == [lunch]

        edge_lunch = BreakWindow(time(8), time(9), BreakKind.LUNCH)
        with pytest.raises(ValidationError) as exc_info:
            ShiftRecord("a", day, time(8), time(16), lunch_break=edge_lunch)
        assert exc_info.value.field_name == "lunch_break"

        late_break = BreakWindow(time(15, 45), time(16, 15))
        with pytest.raises(ValidationError) as exc_info:
            ShiftRecord("a", day, time(8), time(16), breaks=[late_break])
        assert exc_info.value.field_name == "breaks"

    def test_not_found_message(self):
        assert str(ScheduleNotFound("s1")) == "Schedule not found: s1"
