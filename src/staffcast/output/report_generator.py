"""Text reports for generated schedules and forecasts.

The schedule report shows:
- Schedule summary and aggregate metrics
- Per-day shift listing with lunch and breaks
- Hourly coverage against required agents
"""

from pathlib import Path
from typing import Iterable, Optional, Union

from staffcast.domain.models import Agent, ForecastRecord, ShiftRecord
from staffcast.scheduling.optimizer import ScheduleResult, scheduled_agents


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


class ScheduleReportGenerator:
    """Generates human-readable text reports.

    Example:
        >>> report = ScheduleReportGenerator().generate_to_string(result, agents_map)
        >>> print(report)
    """

    def __init__(self, width: int = 80):
        self.width = width

    def generate(
        self,
        result: ScheduleResult,
        agents_map: dict[str, Agent],
        output_path: Union[str, Path],
    ) -> str:
        """Generate the schedule report and save it to a file.

        Returns:
            The generated text content.
        """
        content = self.generate_to_string(result, agents_map)
        Path(output_path).write_text(content)
        return content

    def generate_to_string(
        self,
        result: ScheduleResult,
        agents_map: Optional[dict[str, Agent]] = None,
    ) -> str:
        agents_map = agents_map or {}
        schedule = result.schedule
        metrics = result.metrics
        lines = []

        lines.append("=" * self.width)
        lines.append(f"SCHEDULE REPORT - {schedule.name}")
        lines.append("=" * self.width)
        lines.append(f"Period: {schedule.start_date} to {schedule.end_date} ({schedule.duration_days} days)")
        lines.append(f"Status: {schedule.status.value}")
        lines.append(f"Shifts: {metrics.total_shifts}  Hours: {metrics.total_hours:.1f}  "
                     f"Overtime hours: {metrics.overtime_hours:.1f}")
        lines.append(f"Coverage: {metrics.coverage:.1%}")
        if metrics.service_level is not None:
            lines.append(f"Estimated service level: {metrics.service_level:.1%}")
        lines.append(f"Total labor cost: {metrics.total_cost:.2f}")
        lines.append("")

        by_date: dict = {}
        for shift in result.shifts:
            by_date.setdefault(shift.shift_date, []).append(shift)

        for day in schedule.schedule_dates:
            shifts = sorted(by_date.get(day, []), key=lambda s: (s.start_time, s.agent_id))
            lines.append("-" * self.width)
            lines.append(f"{day.strftime('%A')} {day} - {len(shifts)} shifts")
            lines.append("-" * self.width)
            if shifts:
                lines.append(f"{'Agent':<20} {'Shift':^13} {'Type':<10} {'Lunch':^13} Breaks")
                for shift in shifts:
                    lines.append(self._shift_line(shift, agents_map))

            requirements = result.requirements.get(day, {})
            if requirements:
                lines.append("")
                lines.append("Hourly coverage (# scheduled, . short of required):")
                for hour, requirement in requirements.items():
                    scheduled = scheduled_agents(shifts, hour)
                    short = max(0, requirement.total_agents - scheduled)
                    bar = "#" * scheduled + "." * short
                    lines.append(
                        f"  {hour:02d}:00 {bar} ({scheduled}/{requirement.total_agents})"
                    )
            lines.append("")

        lines.append("=" * self.width)
        return "\n".join(lines)

    def _shift_line(self, shift: ShiftRecord, agents_map: dict[str, Agent]) -> str:
        agent = agents_map.get(shift.agent_id)
        name = (agent.name if agent and agent.name else shift.agent_id)[:20]
        window = f"{_hhmm(shift.start_time)}-{_hhmm(shift.end_time)}"
        lunch = (
            f"{_hhmm(shift.lunch_break.start_time)}-{_hhmm(shift.lunch_break.end_time)}"
            if shift.lunch_break
            else "-"
        )
        breaks = ", ".join(_hhmm(b.start_time) for b in shift.breaks) or "-"
        return f"{name:<20} {window:^13} {shift.shift_type.value:<10} {lunch:^13} {breaks}"

    def forecast_table(self, records: Iterable[ForecastRecord]) -> str:
        """Tabulate forecasts by date, channel and hour."""
        records = sorted(records, key=lambda r: (r.forecast_date, r.channel_id, r.forecast_hour))
        lines = [
            f"{'Date':<11} {'Channel':<12} {'Hour':>4} {'Volume':>7} {'Range':>11} "
            f"{'Conf':>5} {'Req':>4} {'Opt':>4} {'SL':>5}"
        ]
        for r in records:
            volume_range = f"{r.min_volume}-{r.max_volume}"
            lines.append(
                f"{r.forecast_date.isoformat():<11} {r.channel_id[:12]:<12} {r.forecast_hour:>4} "
                f"{r.predicted_volume:>7} {volume_range:>11} {r.confidence_level:>5.2f} "
                f"{r.required_agents:>4} {r.optimal_agents:>4} {r.predicted_service_level:>5.2f}"
            )
        return "\n".join(lines)
