"""Output generation for schedules and forecasts."""

from staffcast.output.report_generator import ScheduleReportGenerator

__all__ = [
    "ScheduleReportGenerator",
]
