"""Command-line interface for the staffcast forecasting and scheduling tool."""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date, time, timedelta
from pathlib import Path
from typing import Optional

from staffcast.domain.models import (
    Agent,
    Channel,
    ForecastRecord,
    ForecastStatus,
    ServiceType,
    TimeOffRecord,
    TimeOffStatus,
)
from staffcast.forecasting.engine import ForecastEngine
from staffcast.output.report_generator import ScheduleReportGenerator
from staffcast.scheduling.optimizer import create_schedule_optimizer
from staffcast.storage.memory import InMemoryStore, LoggingNotifier
from staffcast.validation.validator import ScheduleValidator

# Relative contact volume per hour of an 08:00-20:00 day
SAMPLE_HOURLY_CURVE = {
    8: 18, 9: 30, 10: 42, 11: 48, 12: 40, 13: 38,
    14: 44, 15: 46, 16: 36, 17: 28, 18: 20, 19: 12,
}


def create_sample_channels() -> list[Channel]:
    return [
        Channel(id="voice", name="Voice Support", service_type=ServiceType.VOICE_INBOUND),
        Channel(
            id="chat",
            name="Web Chat",
            service_type=ServiceType.CHAT,
            operating_hours_start=time(9, 0),
            operating_hours_end=time(18, 0),
            average_handle_time=8.0,
            wrap_up_time=1.0,
            shrinkage_factor=0.30,
        ),
    ]


def create_sample_agents(count: int = 12) -> list[Agent]:
    """Create sample agents with varied channels and performance figures.

    Args:
        count: Number of agents to create.
    """
    names = [
        "Alice", "Bob", "Carol", "David", "Eve", "Frank", "Grace", "Henry",
        "Ivy", "Jack", "Kate", "Leo", "Mia", "Noah", "Olivia", "Paul",
    ]
    agents = []
    for i in range(count):
        name = names[i % len(names)]
        if i >= len(names):
            name = f"{name}{i // len(names) + 1}"

        channels = {"voice"}
        if i % 3 == 0:
            channels.add("chat")
        elif i % 3 == 1:
            channels = {"chat"}

        agents.append(
            Agent(
                id=f"AG{i + 1:03d}",
                name=name,
                skills={"billing"} if i % 2 == 0 else {"technical"},
                channel_ids=channels,
                customer_satisfaction_score=3.5 + (i % 4) * 0.3,
                first_call_resolution_rate=0.6 + (i % 5) * 0.05,
                can_work_weekends=i % 2 == 1,
                overtime_eligible=i % 4 == 0,
                hourly_rate=20.0 + (i % 3) * 2.5,
            )
        )
    return agents


def seed_history(store: InMemoryStore, channels: list[Channel], as_of: date, days: int = 28) -> None:
    """Fill the store with a deterministic history ending the day before ``as_of``."""
    for channel in channels:
        scale = 1.0 if channel.service_type == ServiceType.VOICE_INBOUND else 0.5
        for offset in range(1, days + 1):
            sample_date = as_of - timedelta(days=offset)
            for hour, base in SAMPLE_HOURLY_CURVE.items():
                if not channel.is_operating_hour(hour):
                    continue
                variation = 0.9 + 0.2 * ((offset * 7 + hour) % 5) / 4
                store.add_history(channel.id, hour, sample_date, round(base * scale * variation))


def build_sample_store(agent_count: int, start: date) -> InMemoryStore:
    store = InMemoryStore()
    channels = create_sample_channels()
    for channel in channels:
        store.add_channel(channel)
    agents = create_sample_agents(agent_count)
    for agent in agents:
        store.add_agent(agent)
    if agents:
        store.add_time_off(
            TimeOffRecord(agents[0].id, start, start + timedelta(days=1), TimeOffStatus.APPROVED)
        )
    seed_history(store, channels, start)
    return store


def generate_forecasts(store: InMemoryStore, start: date, days: int) -> list[ForecastRecord]:
    records = []
    with ForecastEngine(store, LoggingNotifier(), clock=lambda: start) as engine:
        for offset in range(days):
            for channel in store.get_active_channels():
                records.extend(engine.generate_hourly(channel.id, start + timedelta(days=offset)).records)
    return records


def approve_forecasts(store: InMemoryStore, records: list[ForecastRecord]) -> list[ForecastRecord]:
    """Move generated forecasts to APPROVED so scheduling picks them up."""
    return [
        store.update_forecast_record(replace(r, status=ForecastStatus.APPROVED)) for r in records
    ]


def run_forecast_demo(days: int = 1, start: Optional[date] = None) -> None:
    """Run a demo forecast over sample history."""
    start = start or date.today()
    store = build_sample_store(0, start)
    print(f"Generating forecasts for {days} day(s) from {start}...")

    records = generate_forecasts(store, start, days)
    print(f"\n{len(records)} hourly forecasts generated\n")
    print(ScheduleReportGenerator().forecast_table(records))

    validation = ScheduleValidator().validate_forecasts(records)
    print("\n  Validation: PASSED" if validation.is_valid else
          f"\n  Validation: FAILED ({len(validation.violations)} violations)")


def run_schedule_demo(
    agent_count: int = 12,
    days: int = 7,
    solver: str = "catalog",
    time_limit: float = 10.0,
    output_path: Optional[str] = None,
    start: Optional[date] = None,
) -> None:
    """Run a demo forecast and schedule generation."""
    start = start or date.today()
    end = start + timedelta(days=days - 1)
    print(f"Generating {days}-day schedule for {agent_count} agents ({solver} patterns)...")

    store = build_sample_store(agent_count, start)
    approve_forecasts(store, generate_forecasts(store, start, days))

    optimizer = create_schedule_optimizer(
        store, LoggingNotifier(), pattern_solver=solver, time_limit=time_limit
    )
    result = optimizer.generate(start, end, schedule_type="weekly" if days == 7 else "custom")

    agents_map = {a.id: a for a in store.agents.values()}
    validation = ScheduleValidator().validate(
        result.shifts,
        agents_map,
        result.schedule.constraints,
        store.get_approved_time_off(agents_map, start, end),
    )

    print(f"\nSchedule generated: {result.schedule.name}")
    summary = result.get_summary()
    print(f"  Shifts: {summary['total_shifts']} ({summary['total_hours']:.1f} hours)")
    print(f"  Coverage: {summary['coverage']:.1%}")
    if summary["service_level"] is not None:
        print(f"  Estimated service level: {summary['service_level']:.1%}")
    print(f"  Labor cost: {summary['total_cost']:.2f}")

    if validation.is_valid:
        print("\n  Validation: PASSED")
    else:
        print(f"\n  Validation: FAILED ({len(validation.violations)} violations)")
        for violation in validation.violations[:5]:
            print(f"    - {violation}")
        if len(validation.violations) > 5:
            print(f"    ... and {len(validation.violations) - 5} more violations")

    generator = ScheduleReportGenerator()
    if output_path:
        generator.generate(result, agents_map, output_path)
        print(f"\nReport written to {Path(output_path)}")
    else:
        print()
        print(generator.generate_to_string(result, agents_map))


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="staffcast - Contact center forecasting and shift scheduling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s forecast                   Forecast today for the sample channels
  %(prog)s forecast --days 2          Forecast today and tomorrow

  %(prog)s schedule                   Weekly schedule for 12 sample agents
  %(prog)s schedule --count 20        Weekly schedule for 20 agents
  %(prog)s schedule --solver hybrid   Use CP-SAT patterns with catalog fallback
  %(prog)s schedule --output week.txt Write the report to a file
        """,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    forecast_parser = subparsers.add_parser("forecast", help="Run demo forecast generation")
    forecast_parser.add_argument(
        "--days", "-d",
        type=int,
        default=1,
        help="Number of days to forecast (default: 1)",
    )

    schedule_parser = subparsers.add_parser("schedule", help="Run demo schedule generation")
    schedule_parser.add_argument(
        "--count", "-c",
        type=int,
        default=12,
        help="Number of agents to generate (default: 12)",
    )
    schedule_parser.add_argument(
        "--days", "-d",
        type=int,
        default=7,
        help="Number of days to schedule (default: 7)",
    )
    schedule_parser.add_argument(
        "--solver", "-s",
        type=str,
        default="catalog",
        choices=["catalog", "cpsat", "hybrid"],
        help="Pattern generator: catalog (default), cpsat, hybrid",
    )
    schedule_parser.add_argument(
        "--time-limit", "-t",
        type=float,
        default=10.0,
        help="CP-SAT solver time limit in seconds (default: 10)",
    )
    schedule_parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output text report path",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "forecast":
        run_forecast_demo(args.days)
        return 0
    elif args.command == "schedule":
        run_schedule_demo(args.count, args.days, args.solver, args.time_limit, args.output)
        return 0
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
