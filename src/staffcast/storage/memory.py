"""In-memory collaborator implementations.

Used by the CLI demo and the test suite, and usable when embedding the
engines without a database. Writes take a lock and reads iterate over a
snapshot taken under it, because the forecast engine may refresh channels
on a thread pool.
"""

import logging
import threading
from datetime import date, timedelta
from typing import Iterable, Optional

from staffcast.domain.errors import ValidationError
from staffcast.domain.models import (
    Agent,
    Channel,
    ForecastKey,
    ForecastRecord,
    ForecastStatus,
    HistoricalSample,
    Schedule,
    ScheduleStatus,
    ShiftRecord,
    ShiftStatus,
    TimeOffRecord,
)
from staffcast.storage.interfaces import ForecastStore, NotificationSink

logger = logging.getLogger(__name__)


class InMemoryStore(ForecastStore):
    """Dictionary-backed store keeping insertion order for stable iteration."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.channels: dict[str, Channel] = {}
        self.agents: dict[str, Agent] = {}
        self.time_off: list[TimeOffRecord] = []
        self.history: dict[tuple[str, Optional[str], int], list[HistoricalSample]] = {}
        self.forecasts: dict[ForecastKey, ForecastRecord] = {}
        self.schedules: dict[str, Schedule] = {}
        self.shifts: dict[str, ShiftRecord] = {}

    # Seeding helpers

    def add_channel(self, channel: Channel) -> Channel:
        with self._lock:
            self.channels[channel.id] = channel
        return channel

    def add_agent(self, agent: Agent) -> Agent:
        with self._lock:
            self.agents[agent.id] = agent
        return agent

    def add_time_off(self, record: TimeOffRecord) -> TimeOffRecord:
        with self._lock:
            self.time_off.append(record)
        return record

    def add_history(
        self,
        channel_id: str,
        hour: int,
        sample_date: date,
        volume: int,
        skill: Optional[str] = None,
    ) -> None:
        """Record an observed volume for a channel hour."""
        with self._lock:
            samples = self.history.setdefault((channel_id, skill, hour), [])
            samples.append(HistoricalSample(sample_date=sample_date, volume=volume, hour=hour))

    # Channels and agents

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        with self._lock:
            return self.channels.get(channel_id)

    def get_active_channels(self) -> list[Channel]:
        with self._lock:
            channels = list(self.channels.values())
        return [c for c in channels if c.is_active]

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        with self._lock:
            return self.agents.get(agent_id)

    def get_active_agents(self, agent_ids: Optional[Iterable[str]] = None) -> list[Agent]:
        wanted = set(agent_ids) if agent_ids else None
        with self._lock:
            agents = list(self.agents.values())
        return [
            a
            for a in agents
            if a.is_active and (wanted is None or a.id in wanted)
        ]

    # History and time off

    def get_historical_volumes(
        self,
        channel_id: str,
        hour: int,
        skill: Optional[str] = None,
        lookback_days: int = 28,
        as_of: Optional[date] = None,
    ) -> list[HistoricalSample]:
        end = as_of or date.today()
        start = end - timedelta(days=lookback_days)
        with self._lock:
            seeded = list(self.history.get((channel_id, skill, hour), []))
            records = list(self.forecasts.values())

        by_date = {s.sample_date: s for s in seeded if start <= s.sample_date <= end}
        # Observed volumes on forecasts also count as history and win over a
        # seeded sample for the same date
        for record in records:
            if (
                record.channel_id == channel_id
                and record.skill == skill
                and record.forecast_hour == hour
                and record.actual_volume is not None
                and start <= record.forecast_date <= end
            ):
                by_date[record.forecast_date] = HistoricalSample(
                    record.forecast_date, record.actual_volume, hour
                )
        return sorted(by_date.values(), key=lambda s: s.sample_date, reverse=True)

    def get_approved_time_off(
        self,
        agent_ids: Iterable[str],
        start_date: date,
        end_date: date,
    ) -> list[TimeOffRecord]:
        wanted = set(agent_ids)
        with self._lock:
            time_off = list(self.time_off)
        return [
            t
            for t in time_off
            if t.is_approved
            and t.agent_id in wanted
            and t.start_date <= end_date
            and t.end_date >= start_date
        ]

    # Forecasts

    def get_forecasts(
        self,
        start_date: date,
        end_date: date,
        channel_ids: Optional[Iterable[str]] = None,
        statuses: Optional[Iterable[ForecastStatus]] = None,
    ) -> list[ForecastRecord]:
        channels = set(channel_ids) if channel_ids else None
        wanted_statuses = set(statuses) if statuses else None
        with self._lock:
            records = list(self.forecasts.values())
        result = [
            f
            for f in records
            if start_date <= f.forecast_date <= end_date
            and (channels is None or f.channel_id in channels)
            and (wanted_statuses is None or f.status in wanted_statuses)
        ]
        return sorted(result, key=lambda f: (f.forecast_date, f.forecast_hour, f.channel_id))

    def find_forecast(self, key: ForecastKey) -> Optional[ForecastRecord]:
        with self._lock:
            return self.forecasts.get(key)

    def create_forecast_record(self, record: ForecastRecord) -> ForecastRecord:
        with self._lock:
            if record.key in self.forecasts:
                raise ValidationError(f"Duplicate forecast for {record.key}")
            self.forecasts[record.key] = record
        return record

    def update_forecast_record(self, record: ForecastRecord) -> ForecastRecord:
        with self._lock:
            self.forecasts[record.key] = record
        return record

    # Schedules and shifts

    def create_schedule(self, schedule: Schedule) -> Schedule:
        with self._lock:
            self.schedules[schedule.id] = schedule
        return schedule

    def update_schedule(self, schedule: Schedule) -> Schedule:
        with self._lock:
            self.schedules[schedule.id] = schedule
        return schedule

    def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
        with self._lock:
            return self.schedules.get(schedule_id)

    def get_active_schedules(self, day: date) -> list[Schedule]:
        live = (ScheduleStatus.PUBLISHED, ScheduleStatus.ACTIVE)
        with self._lock:
            schedules = list(self.schedules.values())
        return [s for s in schedules if s.status in live and s.covers(day)]

    def create_shift(self, shift: ShiftRecord) -> ShiftRecord:
        with self._lock:
            self.shifts[shift.id] = shift
        return shift

    def get_shifts(
        self,
        schedule_id: str,
        day: Optional[date] = None,
        statuses: Optional[Iterable[ShiftStatus]] = None,
    ) -> list[ShiftRecord]:
        wanted_statuses = set(statuses) if statuses else None
        with self._lock:
            shifts = list(self.shifts.values())
        return [
            s
            for s in shifts
            if s.schedule_id == schedule_id
            and (day is None or s.shift_date == day)
            and (wanted_statuses is None or s.status in wanted_statuses)
        ]


class RecordingNotifier(NotificationSink):
    """Keeps emitted events in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def emit(self, event_name: str, payload: dict) -> None:
        self.events.append((event_name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class LoggingNotifier(NotificationSink):
    """Writes events to the log instead of a transport."""

    def emit(self, event_name: str, payload: dict) -> None:
        logger.info("event %s: %s", event_name, payload)
