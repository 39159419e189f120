"""Collaborator interfaces consumed by the engines.

Storage and notification transport live outside the core. The engines are
constructed with implementations of these interfaces, which keeps them free
of global state and lets tests pass in doubles.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional

from staffcast.domain.models import (
    Agent,
    Channel,
    ForecastKey,
    ForecastRecord,
    ForecastStatus,
    HistoricalSample,
    Schedule,
    ShiftRecord,
    ShiftStatus,
    TimeOffRecord,
)


class ForecastStore(ABC):
    """Read/write access to channels, agents, forecasts, schedules and time off."""

    # Channels and agents

    @abstractmethod
    def get_channel(self, channel_id: str) -> Optional[Channel]:
        pass

    @abstractmethod
    def get_active_channels(self) -> list[Channel]:
        pass

    @abstractmethod
    def get_agent(self, agent_id: str) -> Optional[Agent]:
        pass

    @abstractmethod
    def get_active_agents(self, agent_ids: Optional[Iterable[str]] = None) -> list[Agent]:
        """Active agents, optionally restricted to the given ids, in stable order."""
        pass

    # History and time off

    @abstractmethod
    def get_historical_volumes(
        self,
        channel_id: str,
        hour: int,
        skill: Optional[str] = None,
        lookback_days: int = 28,
        as_of: Optional[date] = None,
    ) -> list[HistoricalSample]:
        """Observed volumes for a channel hour over the lookback window."""
        pass

    @abstractmethod
    def get_approved_time_off(
        self,
        agent_ids: Iterable[str],
        start_date: date,
        end_date: date,
    ) -> list[TimeOffRecord]:
        """Approved time off overlapping the date range."""
        pass

    # Forecasts

    @abstractmethod
    def get_forecasts(
        self,
        start_date: date,
        end_date: date,
        channel_ids: Optional[Iterable[str]] = None,
        statuses: Optional[Iterable[ForecastStatus]] = None,
    ) -> list[ForecastRecord]:
        pass

    @abstractmethod
    def find_forecast(self, key: ForecastKey) -> Optional[ForecastRecord]:
        pass

    @abstractmethod
    def create_forecast_record(self, record: ForecastRecord) -> ForecastRecord:
        """Persist a new record. Must reject a second record for the same key."""
        pass

    @abstractmethod
    def update_forecast_record(self, record: ForecastRecord) -> ForecastRecord:
        pass

    # Schedules and shifts

    @abstractmethod
    def create_schedule(self, schedule: Schedule) -> Schedule:
        pass

    @abstractmethod
    def update_schedule(self, schedule: Schedule) -> Schedule:
        pass

    @abstractmethod
    def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
        pass

    @abstractmethod
    def get_active_schedules(self, day: date) -> list[Schedule]:
        """Published or active schedules whose period covers ``day``."""
        pass

    @abstractmethod
    def create_shift(self, shift: ShiftRecord) -> ShiftRecord:
        pass

    @abstractmethod
    def get_shifts(
        self,
        schedule_id: str,
        day: Optional[date] = None,
        statuses: Optional[Iterable[ShiftStatus]] = None,
    ) -> list[ShiftRecord]:
        pass


class NotificationSink(ABC):
    """Outbound event channel (e.g. a websocket broadcaster)."""

    @abstractmethod
    def emit(self, event_name: str, payload: dict) -> None:
        pass
