"""Error taxonomy for the forecasting and scheduling core.

NotFoundError is fatal to the enclosing operation. DataUnavailableError is
recovered locally by the forecasting layer. ValidationError rejects a single
unit before anything is persisted.
"""

from typing import Optional


class StaffcastError(Exception):
    """Base class for all errors raised by the core."""


class NotFoundError(StaffcastError):
    """A referenced channel, agent or schedule does not exist."""

    entity = "record"

    def __init__(self, entity_id: str, message: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity.capitalize()} not found: {entity_id}")


class ChannelNotFound(NotFoundError):
    entity = "channel"


class AgentNotFound(NotFoundError):
    entity = "agent"


class ScheduleNotFound(NotFoundError):
    entity = "schedule"


class DataUnavailableError(StaffcastError):
    """Historical data could not be read (failure or timeout)."""


class ValidationError(StaffcastError):
    """Invalid input: bad date range, shrinkage >= 1.0, end <= start, etc."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)
