"""Validation module for verifying generated shifts and forecasts."""

from staffcast.validation.validator import (
    ConstraintViolation,
    ScheduleValidator,
    ValidationResult,
    ViolationType,
)

__all__ = [
    "ConstraintViolation",
    "ScheduleValidator",
    "ValidationResult",
    "ViolationType",
]
