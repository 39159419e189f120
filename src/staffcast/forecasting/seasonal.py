"""Seasonal and external demand adjustment factors.

The model is a set of deterministic multiplier tables. ``factors`` returns
the seasonal product (day-of-week x hour-of-day x month) and a separate
trend multiplier so callers can apply them independently. ``external_factors``
returns holiday, weather and special-event multipliers.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from staffcast.domain.errors import ValidationError

# Index 0 = Sunday .. 6 = Saturday
DEFAULT_DAY_OF_WEEK_FACTORS = (0.6, 1.1, 1.0, 1.0, 1.2, 1.1, 0.7)

DEFAULT_HOUR_FACTORS = (
    0.1, 0.1, 0.1, 0.1, 0.2, 0.3, 0.5, 0.7,  # 00-07
    1.0, 1.2, 1.1, 1.0, 0.9, 1.1, 1.2, 1.1,  # 08-15
    1.0, 0.8, 0.6, 0.4, 0.3, 0.2, 0.1, 0.1,  # 16-23
)

# Index 0 = January; busier toward the holiday season
DEFAULT_MONTH_FACTORS = (1.1, 1.0, 1.0, 1.0, 0.9, 0.9, 0.8, 0.8, 1.0, 1.1, 1.2, 1.3)

# (month, day) with 1-based months
DEFAULT_HOLIDAYS = frozenset({(1, 1), (7, 4), (12, 25)})


@dataclass(frozen=True)
class SeasonalFactors:
    seasonal: float
    trend: float


@dataclass(frozen=True)
class ExternalFactors:
    """Multipliers from outside the historical pattern; 1.0 means no effect."""

    holiday: float = 1.0
    weather: float = 1.0
    special_event: float = 1.0

    @property
    def combined(self) -> float:
        return self.holiday * self.weather * self.special_event


@dataclass
class SeasonalConfig:
    """Configuration for the seasonal model.

    Attributes:
        day_of_week_factors: 7 multipliers, Sunday first.
        hour_factors: 24 multipliers, midnight first.
        month_factors: 12 multipliers, January first.
        trend: Growth multiplier applied uniformly.
        holidays: (month, day) pairs treated as holidays.
        holiday_factor: Demand multiplier on holidays.
    """

    day_of_week_factors: tuple[float, ...] = DEFAULT_DAY_OF_WEEK_FACTORS
    hour_factors: tuple[float, ...] = DEFAULT_HOUR_FACTORS
    month_factors: tuple[float, ...] = DEFAULT_MONTH_FACTORS
    trend: float = 1.02
    holidays: frozenset[tuple[int, int]] = field(default_factory=lambda: DEFAULT_HOLIDAYS)
    holiday_factor: float = 0.3

    def __post_init__(self) -> None:
        for name, values, expected in (
            ("day_of_week_factors", self.day_of_week_factors, 7),
            ("hour_factors", self.hour_factors, 24),
            ("month_factors", self.month_factors, 12),
        ):
            if len(values) != expected:
                raise ValidationError(
                    f"{name} needs {expected} entries, got {len(values)}", name
                )


class SeasonalModel:
    """Deterministic multiplicative seasonal model.

    Example:
        >>> model = SeasonalModel()
        >>> factors = model.factors(date(2024, 12, 25), 10)
        >>> external = model.external_factors(date(2024, 12, 25), 10)
    """

    def __init__(self, config: Optional[SeasonalConfig] = None):
        self.config = config or SeasonalConfig()
        self._weather: dict[date, float] = {}
        self._special_events: dict[date, float] = {}

    def factors(self, day: date, hour: int) -> SeasonalFactors:
        """Seasonal product and trend for a date and hour."""
        if not 0 <= hour <= 23:
            raise ValidationError(f"Hour must be in 0-23, got {hour}", "hour")
        # date.weekday() is Monday=0; the table is Sunday-first
        day_of_week = (day.weekday() + 1) % 7
        seasonal = (
            self.config.day_of_week_factors[day_of_week]
            * self.config.hour_factors[hour]
            * self.config.month_factors[day.month - 1]
        )
        return SeasonalFactors(seasonal=seasonal, trend=self.config.trend)

    def external_factors(self, day: date, hour: int) -> ExternalFactors:
        """Holiday, weather and special event multipliers for a date and hour."""
        return ExternalFactors(
            holiday=self.holiday_factor(day),
            weather=self._weather.get(day, 1.0),
            special_event=self._special_events.get(day, 1.0),
        )

    def holiday_factor(self, day: date) -> float:
        if (day.month, day.day) in self.config.holidays:
            return self.config.holiday_factor
        return 1.0

    def is_holiday(self, day: date) -> bool:
        return (day.month, day.day) in self.config.holidays

    def set_weather_factor(self, day: date, factor: float) -> None:
        """Register a weather multiplier for a date."""
        self._weather[day] = factor

    def set_special_event(self, day: date, factor: float) -> None:
        """Register a special event multiplier for a date."""
        self._special_events[day] = factor
