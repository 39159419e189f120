"""Forecast engine orchestrating prediction and staffing per channel hour.

The engine produces one ForecastRecord per (channel, skill, date, hour)
inside the channel's operating window. Batches follow a partial-success
policy: a failing hour is logged and skipped, and a failing channel during a
periodic refresh does not stop the other channels.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from staffcast.domain.errors import ChannelNotFound, NotFoundError, ValidationError
from staffcast.domain.models import (
    Channel,
    ForecastKey,
    ForecastRecord,
    ForecastStatus,
)
from staffcast.forecasting.history import HistoricalDataSource
from staffcast.forecasting.predictor import DemandPredictor, round_half_up
from staffcast.forecasting.seasonal import SeasonalModel
from staffcast.forecasting.staffing import StaffingCalculator
from staffcast.storage.interfaces import ForecastStore, NotificationSink

logger = logging.getLogger(__name__)

FORECAST_UPDATED_EVENT = "forecast-updated"


@dataclass
class ForecastConfig:
    """Configuration for forecast generation.

    Attributes:
        lookback_days: Days of history read per channel hour.
        history_timeout_seconds: Timeout for each history read.
        max_workers: Thread pool size for periodic refreshes (1 = sequential).
        model_version: Version stamped on generated records.
        forecast_method: Method stamped on generated records.
    """

    lookback_days: int = 28
    history_timeout_seconds: Optional[float] = 5.0
    max_workers: int = 1
    model_version: str = "1.0.0"
    forecast_method: str = "seasonal_decomposition"


@dataclass
class ForecastBatchResult:
    """Outcome of generating one channel's hourly forecasts for a date."""

    channel_id: str
    forecast_date: date
    skill: Optional[str] = None
    records: list[ForecastRecord] = field(default_factory=list)
    failed_hours: list[int] = field(default_factory=list)
    skipped_hours: list[int] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.records)

    @property
    def failed(self) -> int:
        return len(self.failed_hours)


@dataclass
class RefreshResult:
    """Outcome of a periodic refresh across channels."""

    run_at: datetime
    batches: list[ForecastBatchResult] = field(default_factory=list)
    failures: dict[tuple[str, date], str] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.batches)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def records_written(self) -> int:
        return sum(b.succeeded for b in self.batches)


@dataclass
class AccuracySummary:
    """Forecast accuracy over records with observed volumes."""

    channel_id: str
    record_count: int = 0
    mean_accuracy: Optional[float] = None
    mean_absolute_error: Optional[float] = None
    within_range_rate: Optional[float] = None


class ForecastEngine:
    """Generates and refreshes hourly demand and staffing forecasts.

    Example:
        >>> engine = ForecastEngine(store, notifier)
        >>> result = engine.generate_hourly("voice", date(2024, 6, 10))
        >>> result.succeeded
        12
    """

    def __init__(
        self,
        store: ForecastStore,
        notifier: Optional[NotificationSink] = None,
        seasonal_model: Optional[SeasonalModel] = None,
        predictor: Optional[DemandPredictor] = None,
        staffing_calculator: Optional[StaffingCalculator] = None,
        history: Optional[HistoricalDataSource] = None,
        config: Optional[ForecastConfig] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or ForecastConfig()
        self.seasonal_model = seasonal_model or SeasonalModel()
        self.predictor = predictor or DemandPredictor()
        self.staffing_calculator = staffing_calculator or StaffingCalculator()
        self.history = history or HistoricalDataSource(
            store,
            lookback_days=self.config.lookback_days,
            timeout_seconds=self.config.history_timeout_seconds,
        )
        self.clock = clock or date.today

    def generate_hourly(
        self,
        channel_id: str,
        forecast_date: date,
        skill: Optional[str] = None,
    ) -> ForecastBatchResult:
        """Generate and persist forecasts for every operating hour of a date.

        Args:
            channel_id: Channel to forecast.
            forecast_date: Date to forecast.
            skill: Optional skill split.

        Returns:
            ForecastBatchResult listing written records and failed/skipped hours.

        Raises:
            ChannelNotFound: If the channel does not exist.
        """
        channel = self.store.get_channel(channel_id)
        if channel is None:
            raise ChannelNotFound(channel_id)

        result = ForecastBatchResult(channel_id=channel_id, forecast_date=forecast_date, skill=skill)

        for hour in range(24):
            if not channel.is_operating_hour(hour):
                continue
            try:
                record = self.build_forecast(channel, forecast_date, hour, skill)
                saved = self._persist(record)
            except Exception:
                logger.exception(
                    "Forecast for channel %s on %s hour %d failed", channel_id, forecast_date, hour
                )
                result.failed_hours.append(hour)
                continue
            if saved is None:
                result.skipped_hours.append(hour)
            else:
                result.records.append(saved)

        logger.info(
            "Generated %d hourly forecasts for channel %s on %s (%d failed, %d skipped)",
            result.succeeded,
            channel_id,
            forecast_date,
            result.failed,
            len(result.skipped_hours),
        )
        return result

    def build_forecast(
        self,
        channel: Channel,
        forecast_date: date,
        hour: int,
        skill: Optional[str] = None,
    ) -> ForecastRecord:
        """Compute (without persisting) the forecast for one channel hour."""
        samples = self.history.samples_or_empty(channel.id, hour, skill, as_of=self.clock())
        seasonal = self.seasonal_model.factors(forecast_date, hour)
        external = self.seasonal_model.external_factors(forecast_date, hour)

        prediction = self.predictor.predict(
            samples, seasonal=seasonal.seasonal, trend=seasonal.trend, external=external
        )
        staffing = self.staffing_calculator.size(prediction.volume, channel, skill)

        return ForecastRecord(
            channel_id=channel.id,
            skill=skill,
            forecast_date=forecast_date,
            forecast_hour=hour,
            predicted_volume=prediction.volume,
            confidence_level=prediction.confidence,
            min_volume=prediction.min_volume,
            max_volume=prediction.max_volume,
            required_agents=staffing.required,
            optimal_agents=staffing.optimal,
            minimum_agents=staffing.minimum,
            predicted_service_level=staffing.predicted_service_level,
            predicted_wait_time=staffing.predicted_wait_time,
            seasonal_factor=seasonal.seasonal,
            trend_factor=seasonal.trend,
            special_event_factor=external.special_event,
            weather_factor=external.weather,
            holiday_factor=external.holiday,
            status=ForecastStatus.GENERATED,
            forecast_method=self.config.forecast_method,
            model_version=self.config.model_version,
        )

    def _persist(self, record: ForecastRecord) -> Optional[ForecastRecord]:
        """Write a record, replacing an unreviewed one for the same key.

        Returns None when an existing record has moved past GENERATED; those
        belong to the review workflow and are left untouched.
        """
        existing = self.store.find_forecast(record.key)
        if existing is None:
            return self.store.create_forecast_record(record)
        if existing.status != ForecastStatus.GENERATED:
            return None

        record = replace(record, id=existing.id)
        if existing.actual_volume is not None:
            record = record.with_actual(existing.actual_volume)
        return self.store.update_forecast_record(record)

    def refresh_all(self, today: Optional[date] = None) -> RefreshResult:
        """Regenerate today's and tomorrow's forecasts for every active channel.

        Intended for an hourly trigger. Never raises: failures are logged and
        reported in the result.
        """
        result = RefreshResult(run_at=datetime.now(timezone.utc))
        try:
            today = today or self.clock()
            dates = [today, today + timedelta(days=1)]
            tasks = [(c.id, d) for c in self.store.get_active_channels() for d in dates]

            if self.config.max_workers > 1 and len(tasks) > 1:
                with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                    outcomes = list(pool.map(lambda t: self._refresh_one(*t), tasks))
            else:
                outcomes = [self._refresh_one(channel_id, d) for channel_id, d in tasks]

            for (channel_id, d), outcome in zip(tasks, outcomes):
                if isinstance(outcome, ForecastBatchResult):
                    result.batches.append(outcome)
                else:
                    result.failures[(channel_id, d)] = outcome

            self._emit(
                FORECAST_UPDATED_EVENT,
                {
                    "timestamp": result.run_at.isoformat(),
                    "channels": sorted({channel_id for channel_id, _ in tasks}),
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                },
            )
            logger.info(
                "Hourly forecast update completed: %d batches, %d failures",
                result.succeeded,
                result.failed,
            )
        except Exception:
            logger.exception("Hourly forecast update failed")
        return result

    def _refresh_one(self, channel_id: str, forecast_date: date):
        try:
            return self.generate_hourly(channel_id, forecast_date)
        except Exception as exc:
            logger.exception("Refreshing channel %s for %s failed", channel_id, forecast_date)
            return str(exc) or exc.__class__.__name__

    def record_actual(
        self,
        channel_id: str,
        forecast_date: date,
        hour: int,
        actual_volume: int,
        skill: Optional[str] = None,
    ) -> ForecastRecord:
        """Attach an observed volume to a forecast and score its accuracy."""
        key = ForecastKey(channel_id, skill, forecast_date, hour)
        existing = self.store.find_forecast(key)
        if existing is None:
            raise NotFoundError(str(key), f"Forecast not found: {key}")
        return self.store.update_forecast_record(existing.with_actual(actual_volume))

    def apply_special_event(
        self,
        record: ForecastRecord,
        factor: float,
        reason: str,
    ) -> ForecastRecord:
        """Scale a forecast for a special event and re-size its staffing.

        Raises:
            ValidationError: If the factor is not positive.
            ChannelNotFound: If the record's channel no longer exists.
        """
        if factor <= 0:
            raise ValidationError(f"Special event factor must be positive, got {factor}", "factor")
        channel = self.store.get_channel(record.channel_id)
        if channel is None:
            raise ChannelNotFound(record.channel_id)

        volume = round_half_up(record.predicted_volume * factor)
        staffing = self.staffing_calculator.size(volume, channel, record.skill)
        adjusted = replace(
            record,
            predicted_volume=volume,
            min_volume=min(volume, round_half_up(record.min_volume * factor)),
            max_volume=max(volume, round_half_up(record.max_volume * factor)),
            required_agents=staffing.required,
            optimal_agents=staffing.optimal,
            minimum_agents=staffing.minimum,
            predicted_service_level=staffing.predicted_service_level,
            predicted_wait_time=staffing.predicted_wait_time,
            special_event_factor=factor,
            is_manual_override=True,
            override_reason=reason,
        )
        return self.store.update_forecast_record(adjusted)

    def accuracy_summary(self, channel_id: str, start_date: date, end_date: date) -> AccuracySummary:
        """Aggregate accuracy for forecasts with observed volumes in a range."""
        scored = [
            f
            for f in self.store.get_forecasts(start_date, end_date, channel_ids=[channel_id])
            if f.actual_volume is not None
        ]
        summary = AccuracySummary(channel_id=channel_id, record_count=len(scored))
        if not scored:
            return summary

        accuracies = [f.forecast_accuracy for f in scored if f.forecast_accuracy is not None]
        errors = [f.mean_absolute_error for f in scored if f.mean_absolute_error is not None]
        summary.mean_accuracy = sum(accuracies) / len(accuracies) if accuracies else None
        summary.mean_absolute_error = sum(errors) / len(errors) if errors else None
        summary.within_range_rate = sum(1 for f in scored if f.is_within_range()) / len(scored)
        return summary

    def _emit(self, event_name: str, payload: dict) -> None:
        if self.notifier is not None:
            self.notifier.emit(event_name, payload)

    def close(self) -> None:
        self.history.close()

    def __enter__(self) -> "ForecastEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
