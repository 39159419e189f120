"""Demand forecasting and staffing requirement sizing."""

from staffcast.forecasting.engine import (
    AccuracySummary,
    ForecastBatchResult,
    ForecastConfig,
    ForecastEngine,
    RefreshResult,
)
from staffcast.forecasting.history import HistoricalDataSource
from staffcast.forecasting.predictor import DemandPredictor, VolumePrediction
from staffcast.forecasting.seasonal import (
    ExternalFactors,
    SeasonalConfig,
    SeasonalFactors,
    SeasonalModel,
)
from staffcast.forecasting.staffing import (
    StaffingCalculator,
    StaffingRequirement,
    estimate_service_level,
    estimate_wait_time,
    workload_erlangs,
)

__all__ = [
    # Engine
    "ForecastEngine",
    "ForecastConfig",
    "ForecastBatchResult",
    "RefreshResult",
    "AccuracySummary",
    # Components
    "HistoricalDataSource",
    "DemandPredictor",
    "VolumePrediction",
    "SeasonalModel",
    "SeasonalConfig",
    "SeasonalFactors",
    "ExternalFactors",
    "StaffingCalculator",
    "StaffingRequirement",
    "estimate_service_level",
    "estimate_wait_time",
    "workload_erlangs",
]
