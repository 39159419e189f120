"""Demand prediction from historical samples and adjustment factors."""

import math
import statistics
from dataclasses import dataclass
from typing import Sequence

from staffcast.domain.models import HistoricalSample
from staffcast.forecasting.seasonal import ExternalFactors

# Decimal places kept before rounding to integers, so float noise such as
# 21.000000000000004 cannot push a ceiling up by one.
_PRECISION = 9


def safe_ceil(value: float) -> int:
    return math.ceil(round(value, _PRECISION))


def safe_floor(value: float) -> int:
    return math.floor(round(value, _PRECISION))


def round_half_up(value: float) -> int:
    return math.floor(round(value, _PRECISION) + 0.5)


@dataclass(frozen=True)
class VolumePrediction:
    """Predicted contact volume with a confidence band.

    Attributes:
        volume: Point estimate of contacts in the hour.
        confidence: Confidence in the estimate (0.30-0.95).
        min_volume: Lower bound (never above volume).
        max_volume: Upper bound (never below volume).
    """

    volume: int
    confidence: float
    min_volume: int
    max_volume: int


class DemandPredictor:
    """Combines historical volumes with seasonal and external multipliers.

    With no history the predictor returns a fixed low-confidence fallback
    rather than failing.
    """

    FALLBACK = VolumePrediction(volume=10, confidence=0.30, min_volume=5, max_volume=20)

    def __init__(self, min_confidence: float = 0.40, max_confidence: float = 0.95):
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence

    def predict(
        self,
        samples: Sequence[HistoricalSample],
        seasonal: float = 1.0,
        trend: float = 1.0,
        external: ExternalFactors = ExternalFactors(),
    ) -> VolumePrediction:
        """Predict volume for one hour.

        Args:
            samples: Observed volumes for the same channel hour.
            seasonal: Combined seasonal multiplier.
            trend: Trend multiplier.
            external: Holiday, weather and special event multipliers.

        Returns:
            VolumePrediction satisfying min_volume <= volume <= max_volume.
        """
        if not samples:
            return self.FALLBACK

        volumes = [s.volume for s in samples]
        base_volume = statistics.fmean(volumes)
        adjusted = base_volume * seasonal * trend
        final_volume = max(0, round_half_up(adjusted * external.combined))

        confidence = self._confidence(volumes, base_volume)
        variability = 1 - confidence
        min_volume = max(0, safe_floor(final_volume * (1 - variability)))
        max_volume = safe_ceil(final_volume * (1 + variability))

        return VolumePrediction(
            volume=final_volume,
            confidence=confidence,
            min_volume=min(min_volume, final_volume),
            max_volume=max(max_volume, final_volume),
        )

    def _confidence(self, volumes: list[int], base_volume: float) -> float:
        """Confidence from the spread of the samples, clamped to the band."""
        variance = statistics.pvariance(volumes) if len(volumes) > 1 else 0.0
        if base_volume <= 0:
            # Every sample is zero: no spread at all
            return self.max_confidence
        raw = 1 - variance / base_volume
        return max(self.min_confidence, min(self.max_confidence, raw))
