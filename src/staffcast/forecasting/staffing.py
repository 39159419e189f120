"""Conversion of predicted volume into agent staffing figures.

This is a closed-form approximation, not an Erlang-C solution:

- workload (Erlangs) = volume x (handle time + wrap-up) / 60
- shrinkage inflates workload by 1 / (1 - shrinkage)
- a service-level buffer scales base staffing: 1 + (target - 0.5) x 0.5
- service level and wait time are read off utilization, with fixed
  floor/ceiling values when the required staff is overloaded
"""

from dataclasses import dataclass
from typing import Optional

from staffcast.domain.errors import ValidationError
from staffcast.domain.models import Channel
from staffcast.forecasting.predictor import safe_ceil

OVERLOADED_SERVICE_LEVEL = 0.1
OVERLOADED_WAIT_SECONDS = 300.0
MAX_SERVICE_LEVEL = 0.99


@dataclass(frozen=True)
class StaffingRequirement:
    """Staffing figures for one forecast hour.

    Attributes:
        required: Agents needed to meet the service-level target.
        optimal: Required agents plus the channel's preferred buffer.
        minimum: The channel's staffing floor.
        predicted_service_level: Approximate service level at required staffing.
        predicted_wait_time: Approximate average wait in seconds.
        workload_erlangs: Offered workload before shrinkage.
    """

    required: int
    optimal: int
    minimum: int
    predicted_service_level: float
    predicted_wait_time: float
    workload_erlangs: float


def workload_erlangs(volume: float, channel: Channel) -> float:
    """Offered workload in Erlangs for a volume on a channel."""
    return volume * channel.total_handle_time / 60.0


def service_level_buffer(service_level_target: float) -> float:
    """Staffing multiplier for a service-level target."""
    return 1 + (service_level_target - 0.5) * 0.5


def estimate_service_level(workload: float, agents: int) -> float:
    """Approximate service level for a workload handled by ``agents``."""
    if agents <= 0:
        return 0.0 if workload > 0 else MAX_SERVICE_LEVEL
    utilization = workload / agents
    if utilization >= 1:
        return OVERLOADED_SERVICE_LEVEL
    return max(OVERLOADED_SERVICE_LEVEL, min(MAX_SERVICE_LEVEL, 1 - utilization))


def estimate_wait_time(workload: float, agents: int) -> float:
    """Approximate average wait in seconds for a workload handled by ``agents``."""
    if agents <= 0:
        return OVERLOADED_WAIT_SECONDS if workload > 0 else 0.0
    utilization = workload / agents
    if utilization >= 1:
        return OVERLOADED_WAIT_SECONDS
    return max(0.0, utilization * 60)


class StaffingCalculator:
    """Sizes agent requirements from predicted volume and channel parameters."""

    def size(
        self,
        predicted_volume: int,
        channel: Channel,
        skill: Optional[str] = None,
    ) -> StaffingRequirement:
        """Compute required, optimal and minimum agents for an hour.

        Args:
            predicted_volume: Contacts expected in the hour.
            channel: Channel supplying handle time, shrinkage and targets.
            skill: Optional skill split; the reference model sizes all
                skills with the channel parameters.

        Raises:
            ValidationError: If the shrinkage factor is outside [0, 1).
        """
        if not 0.0 <= channel.shrinkage_factor < 1.0:
            raise ValidationError(
                f"Shrinkage factor must be in [0, 1), got {channel.shrinkage_factor}",
                "shrinkage_factor",
            )

        workload = workload_erlangs(predicted_volume, channel)
        adjusted_workload = workload / (1 - channel.shrinkage_factor)
        base_agents = safe_ceil(adjusted_workload)

        buffer = service_level_buffer(channel.service_level_target)
        required = max(channel.min_staffing_level, safe_ceil(base_agents * buffer))
        optimal = safe_ceil(required * (1 + channel.preferred_staffing_buffer))
        minimum = channel.min_staffing_level

        return StaffingRequirement(
            required=required,
            optimal=max(optimal, required),
            minimum=minimum,
            predicted_service_level=estimate_service_level(workload, required),
            predicted_wait_time=estimate_wait_time(workload, required),
            workload_erlangs=workload,
        )
