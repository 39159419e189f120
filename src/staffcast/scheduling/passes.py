"""Post-assignment optimization passes.

Each preference toggle maps to one pass. The shipped passes are identity
transforms that return a copy of their input; they mark where balancing,
overtime reduction, preference matching and service-level tuning plug in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from staffcast.domain.models import (
    Agent,
    HourlyRequirement,
    OptimizationPreferences,
    ScheduleConstraints,
    ShiftRecord,
)


@dataclass
class PassContext:
    """Inputs available to every pass.

    Attributes:
        constraints: Labor constraints of the run.
        preferences: Preference toggles of the run.
        agents: Agent snapshot keyed by id.
        requirements: Hourly requirements per date.
    """

    constraints: ScheduleConstraints
    preferences: OptimizationPreferences
    agents: dict[str, Agent] = field(default_factory=dict)
    requirements: dict[date, Mapping[int, HourlyRequirement]] = field(default_factory=dict)


class OptimizationPass(ABC):
    """Abstract base class for a post-assignment pass."""

    name = "pass"

    @abstractmethod
    def apply(self, shifts: list[ShiftRecord], context: PassContext) -> list[ShiftRecord]:
        """Return the transformed shift list. Must not mutate the input list."""
        pass


class BalanceWorkloadPass(OptimizationPass):
    name = "balance_workload"

    def apply(self, shifts: list[ShiftRecord], context: PassContext) -> list[ShiftRecord]:
        return list(shifts)


class MinimizeOvertimePass(OptimizationPass):
    name = "minimize_overtime"

    def apply(self, shifts: list[ShiftRecord], context: PassContext) -> list[ShiftRecord]:
        return list(shifts)


class AgentPreferencePass(OptimizationPass):
    name = "agent_preferences"

    def apply(self, shifts: list[ShiftRecord], context: PassContext) -> list[ShiftRecord]:
        return list(shifts)


class ServiceLevelPass(OptimizationPass):
    name = "service_level"

    def apply(self, shifts: list[ShiftRecord], context: PassContext) -> list[ShiftRecord]:
        return list(shifts)


# Toggle name -> default pass, in application order
PASS_ORDER: tuple[tuple[str, type[OptimizationPass]], ...] = (
    ("balance_workload", BalanceWorkloadPass),
    ("minimize_overtime", MinimizeOvertimePass),
    ("prioritize_agent_preferences", AgentPreferencePass),
    ("optimize_for_service_level", ServiceLevelPass),
)


def build_pass_pipeline(
    preferences: OptimizationPreferences,
    overrides: Optional[Mapping[str, OptimizationPass]] = None,
) -> list[OptimizationPass]:
    """Enabled passes in application order.

    Args:
        preferences: Toggles deciding which passes run.
        overrides: Replacement pass per toggle name
            (e.g. ``{"minimize_overtime": MyPass()}``).
    """
    overrides = overrides or {}
    pipeline = []
    for toggle, default_cls in PASS_ORDER:
        if getattr(preferences, toggle):
            pipeline.append(overrides.get(toggle) or default_cls())
    return pipeline


def apply_passes(
    shifts: list[ShiftRecord],
    passes: list[OptimizationPass],
    context: PassContext,
) -> list[ShiftRecord]:
    for optimization_pass in passes:
        shifts = optimization_pass.apply(shifts, context)
    return shifts
