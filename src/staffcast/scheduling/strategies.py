"""Selection strategies used when turning an assignment into a shift.

The assignment engine asks these strategies which channels an agent covers,
which skills the shift needs and how many contacts it should expect. Each
is an ABC with a demand-driven default, so a deployment can inject its own
rules without touching the engine.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

from staffcast.domain.models import Agent, HourlyRequirement, ShiftTemplate

Requirements = Mapping[int, HourlyRequirement]


def _window_requirements(
    template: ShiftTemplate, requirements: Optional[Requirements]
) -> list[HourlyRequirement]:
    if not requirements:
        return []
    return [requirements[h] for h in sorted(requirements) if template.covers_hour(h)]


class ChannelSelector(ABC):
    """Abstract base class for channel selection."""

    @abstractmethod
    def select_primary(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
    ) -> Optional[str]:
        """Get the main channel for the shift, or None."""
        pass

    @abstractmethod
    def select_secondary(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
        primary: Optional[str] = None,
    ) -> list[str]:
        """Get additional channels the agent may cover during the shift."""
        pass


class SkillSelector(ABC):
    """Abstract base class for required-skill selection."""

    @abstractmethod
    def required_skills(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
    ) -> list[str]:
        pass


class VolumeEstimator(ABC):
    """Abstract base class for expected shift volume."""

    @abstractmethod
    def expected_volume(
        self,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
        channel_id: Optional[str] = None,
    ) -> int:
        pass


class DemandWeightedChannelSelector(ChannelSelector):
    """Picks the agent's channel with the most required agents in the window.

    Ties go to the lower channel id. Secondary channels are the agent's other
    channels that have any demand inside the window, sorted by id.
    """

    def _demand_by_channel(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
    ) -> dict[str, int]:
        totals: dict[str, int] = {}
        for requirement in _window_requirements(template, requirements):
            for channel_id, demand in requirement.channels.items():
                if agent.can_work_channel(channel_id):
                    totals[channel_id] = totals.get(channel_id, 0) + demand.agents
        return totals

    def select_primary(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
    ) -> Optional[str]:
        totals = self._demand_by_channel(agent, template, requirements)
        if not totals:
            return None
        return min(totals, key=lambda channel_id: (-totals[channel_id], channel_id))

    def select_secondary(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
        primary: Optional[str] = None,
    ) -> list[str]:
        totals = self._demand_by_channel(agent, template, requirements)
        return sorted(c for c, agents in totals.items() if c != primary and agents > 0)


class MatchingSkillSelector(SkillSelector):
    """Skills the agent holds that are requested inside the window."""

    def required_skills(
        self,
        agent: Agent,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
    ) -> list[str]:
        requested: set[str] = set()
        for requirement in _window_requirements(template, requirements):
            for channel_id, demand in requirement.channels.items():
                if agent.can_work_channel(channel_id):
                    requested |= demand.skills
        return sorted(requested & agent.skills)


class WindowVolumeEstimator(VolumeEstimator):
    """Predicted volume summed over the window.

    Counts only the given channel, or every channel when none is given.
    """

    def expected_volume(
        self,
        template: ShiftTemplate,
        requirements: Optional[Requirements],
        channel_id: Optional[str] = None,
    ) -> int:
        total = 0
        for requirement in _window_requirements(template, requirements):
            if channel_id is None:
                total += requirement.total_volume
            elif channel_id in requirement.channels:
                total += requirement.channels[channel_id].volume
        return total
