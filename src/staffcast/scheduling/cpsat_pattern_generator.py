"""OR-Tools CP-SAT coverage optimizer for shift patterns.

Instead of offering each catalog template once, this generator decides how
many copies of each template to staff so that hourly coverage meets the
required agents with the fewest agent-hours. The output keeps the ranked
template contract, so the assignment engine consumes it unchanged.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from ortools.sat.python import cp_model

from staffcast.domain.models import HourlyRequirement, ScheduleConstraints, ShiftTemplate
from staffcast.scheduling.pattern_generator import (
    DEFAULT_TEMPLATE_CATALOG,
    find_peak_hours,
    template_priority,
)


@dataclass
class PatternSolverConfig:
    """Configuration for the CP-SAT pattern generator.

    Attributes:
        time_limit_seconds: Maximum solver runtime.
        num_workers: Number of parallel workers (0 = auto).
        undercoverage_penalty: Cost per missing agent-hour.
        agent_hour_cost: Cost per staffed agent-hour.
        part_time_penalty: Extra cost per part-time shift used.
    """

    time_limit_seconds: float = 10.0
    num_workers: int = 0
    undercoverage_penalty: int = 100
    agent_hour_cost: int = 1
    part_time_penalty: int = 2


@dataclass
class PatternSolverResult:
    """Result from the CP-SAT pattern generator.

    Attributes:
        templates: Ranked templates (repeated by chosen count), or None.
        status: Solver status (OPTIMAL, FEASIBLE, etc.).
        counts: Chosen copies per catalog index.
        undercoverage: Missing agent-hours left by the solution.
        solve_time_seconds: Time taken to solve.
    """

    templates: Optional[list[ShiftTemplate]]
    status: str
    counts: dict[int, int] = field(default_factory=dict)
    undercoverage: int = 0
    solve_time_seconds: float = 0.0

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


class CPSATPatternGenerator:
    """Chooses template counts covering hourly requirements via CP-SAT."""

    def __init__(
        self,
        catalog: Optional[Sequence[ShiftTemplate]] = None,
        config: Optional[PatternSolverConfig] = None,
    ):
        self.catalog = tuple(catalog) if catalog is not None else DEFAULT_TEMPLATE_CATALOG
        self.config = config or PatternSolverConfig()

    def generate(
        self,
        hourly_requirements: Mapping[int, HourlyRequirement],
        constraints: Optional[ScheduleConstraints] = None,
        max_agents: Optional[int] = None,
    ) -> Optional[list[ShiftTemplate]]:
        """Ranked templates, or None when the solver finds no solution.

        ``constraints`` keeps the signature interchangeable with
        ShiftPatternGenerator.generate and does not shape the model: templates
        longer than the daily limit are still chosen and become overtime shifts.
        """
        return self.solve(hourly_requirements, max_agents=max_agents).templates

    def solve(
        self,
        hourly_requirements: Mapping[int, HourlyRequirement],
        max_agents: Optional[int] = None,
    ) -> PatternSolverResult:
        """Solve the template-count problem.

        Args:
            hourly_requirements: Requirement per hour of the day.
            max_agents: Upper bound on shifts (agents available that day).

        Returns:
            PatternSolverResult with ranked templates when feasible.
        """
        peak_demand = max((r.total_agents for r in hourly_requirements.values()), default=0)
        if max_agents is None:
            max_agents = peak_demand * 2
        if max_agents <= 0 or peak_demand <= 0:
            return PatternSolverResult(templates=[], status="OPTIMAL")

        model = cp_model.CpModel()

        # Decision variables: n[t] = copies of catalog template t
        n: dict[int, cp_model.IntVar] = {
            t_idx: model.NewIntVar(0, max_agents, f"n_{t_idx}")
            for t_idx in range(len(self.catalog))
        }
        model.Add(sum(n.values()) <= max_agents)

        under: dict[int, cp_model.IntVar] = {}
        for hour, requirement in hourly_requirements.items():
            if requirement.total_agents <= 0:
                continue
            covering = [n[t_idx] for t_idx, t in enumerate(self.catalog) if t.covers_hour(hour)]
            under[hour] = model.NewIntVar(0, requirement.total_agents, f"under_{hour}")
            # coverage + under >= required
            model.Add(sum(covering) + under[hour] >= requirement.total_agents)

        objective_terms = [u * self.config.undercoverage_penalty for u in under.values()]
        for t_idx, template in enumerate(self.catalog):
            cost = max(1, round(template.hours)) * self.config.agent_hour_cost
            if template.part_time:
                cost += self.config.part_time_penalty
            objective_terms.append(n[t_idx] * cost)
        model.Minimize(sum(objective_terms))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        if self.config.num_workers > 0:
            solver.parameters.num_workers = self.config.num_workers

        status = solver.Solve(model)
        status_map = {
            cp_model.OPTIMAL: "OPTIMAL",
            cp_model.FEASIBLE: "FEASIBLE",
            cp_model.INFEASIBLE: "INFEASIBLE",
            cp_model.MODEL_INVALID: "MODEL_INVALID",
            cp_model.UNKNOWN: "UNKNOWN",
        }
        status_str = status_map.get(status, "UNKNOWN")

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            return PatternSolverResult(
                templates=None,
                status=status_str,
                solve_time_seconds=solver.WallTime(),
            )

        counts = {t_idx: solver.Value(var) for t_idx, var in n.items()}
        peak_hours = find_peak_hours(hourly_requirements)
        ranked: list[ShiftTemplate] = []
        for t_idx, template in enumerate(self.catalog):
            prioritized = template.with_priority(template_priority(template, peak_hours))
            ranked.extend([prioritized] * counts[t_idx])
        ranked.sort(key=lambda t: -t.priority)

        return PatternSolverResult(
            templates=ranked,
            status=status_str,
            counts=counts,
            undercoverage=sum(solver.Value(u) for u in under.values()),
            solve_time_seconds=solver.WallTime(),
        )
