"""Shift pattern generation, agent assignment and schedule optimization."""

from staffcast.scheduling.assignment import (
    AgentAssignmentEngine,
    AgentWorkload,
    classify_shift,
    suitability_score,
)
from staffcast.scheduling.cpsat_pattern_generator import (
    CPSATPatternGenerator,
    PatternSolverConfig,
    PatternSolverResult,
)
from staffcast.scheduling.optimizer import (
    IntradayResult,
    NotifyingOpportunityHandler,
    OpportunityHandler,
    OpportunityKind,
    OptimizerConfig,
    PatternSolverType,
    ScheduleMetrics,
    ScheduleOptimizer,
    ScheduleResult,
    StaffingOpportunity,
    build_hourly_requirements,
    compute_metrics,
    create_schedule_optimizer,
)
from staffcast.scheduling.passes import (
    AgentPreferencePass,
    BalanceWorkloadPass,
    MinimizeOvertimePass,
    OptimizationPass,
    PassContext,
    ServiceLevelPass,
    build_pass_pipeline,
)
from staffcast.scheduling.pattern_generator import (
    DEFAULT_TEMPLATE_CATALOG,
    ShiftPatternGenerator,
    find_peak_hours,
)
from staffcast.scheduling.strategies import (
    ChannelSelector,
    DemandWeightedChannelSelector,
    MatchingSkillSelector,
    SkillSelector,
    VolumeEstimator,
    WindowVolumeEstimator,
)

__all__ = [
    # Optimizer
    "ScheduleOptimizer",
    "OptimizerConfig",
    "PatternSolverType",
    "ScheduleMetrics",
    "ScheduleResult",
    "StaffingOpportunity",
    "OpportunityKind",
    "OpportunityHandler",
    "NotifyingOpportunityHandler",
    "IntradayResult",
    "build_hourly_requirements",
    "compute_metrics",
    "create_schedule_optimizer",
    # Patterns
    "DEFAULT_TEMPLATE_CATALOG",
    "ShiftPatternGenerator",
    "find_peak_hours",
    "CPSATPatternGenerator",
    "PatternSolverConfig",
    "PatternSolverResult",
    # Assignment
    "AgentAssignmentEngine",
    "AgentWorkload",
    "classify_shift",
    "suitability_score",
    # Strategies
    "ChannelSelector",
    "DemandWeightedChannelSelector",
    "SkillSelector",
    "MatchingSkillSelector",
    "VolumeEstimator",
    "WindowVolumeEstimator",
    # Passes
    "OptimizationPass",
    "PassContext",
    "BalanceWorkloadPass",
    "MinimizeOvertimePass",
    "AgentPreferencePass",
    "ServiceLevelPass",
    "build_pass_pipeline",
]
