"""
Domain objective. Pure functions only.
Blends balance with soft-request fulfillment according to the strategy weights.
"""

from typing import Optional, Sequence

import numpy as np

from classplacement.domain.constraints import OptimizationFactors, StrategyWeights
from classplacement.domain.models import Constraint, ConstraintKind
from classplacement.domain.partition import Cohort, Partition


class SoftConstraintIndex:
    """Soft constraints as cohort-index arrays, evaluated vectorized against a Partition."""

    def __init__(self, cohort: Cohort, constraints: Sequence[Constraint]):
        self.constraints = list(constraints)
        self.a = np.array([cohort.index[c.student_a] for c in self.constraints], dtype=np.int64)
        self.b = np.array([cohort.index[c.student_b] for c in self.constraints], dtype=np.int64)
        self.together = np.array([c.kind is ConstraintKind.TOGETHER for c in self.constraints], dtype=bool)
        # priority 0 still counts once
        self.weight = np.array([max(0, c.priority) + 1 for c in self.constraints], dtype=np.int64)

    def __len__(self) -> int:
        return len(self.constraints)

    def satisfied(self, partition: Partition) -> np.ndarray:
        if not self.constraints:
            return np.zeros(0, dtype=bool)
        same = partition.class_of[self.a] == partition.class_of[self.b]
        return np.where(self.together, same, ~same)


def compute_request_fulfillment(partition: Partition, soft: SoftConstraintIndex) -> Optional[float]:
    """Percent of soft constraints holding in partition. None (not 0) when there are none."""
    if len(soft) == 0:
        return None
    return 100.0 * float(soft.satisfied(partition).sum()) / len(soft)


def compute_priority_satisfaction(partition: Partition, soft: SoftConstraintIndex) -> int:
    """Priority-weighted count of satisfied soft constraints. Tie-breaker only."""
    if len(soft) == 0:
        return 0
    return int(soft.weight[soft.satisfied(partition)].sum())


def compute_objective(
    balance: float,
    fulfillment: Optional[float],
    weights: StrategyWeights,
    factors: OptimizationFactors,
) -> float:
    if fulfillment is None or weights.requests <= 0:
        return balance
    balance_weight = sum(weights.for_factor(f) for f in factors.ordered())
    if balance_weight <= 0:
        balance_weight = 1.0
    return (balance * balance_weight + fulfillment * weights.requests) / (balance_weight + weights.requests)
