"""
Balance scoring. Pure, deterministic, no I/O.

Categorical factors: score = 100 * (1 - mean|p - r| / (2 / C)) where p is the class
distribution, r the grade-level distribution and C the factor's cardinality.
2 / C is the largest mean absolute difference two distributions over C categories
can have, so the score is bounded to [0, 100] for every factor.
Class size: score = 100 * (1 - |size - target| / target), floored at 0.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from classplacement.domain.constraints import Factor, OptimizationFactors, StrategyWeights
from classplacement.domain.models import ClassMetrics, ClassSlot, Conflict, OptimizationReport, SearchStats
from classplacement.domain.objective_function import (
    SoftConstraintIndex,
    compute_objective,
    compute_request_fulfillment,
)
from classplacement.domain.partition import FACTOR_CATEGORIES, Partition


def categorical_scores(partition: Partition, factor: Factor) -> np.ndarray:
    counts = partition.counts[factor].astype(float)
    sizes = partition.sizes.astype(float)
    reference = partition.cohort.reference[factor]
    cardinality = counts.shape[1]
    scores = np.full(partition.class_count, 100.0)
    occupied = sizes > 0
    if occupied.any():
        proportions = counts[occupied] / sizes[occupied, None]
        mean_abs_diff = np.abs(proportions - reference).mean(axis=1)
        normalized = mean_abs_diff / (2.0 / cardinality)
        scores[occupied] = 100.0 * (1.0 - normalized)
    return np.clip(scores, 0.0, 100.0)


def class_size_scores(partition: Partition, target_size: int) -> np.ndarray:
    deviation = np.abs(partition.sizes - target_size) / float(target_size)
    return np.clip(100.0 * (1.0 - deviation), 0.0, 100.0)


def compute_factor_scores(
    partition: Partition,
    factors: OptimizationFactors,
    target_size: int,
) -> dict[Factor, np.ndarray]:
    out: dict[Factor, np.ndarray] = {}
    for factor in factors.ordered():
        if factor is Factor.CLASS_SIZE:
            out[factor] = class_size_scores(partition, target_size)
        else:
            out[factor] = categorical_scores(partition, factor)
    return out


def compute_class_scores(
    factor_scores: dict[Factor, np.ndarray],
    weights: StrategyWeights,
    class_count: int,
) -> np.ndarray:
    """Weighted mean of enabled factor scores per class. 100 when nothing is enabled."""
    if not factor_scores:
        return np.full(class_count, 100.0)
    w = np.array([weights.for_factor(f) for f in factor_scores], dtype=float)
    stacked = np.vstack(list(factor_scores.values()))
    if w.sum() <= 0:
        return stacked.mean(axis=0)
    return (w[:, None] * stacked).sum(axis=0) / w.sum()


def size_weighted_mean(values: np.ndarray, sizes: np.ndarray) -> float:
    total = sizes.sum()
    if total <= 0:
        return float(values.mean()) if len(values) else 0.0
    return float((values * sizes).sum() / total)


@dataclass
class ScoreCard:
    factor_scores: dict[Factor, np.ndarray]
    class_scores: np.ndarray
    balance: float
    fulfillment: Optional[float]
    overall: float


def score_partition(
    partition: Partition,
    factors: OptimizationFactors,
    weights: StrategyWeights,
    target_size: int,
    soft: SoftConstraintIndex,
) -> ScoreCard:
    factor_scores = compute_factor_scores(partition, factors, target_size)
    class_scores = compute_class_scores(factor_scores, weights, partition.class_count)
    balance = size_weighted_mean(class_scores, partition.sizes)
    fulfillment = compute_request_fulfillment(partition, soft)
    overall = compute_objective(balance, fulfillment, weights, factors)
    return ScoreCard(
        factor_scores=factor_scores,
        class_scores=class_scores,
        balance=balance,
        fulfillment=fulfillment,
        overall=overall,
    )


def build_report(
    partition: Partition,
    card: ScoreCard,
    class_slots: Sequence[ClassSlot],
    factors: OptimizationFactors,
    strategy_name: str,
    target_size: int,
    conflicts: list[Conflict],
    violations: Optional[list[Conflict]] = None,
    search: Optional[SearchStats] = None,
) -> OptimizationReport:
    classes: list[ClassMetrics] = []
    for k, slot in enumerate(class_slots):
        counts = {
            factor.value: {
                category: int(partition.counts[factor][k, j])
                for j, category in enumerate(FACTOR_CATEGORIES[factor])
            }
            for factor in factors.categorical
        }
        classes.append(
            ClassMetrics(
                class_id=slot.class_id,
                teacher_id=slot.teacher_id,
                student_ids=partition.roster_ids(k),
                size=int(partition.sizes[k]),
                counts=counts,
                factor_scores={f.value: float(s[k]) for f, s in card.factor_scores.items()},
                score=float(card.class_scores[k]),
            )
        )
    aggregate = {
        f.value: size_weighted_mean(s, partition.sizes) for f, s in card.factor_scores.items()
    }
    return OptimizationReport(
        classes=classes,
        factor_scores=aggregate,
        balance_score=card.balance,
        overall_score=card.overall,
        requests_fulfilled=card.fulfillment,
        conflicts=list(conflicts),
        strategy=strategy_name,
        factors=[f.value for f in factors.ordered()],
        target_size=target_size,
        violations=list(violations or []),
        search=search,
    )
