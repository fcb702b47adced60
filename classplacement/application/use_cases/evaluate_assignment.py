"""
Evaluate assignment use case. Scores a caller-supplied (e.g. manually adjusted) roster
without searching and lists the hard constraints it breaks.
"""

import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from classplacement.application.config import DEFAULT_STRATEGY
from classplacement.application.use_cases.optimize_classes import prepare_run, resolve_assignment
from classplacement.domain.constraints import Factor, OptimizationFactors, Strategy
from classplacement.domain.evaluation import build_report, score_partition
from classplacement.domain.models import (
    ClassSlot,
    OptimizationReport,
    ParentRequest,
    PlacementConstraint,
    Student,
    SurveyPairing,
)
from classplacement.domain.objective_function import SoftConstraintIndex
from classplacement.domain.partition import Partition
from classplacement.domain.validation import find_violations

logger = logging.getLogger(__name__)


def evaluate_assignment(
    students: Sequence[Student],
    assignment: dict[str, str],
    factors: Optional[Iterable[Factor | str] | OptimizationFactors] = None,
    strategy: Strategy | str = DEFAULT_STRATEGY,
    parent_requests: Optional[Sequence[ParentRequest]] = None,
    survey_pairs: Optional[Sequence[SurveyPairing]] = None,
    *,
    weights: Optional[dict[str, float]] = None,
    class_slots: Optional[Sequence[ClassSlot]] = None,
    target_size: Optional[int] = None,
    placement_constraints: Optional[Sequence[PlacementConstraint]] = None,
) -> OptimizationReport:
    """
    assignment: student_id -> class_id. Class ids come from class_slots, or are the
    distinct ids used in the assignment (sorted) when class_slots is omitted.
    """
    if class_slots is None:
        class_slots = [ClassSlot(class_id=cid) for cid in sorted(set(assignment.values()))]
    setup = prepare_run(
        students, len(class_slots), factors, strategy, parent_requests, survey_pairs,
        weights=weights, class_slots=class_slots, target_size=target_size,
        placement_constraints=placement_constraints,
    )
    slot_of = resolve_assignment(assignment, setup, field="assignment")
    labels = np.array([slot_of[sid] for sid in setup.cohort.ids], dtype=np.int64)
    partition = Partition(setup.cohort, len(setup.class_slots), labels)

    graph = setup.graph
    soft = SoftConstraintIndex(setup.cohort, graph.soft)
    card = score_partition(partition, setup.factors, setup.weights, setup.target_size, soft)
    violations = find_violations(partition, graph.hard)
    if violations:
        logger.warning("Assignment violates %d hard constraint(s)", len(violations))

    return build_report(
        partition,
        card,
        setup.class_slots,
        setup.factors,
        setup.strategy.value,
        setup.target_size,
        conflicts=graph.conflicts,
        violations=violations,
    )
