"""
Optimize classes use case. Orchestrates domain + allocation engine. No FastAPI.

Flow: validate -> constraint graph -> seed (or warm start) -> local search -> report.
"""

import logging
import math
import threading
from collections import Counter
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from classplacement.application.config import (
    CLASS_ID_PREFIX,
    DEFAULT_FACTORS,
    DEFAULT_SEARCH_CONFIG,
    DEFAULT_STRATEGY,
)
from classplacement.core.allocation_engine.constraint_graph import ConstraintGraph, build_constraint_graph
from classplacement.core.allocation_engine.local_search import run_local_search
from classplacement.core.allocation_engine.seed_assigner import seed_partition
from classplacement.domain.constraints import (
    Factor,
    OptimizationFactors,
    SearchConfig,
    Strategy,
    StrategyWeights,
)
from classplacement.domain.evaluation import build_report
from classplacement.domain.exceptions import InvalidInputError
from classplacement.domain.models import (
    ClassSlot,
    OptimizationReport,
    ParentRequest,
    PlacementConstraint,
    Student,
    SurveyPairing,
)
from classplacement.domain.objective_function import SoftConstraintIndex
from classplacement.domain.partition import Cohort
from classplacement.domain.validation import find_violations

logger = logging.getLogger(__name__)


@dataclass
class RunSetup:
    cohort: Cohort
    class_slots: list[ClassSlot]
    factors: OptimizationFactors
    strategy: Strategy
    weights: StrategyWeights
    target_size: int
    graph: ConstraintGraph

    @property
    def class_index(self) -> dict[str, int]:
        return {slot.class_id: k for k, slot in enumerate(self.class_slots)}


def prepare_run(
    students: Sequence[Student],
    class_count: int,
    factors: Optional[Iterable[Factor | str] | OptimizationFactors],
    strategy: Strategy | str,
    parent_requests: Optional[Sequence[ParentRequest]],
    survey_pairs: Optional[Sequence[SurveyPairing]],
    weights: Optional[dict[str, float]] = None,
    class_slots: Optional[Sequence[ClassSlot]] = None,
    target_size: Optional[int] = None,
    placement_constraints: Optional[Sequence[PlacementConstraint]] = None,
) -> RunSetup:
    """Validate caller input and build everything a run needs. Raises InvalidInputError."""
    if not students:
        raise InvalidInputError("Student roster is empty", field="students")
    id_counts = Counter(s.student_id for s in students)
    duplicates = sorted(sid for sid, n in id_counts.items() if n > 1)
    if duplicates:
        raise InvalidInputError(
            f"Duplicate student ids: {', '.join(duplicates)}", field="students", details={"duplicates": duplicates}
        )
    if isinstance(class_count, bool) or not isinstance(class_count, int):
        raise InvalidInputError(f"class_count must be an integer, got {class_count!r}", field="classCount")
    if class_count <= 0:
        raise InvalidInputError(f"class_count must be positive, got {class_count}", field="classCount")
    if class_count > len(students):
        raise InvalidInputError(
            f"class_count ({class_count}) exceeds the number of students ({len(students)})", field="classCount"
        )

    parsed_strategy = Strategy.parse(strategy)
    if factors is None:
        parsed_factors = DEFAULT_FACTORS
    elif isinstance(factors, OptimizationFactors):
        parsed_factors = factors
    else:
        parsed_factors = OptimizationFactors.parse(factors)
    resolved_weights = parsed_strategy.weights.with_overrides(weights)

    if class_slots is None:
        slots = [ClassSlot(class_id=f"{CLASS_ID_PREFIX}{k + 1}") for k in range(class_count)]
    else:
        slots = list(class_slots)
        if len(slots) != class_count:
            raise InvalidInputError(
                f"{len(slots)} class slots given for class_count {class_count}", field="classes"
            )
        if len({s.class_id for s in slots}) != len(slots):
            raise InvalidInputError("Class ids must be unique", field="classes")

    if target_size is None:
        target = math.ceil(len(students) / class_count)
    else:
        if target_size <= 0:
            raise InvalidInputError(f"target_size must be positive, got {target_size}", field="targetSize")
        target = target_size

    cohort = Cohort(students)
    graph = build_constraint_graph(
        cohort.ids, parent_requests or (), survey_pairs or (), placement_constraints or ()
    )
    return RunSetup(
        cohort=cohort,
        class_slots=slots,
        factors=parsed_factors,
        strategy=parsed_strategy,
        weights=resolved_weights,
        target_size=target,
        graph=graph,
    )


def resolve_assignment(assignment: dict[str, str], setup: RunSetup, field: str) -> dict[str, int]:
    """student_id -> class_id  =>  student_id -> slot index. Must cover the whole roster."""
    class_index = setup.class_index
    missing = [sid for sid in setup.cohort.ids if sid not in assignment]
    if missing:
        raise InvalidInputError(
            f"Assignment is missing {len(missing)} student(s): {', '.join(missing[:10])}",
            field=field,
            details={"missing": missing},
        )
    unknown_students = sorted(sid for sid in assignment if sid not in setup.cohort.index)
    if unknown_students:
        raise InvalidInputError(
            f"Assignment references unknown student(s): {', '.join(unknown_students[:10])}", field=field
        )
    unknown_classes = sorted({cid for cid in assignment.values() if cid not in class_index})
    if unknown_classes:
        raise InvalidInputError(
            f"Assignment references unknown class(es): {', '.join(unknown_classes)}", field=field
        )
    return {sid: class_index[cid] for sid, cid in assignment.items()}


def optimize_classes(
    students: Sequence[Student],
    class_count: int,
    factors: Optional[Iterable[Factor | str] | OptimizationFactors] = None,
    strategy: Strategy | str = DEFAULT_STRATEGY,
    parent_requests: Optional[Sequence[ParentRequest]] = None,
    survey_pairs: Optional[Sequence[SurveyPairing]] = None,
    *,
    weights: Optional[dict[str, float]] = None,
    search: Optional[SearchConfig] = None,
    class_slots: Optional[Sequence[ClassSlot]] = None,
    target_size: Optional[int] = None,
    initial_assignment: Optional[dict[str, str]] = None,
    placement_constraints: Optional[Sequence[PlacementConstraint]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> OptimizationReport:
    """
    Partition students into class_count balanced classes.

    Raises InvalidInputError for unusable input. Constraint conflicts, infeasible
    separations and unmet soft requests are reported, never raised.
    """
    setup = prepare_run(
        students, class_count, factors, strategy, parent_requests, survey_pairs,
        weights=weights, class_slots=class_slots, target_size=target_size,
        placement_constraints=placement_constraints,
    )
    preferred = None
    if initial_assignment is not None:
        preferred = resolve_assignment(initial_assignment, setup, field="initialAssignment")
    search = search or DEFAULT_SEARCH_CONFIG
    graph = setup.graph

    logger.info(
        "Optimizing %d students into %d classes (strategy=%s, factors=%s, %d constraints)",
        setup.cohort.size,
        class_count,
        setup.strategy.value,
        [f.value for f in setup.factors.ordered()],
        len(graph.constraints),
    )

    seed = seed_partition(
        setup.cohort,
        class_count,
        graph.groups,
        graph.hard_separate,
        setup.factors,
        setup.weights,
        preferred=preferred,
    )
    demoted = set(seed.demoted)
    hard_separate = [c for c in graph.hard_separate if c not in demoted]
    soft = SoftConstraintIndex(setup.cohort, graph.soft + [replace(c, hard=False) for c in seed.demoted])

    outcome = run_local_search(
        seed.partition,
        seed.units,
        hard_separate,
        setup.factors,
        setup.weights,
        setup.target_size,
        soft,
        search,
        cancel_event=cancel_event,
    )

    violations = find_violations(outcome.partition, graph.hard_together + hard_separate)
    if violations:
        logger.error("Optimized partition violates %d active hard constraint(s)", len(violations))

    report = build_report(
        outcome.partition,
        outcome.card,
        setup.class_slots,
        setup.factors,
        setup.strategy.value,
        setup.target_size,
        conflicts=graph.conflicts + seed.conflicts,
        violations=violations,
        search=outcome.stats,
    )
    logger.info(
        "Optimization done: overall=%.2f (seed %.2f), balance=%.2f, requests=%s, conflicts=%d, %s",
        report.overall_score,
        outcome.stats.seed_score,
        report.balance_score,
        "n/a" if report.requests_fulfilled is None else f"{report.requests_fulfilled:.1f}%",
        len(report.conflicts),
        outcome.stats.termination,
    )
    return report
