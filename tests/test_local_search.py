"""Local search: improvement, feasibility, termination, reproducibility."""
import threading

import pytest

from classplacement.core.allocation_engine.local_search import (
    TERMINATION_CANCELLED,
    TERMINATION_DEADLINE,
    TERMINATION_NO_MOVES,
    TERMINATION_STAGNATION,
    run_local_search,
)
from classplacement.domain.constraints import Factor, OptimizationFactors, SearchConfig, StrategyWeights
from classplacement.domain.models import ConstraintKind, ConstraintOrigin, make_constraint
from classplacement.domain.objective_function import SoftConstraintIndex, compute_request_fulfillment
from classplacement.domain.partition import Cohort, Partition

GENDER_ONLY = OptimizationFactors.of([Factor.GENDER])


@pytest.fixture
def cohort(make_student):
    # ids sorted: f0..f3, m0..m3
    return Cohort([make_student(f"m{i}", "male") for i in range(4)] + [make_student(f"f{i}", "female") for i in range(4)])


def _singletons(cohort):
    return [(i,) for i in range(cohort.size)]


def _run(cohort, labels, *, class_count=2, units=None, hard_separate=(), config=None, soft=(), weights=None):
    partition = Partition(cohort, class_count, labels)
    return run_local_search(
        partition,
        units if units is not None else _singletons(cohort),
        list(hard_separate),
        GENDER_ONLY,
        weights or StrategyWeights(),
        cohort.size // class_count,
        SoftConstraintIndex(cohort, list(soft)),
        config or SearchConfig(),
    )


class TestLocalSearch:
    def test_improves_a_segregated_seed(self, cohort):
        outcome = _run(cohort, [0, 0, 0, 0, 1, 1, 1, 1])
        assert outcome.stats.seed_score == pytest.approx(50.0)
        assert outcome.card.overall > outcome.stats.seed_score
        assert outcome.stats.moves_accepted > 0

    def test_never_returns_worse_than_seed(self, grade_of_30):
        cohort = Cohort(grade_of_30)
        labels = [i % 3 for i in range(cohort.size)]
        outcome = run_local_search(
            Partition(cohort, 3, labels),
            _singletons(cohort),
            [],
            OptimizationFactors.all(),
            StrategyWeights(),
            10,
            SoftConstraintIndex(cohort, []),
            SearchConfig(move_budget=500),
        )
        assert outcome.card.overall >= outcome.stats.seed_score
        assert outcome.stats.moves_evaluated <= 500

    def test_partition_counts_stay_consistent(self, cohort):
        outcome = _run(cohort, [0, 0, 0, 0, 1, 1, 1, 1])
        rebuilt = Partition(cohort, 2, outcome.partition.class_of)
        assert outcome.partition.sizes.tolist() == rebuilt.sizes.tolist()
        for factor, counts in rebuilt.counts.items():
            assert outcome.partition.counts[factor].tolist() == counts.tolist()

    def test_units_move_as_one(self, cohort):
        units = [(0, 4)] + [(i,) for i in (1, 2, 3, 5, 6, 7)]
        outcome = _run(cohort, [0, 0, 0, 0, 0, 1, 1, 1], units=units)
        assert outcome.partition.class_of[0] == outcome.partition.class_of[4]

    def test_hard_separation_is_never_broken(self, cohort):
        sep = make_constraint("f0", "m0", ConstraintKind.SEPARATE, ConstraintOrigin.TEACHER_SURVEY, True)
        for seed in range(5):
            outcome = _run(cohort, [0, 0, 0, 0, 1, 1, 1, 1], hard_separate=[sep], config=SearchConfig(seed=seed))
            assert outcome.partition.class_of[0] != outcome.partition.class_of[4]

    def test_same_seed_same_result(self, cohort):
        first = _run(cohort, [0, 0, 0, 0, 1, 1, 1, 1], config=SearchConfig(seed=7))
        second = _run(cohort, [0, 0, 0, 0, 1, 1, 1, 1], config=SearchConfig(seed=7))
        assert first.partition.class_of.tolist() == second.partition.class_of.tolist()
        assert first.stats.moves_evaluated == second.stats.moves_evaluated

    def test_optimum_accepts_no_moves(self, cohort):
        outcome = _run(cohort, [0, 0, 1, 1, 0, 0, 1, 1])
        assert outcome.stats.seed_score == pytest.approx(100.0)
        assert outcome.stats.moves_accepted == 0

    def test_single_class_has_no_moves(self, cohort):
        outcome = _run(cohort, [0] * 8, class_count=1)
        assert outcome.stats.termination == TERMINATION_NO_MOVES
        assert outcome.stats.moves_evaluated == 0

    def test_cancelled_before_start(self, cohort):
        event = threading.Event()
        event.set()
        partition = Partition(cohort, 2, [0, 0, 0, 0, 1, 1, 1, 1])
        outcome = run_local_search(
            partition, _singletons(cohort), [], GENDER_ONLY, StrategyWeights(), 4,
            SoftConstraintIndex(cohort, []), SearchConfig(), cancel_event=event,
        )
        assert outcome.stats.termination == TERMINATION_CANCELLED
        assert outcome.partition.class_of.tolist() == partition.class_of.tolist()


class TestTermination:
    def test_zero_time_limit_stops_at_deadline(self, cohort):
        labels = [0, 0, 0, 0, 1, 1, 1, 1]
        outcome = _run(cohort, labels, config=SearchConfig(time_limit_s=0.0))
        assert outcome.stats.termination == TERMINATION_DEADLINE
        assert outcome.stats.moves_evaluated == 0
        assert int(outcome.partition.sizes.sum()) == cohort.size
        assert outcome.partition.class_of.tolist() == labels

    def test_stagnation_limit_stops_without_improvement(self, cohort):
        outcome = _run(cohort, [0, 0, 1, 1, 0, 0, 1, 1], config=SearchConfig(stagnation_limit=5))
        assert outcome.stats.termination == TERMINATION_STAGNATION
        assert outcome.stats.moves_accepted == 0
        assert 5 <= outcome.stats.moves_evaluated < 160


class TestSoftRequests:
    def test_search_satisfies_pending_classmate_requests(self, cohort):
        # gender-balanced seed that splits every requested pair
        labels = [0, 0, 1, 1, 0, 0, 1, 1]
        soft = [
            make_constraint("f0", "f2", ConstraintKind.TOGETHER, ConstraintOrigin.PARENT_REQUEST, False),
            make_constraint("m0", "m2", ConstraintKind.TOGETHER, ConstraintOrigin.PARENT_REQUEST, False),
            make_constraint("f1", "m3", ConstraintKind.TOGETHER, ConstraintOrigin.PARENT_REQUEST, False),
        ]
        index = SoftConstraintIndex(cohort, soft)
        seed_fulfillment = compute_request_fulfillment(Partition(cohort, 2, labels), index)
        assert seed_fulfillment == 0.0

        outcome = _run(
            cohort,
            labels,
            soft=soft,
            weights=StrategyWeights(requests=3.0),
            config=SearchConfig(move_budget=400, stagnation_limit=400),
        )
        assert outcome.stats.moves_accepted > 0
        assert outcome.card.fulfillment > seed_fulfillment
        assert outcome.card.fulfillment == pytest.approx(compute_request_fulfillment(outcome.partition, index))
