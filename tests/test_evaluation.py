"""Balance scoring, objective blend, hard-constraint check."""
import numpy as np
import pytest

from classplacement.domain.constraints import Factor, OptimizationFactors, StrategyWeights
from classplacement.domain.evaluation import (
    categorical_scores,
    class_size_scores,
    compute_class_scores,
    score_partition,
    size_weighted_mean,
)
from classplacement.domain.models import ConflictKind, ConstraintKind, ConstraintOrigin, make_constraint
from classplacement.domain.objective_function import (
    SoftConstraintIndex,
    compute_objective,
    compute_request_fulfillment,
)
from classplacement.domain.partition import Cohort, Partition
from classplacement.domain.validation import find_violations


@pytest.fixture
def boys_and_girls(make_student):
    # ids sorted: f0..f3, m0..m3
    return Cohort([make_student(f"m{i}", "male") for i in range(4)] + [make_student(f"f{i}", "female") for i in range(4)])


class TestCategoricalScores:
    def test_proportional_class_scores_100(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 0, 1, 1, 0, 0, 1, 1])
        assert categorical_scores(partition, Factor.GENDER).tolist() == pytest.approx([100.0, 100.0])

    def test_single_gender_class_scores_50(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 0, 0, 0, 1, 1, 1, 1])
        assert categorical_scores(partition, Factor.GENDER).tolist() == pytest.approx([50.0, 50.0])

    def test_empty_class_scores_100(self, boys_and_girls):
        partition = Partition(boys_and_girls, 3, [0, 0, 0, 0, 1, 1, 1, 1])
        assert categorical_scores(partition, Factor.GENDER)[2] == 100.0

    def test_scores_stay_in_bounds(self, grade_of_30):
        cohort = Cohort(grade_of_30)
        rng = np.random.default_rng(seed=42)
        for _ in range(20):
            partition = Partition(cohort, 4, rng.integers(0, 4, size=cohort.size))
            for factor in OptimizationFactors.all().categorical:
                scores = categorical_scores(partition, factor)
                assert ((scores >= 0) & (scores <= 100)).all()


class TestClassSize:
    def test_deviation_from_target(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 0, 0, 0, 0, 0, 1, 1])
        assert class_size_scores(partition, 4).tolist() == pytest.approx([50.0, 50.0])

    def test_floored_at_zero(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0] * 8)
        assert class_size_scores(partition, 2).tolist() == [0.0, 0.0]


class TestClassScores:
    def test_no_factors_scores_100(self):
        assert compute_class_scores({}, StrategyWeights(), 3).tolist() == [100.0, 100.0, 100.0]

    def test_weighted_mean(self):
        scores = {Factor.GENDER: np.array([100.0]), Factor.ACADEMIC_LEVEL: np.array([50.0])}
        result = compute_class_scores(scores, StrategyWeights(academic_level=3.0), 1)
        assert result[0] == pytest.approx(62.5)

    def test_zero_weights_fall_back_to_plain_mean(self):
        scores = {Factor.GENDER: np.array([100.0]), Factor.ACADEMIC_LEVEL: np.array([50.0])}
        result = compute_class_scores(scores, StrategyWeights(gender=0.0, academic_level=0.0), 1)
        assert result[0] == pytest.approx(75.0)

    def test_size_weighted_mean(self):
        assert size_weighted_mean(np.array([100.0, 50.0]), np.array([3, 1])) == pytest.approx(87.5)


class TestObjective:
    def test_blends_balance_and_fulfillment(self):
        overall = compute_objective(80.0, 50.0, StrategyWeights(), OptimizationFactors.all())
        assert overall == pytest.approx((80.0 * 5 + 50.0) / 6)

    def test_no_soft_constraints_means_balance_only(self):
        assert compute_objective(80.0, None, StrategyWeights(), OptimizationFactors.all()) == 80.0

    def test_fulfillment_counts_satisfied_pairs(self, boys_and_girls):
        soft = SoftConstraintIndex(
            boys_and_girls,
            [
                make_constraint("f0", "f1", ConstraintKind.TOGETHER, ConstraintOrigin.PARENT_REQUEST, False),
                make_constraint("f0", "m0", ConstraintKind.SEPARATE, ConstraintOrigin.TEACHER_SURVEY, False),
            ],
        )
        together = Partition(boys_and_girls, 2, [0, 0, 1, 1, 0, 0, 1, 1])
        assert compute_request_fulfillment(together, soft) == pytest.approx(50.0)
        apart = Partition(boys_and_girls, 2, [0, 0, 1, 1, 1, 1, 0, 0])
        assert compute_request_fulfillment(apart, soft) == pytest.approx(100.0)

    def test_fulfillment_is_none_without_soft_constraints(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 1] * 4)
        assert compute_request_fulfillment(partition, SoftConstraintIndex(boys_and_girls, [])) is None

    def test_score_partition_perfect_balance(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 0, 1, 1, 0, 0, 1, 1])
        card = score_partition(
            partition, OptimizationFactors.all(), StrategyWeights(), 4, SoftConstraintIndex(boys_and_girls, [])
        )
        assert card.balance == pytest.approx(100.0)
        assert card.overall == pytest.approx(100.0)
        assert card.fulfillment is None


class TestViolations:
    def test_reports_broken_hard_constraints(self, boys_and_girls):
        partition = Partition(boys_and_girls, 2, [0, 1, 0, 1, 0, 1, 0, 1])
        hard = [
            make_constraint("f0", "f1", ConstraintKind.TOGETHER, ConstraintOrigin.PARENT_REQUEST, True),
            make_constraint("f0", "f2", ConstraintKind.SEPARATE, ConstraintOrigin.TEACHER_SURVEY, True),
            make_constraint("m0", "m1", ConstraintKind.SEPARATE, ConstraintOrigin.TEACHER_SURVEY, True),
        ]
        violations = find_violations(partition, hard)
        assert [(v.kind, v.student_ids) for v in violations] == [
            (ConflictKind.TOGETHER_VIOLATED, ("f0", "f1")),
            (ConflictKind.SEPARATE_VIOLATED, ("f0", "f2")),
        ]
