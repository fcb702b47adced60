"""
API request/response schemas. Pydantic only in api layer.
Field names are camelCase on the wire (the portal's JSON), snake_case in Python.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from classplacement.domain.constraints import Factor
from classplacement.domain.models import Conflict, OptimizationReport


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StudentSchema(CamelModel):
    id: str
    gender: str
    academic_level: Optional[str] = None
    behavior_level: Optional[str] = None
    special_needs: bool = False
    has_iep: bool = Field(default=False, alias="hasIEP")
    has_504: bool = Field(default=False, alias="has504")
    grade_code: str = ""


class ParentRequestSchema(CamelModel):
    id: Optional[str] = None
    student_id: str
    type: str  # classmate | separation | teacher
    target_student_id: Optional[str] = None
    target_teacher_id: Optional[str] = None
    status: str = "pending"  # pending | approved | declined
    priority: int = 0


class SurveyPairSchema(CamelModel):
    student_id: str
    pairing_type: str  # good | avoid | should_separate
    paired_student_ids: list[str] = []
    paired_student_id: Optional[str] = None
    teacher_id: Optional[str] = None
    priority: int = 0


class ClassSlotSchema(CamelModel):
    class_id: str
    teacher_id: Optional[str] = None


class PlacementConstraintSchema(CamelModel):
    id: Optional[str] = None
    type: str  # must_be_together | must_be_separate | prefer_teacher | avoid_teacher
    student_ids: list[str]
    reason: Optional[str] = None
    teacher_id: Optional[str] = None


class RosterRequest(CamelModel):
    class_list_id: Optional[str] = None
    students: list[StudentSchema]
    factors: Optional[list[str]] = None
    strategy: str = "balanced"
    parent_requests: list[ParentRequestSchema] = []
    survey_pairs: list[SurveyPairSchema] = []
    placement_constraints: list[PlacementConstraintSchema] = []
    weights: Optional[dict[str, float]] = None
    target_size: Optional[int] = None
    classes: Optional[list[ClassSlotSchema]] = None


class OptimizeRequest(RosterRequest):
    class_count: int
    seed: Optional[int] = None
    move_budget: Optional[int] = None
    time_limit_seconds: Optional[float] = None
    initial_assignment: Optional[dict[str, str]] = None  # studentId -> classId (warm start)


class EvaluateRequest(RosterRequest):
    assignment: dict[str, str]  # studentId -> classId


class ConflictSchema(CamelModel):
    student_ids: list[str]
    kind: str
    reason: str

    @classmethod
    def from_conflict(cls, conflict: Conflict) -> "ConflictSchema":
        return cls(student_ids=list(conflict.student_ids), kind=conflict.kind.value, reason=conflict.reason)


class ClassResultSchema(CamelModel):
    class_id: str
    teacher_id: Optional[str] = None
    student_ids: list[str]
    size: int
    counts: dict[str, dict[str, int]]
    balance_scores: dict[str, float]
    score: float


class StatisticsSchema(CamelModel):
    total_students: int
    class_count: int
    average_class_size: float
    students_placed: int
    gender_balance: list[float]
    academic_balance: list[float]
    behavior_balance: list[float]
    special_needs_balance: list[float]
    class_size_balance: list[float]
    factor_scores: dict[str, float]
    balance_score: float
    overall_score: float
    requests_fulfilled: Optional[float] = None
    seed_score: Optional[float] = None
    moves_evaluated: Optional[int] = None
    moves_accepted: Optional[int] = None
    termination: Optional[str] = None


class OptimizeResponse(CamelModel):
    success: bool = True
    class_list_id: Optional[str] = None
    strategy: str
    factors: list[str]
    classes: list[ClassResultSchema]
    statistics: StatisticsSchema
    conflicts: list[ConflictSchema]
    violations: list[ConflictSchema] = []

    @classmethod
    def from_report(
        cls,
        report: OptimizationReport,
        class_list_id: Optional[str] = None,
    ) -> "OptimizeResponse":
        placed = report.total_students

        def per_class(factor: Factor) -> list[float]:
            if factor.value not in report.factors:
                return []
            return [round(c.factor_scores[factor.value], 2) for c in report.classes]

        search = report.search
        statistics = StatisticsSchema(
            total_students=placed,
            class_count=len(report.classes),
            average_class_size=round(placed / len(report.classes), 1) if report.classes else 0.0,
            students_placed=placed,
            gender_balance=per_class(Factor.GENDER),
            academic_balance=per_class(Factor.ACADEMIC_LEVEL),
            behavior_balance=per_class(Factor.BEHAVIOR_LEVEL),
            special_needs_balance=per_class(Factor.SPECIAL_NEEDS),
            class_size_balance=per_class(Factor.CLASS_SIZE),
            factor_scores={k: round(v, 2) for k, v in report.factor_scores.items()},
            balance_score=round(report.balance_score, 2),
            overall_score=round(report.overall_score, 2),
            requests_fulfilled=None if report.requests_fulfilled is None else round(report.requests_fulfilled, 2),
            seed_score=None if search is None else round(search.seed_score, 2),
            moves_evaluated=None if search is None else search.moves_evaluated,
            moves_accepted=None if search is None else search.moves_accepted,
            termination=None if search is None else search.termination,
        )
        return cls(
            class_list_id=class_list_id,
            strategy=report.strategy,
            factors=report.factors,
            classes=[
                ClassResultSchema(
                    class_id=c.class_id,
                    teacher_id=c.teacher_id,
                    student_ids=c.student_ids,
                    size=c.size,
                    counts=c.counts,
                    balance_scores={k: round(v, 2) for k, v in c.factor_scores.items()},
                    score=round(c.score, 2),
                )
                for c in report.classes
            ],
            statistics=statistics,
            conflicts=[ConflictSchema.from_conflict(c) for c in report.conflicts],
            violations=[ConflictSchema.from_conflict(c) for c in report.violations],
        )
