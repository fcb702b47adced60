"""
Domain models. Dataclasses and enums only. No FastAPI, no external deps beyond dataclasses/typing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AcademicLevel(str, Enum):
    ADVANCED = "advanced"
    PROFICIENT = "proficient"
    BASIC = "basic"
    BELOW_BASIC = "belowBasic"


class BehaviorLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Student:
    student_id: str
    gender: Gender
    academic_level: AcademicLevel
    behavior_level: BehaviorLevel
    special_needs: bool = False
    grade_code: str = ""


@dataclass(frozen=True)
class ClassSlot:
    class_id: str
    teacher_id: Optional[str] = None


class ConstraintKind(str, Enum):
    TOGETHER = "together"
    SEPARATE = "separate"


class ConstraintOrigin(str, Enum):
    PARENT_REQUEST = "parentRequest"
    TEACHER_SURVEY = "teacherSurvey"
    PLACEMENT = "placement"


@dataclass(frozen=True)
class Constraint:
    """Pairwise rule. student_a < student_b always (see make_constraint)."""
    student_a: str
    student_b: str
    kind: ConstraintKind
    origin: ConstraintOrigin
    hard: bool
    priority: int = 0

    @property
    def pair(self) -> tuple[str, str]:
        return (self.student_a, self.student_b)


def make_constraint(
    a: str,
    b: str,
    kind: ConstraintKind,
    origin: ConstraintOrigin,
    hard: bool,
    priority: int = 0,
) -> Constraint:
    lo, hi = (a, b) if a <= b else (b, a)
    return Constraint(student_a=lo, student_b=hi, kind=kind, origin=origin, hard=hard, priority=priority)


# --- Raw preference inputs (parent portal / teacher survey) ---


class RequestType(str, Enum):
    CLASSMATE = "classmate"
    SEPARATION = "separation"
    TEACHER = "teacher"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True)
class ParentRequest:
    student_id: str
    request_type: RequestType
    status: RequestStatus
    target_student_id: Optional[str] = None
    target_teacher_id: Optional[str] = None
    priority: int = 0
    request_id: Optional[str] = None


class PairingType(str, Enum):
    GOOD = "good"
    AVOID = "avoid"
    SHOULD_SEPARATE = "should_separate"


@dataclass(frozen=True)
class SurveyPairing:
    student_id: str
    paired_student_id: str
    pairing_type: PairingType
    teacher_id: Optional[str] = None
    priority: int = 0


class PlacementConstraintType(str, Enum):
    MUST_BE_TOGETHER = "must_be_together"
    MUST_BE_SEPARATE = "must_be_separate"
    # teacher affinity, not scored
    PREFER_TEACHER = "prefer_teacher"
    AVOID_TEACHER = "avoid_teacher"


@dataclass(frozen=True)
class PlacementConstraint:
    """Admin rule over a group of any size. Always hard: every pair in the group is bound."""
    constraint_type: PlacementConstraintType
    student_ids: tuple[str, ...]
    reason: Optional[str] = None
    teacher_id: Optional[str] = None
    constraint_id: Optional[str] = None


# --- Output ---


class ConflictKind(str, Enum):
    CONTRADICTION = "contradiction"
    TRANSITIVE_CONTRADICTION = "transitive_contradiction"
    UNKNOWN_STUDENT = "unknown_student"
    SELF_REFERENCE = "self_reference"
    INFEASIBLE_SEPARATION = "infeasible_separation"
    # Only produced by evaluate_assignment on caller-edited rosters.
    TOGETHER_VIOLATED = "together_violated"
    SEPARATE_VIOLATED = "separate_violated"


@dataclass(frozen=True)
class Conflict:
    student_ids: tuple[str, ...]
    kind: ConflictKind
    reason: str


@dataclass
class ClassMetrics:
    """Per-class roster and balance breakdown. Scores are 0-100."""
    class_id: str
    student_ids: list[str]
    size: int
    counts: dict[str, dict[str, int]]  # factor -> category -> count
    factor_scores: dict[str, float]  # factor -> score
    score: float
    teacher_id: Optional[str] = None


@dataclass
class SearchStats:
    seed_score: float
    moves_evaluated: int
    moves_accepted: int
    termination: str  # "budget" | "stagnation" | "cancelled" | "deadline" | "no_moves"
    random_seed: int


@dataclass
class OptimizationReport:
    classes: list[ClassMetrics]
    factor_scores: dict[str, float]  # factor -> size-weighted aggregate
    balance_score: float
    overall_score: float
    requests_fulfilled: Optional[float]
    conflicts: list[Conflict]
    strategy: str
    factors: list[str]
    target_size: int
    violations: list[Conflict] = field(default_factory=list)
    search: Optional[SearchStats] = None

    @property
    def total_students(self) -> int:
        return sum(c.size for c in self.classes)

    def assignment(self) -> dict[str, str]:
        """student_id -> class_id."""
        return {sid: c.class_id for c in self.classes for sid in c.student_ids}

    def class_of(self, student_id: str) -> Optional[str]:
        for c in self.classes:
            if student_id in c.student_ids:
                return c.class_id
        return None
