"""
Roster loader. Raw dicts (portal JSON, camelCase) -> domain Student / ParentRequest /
SurveyPairing / ClassSlot. Normalizes the spellings the portal and imports produce.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from classplacement.domain.exceptions import InvalidInputError
from classplacement.domain.models import (
    AcademicLevel,
    BehaviorLevel,
    ClassSlot,
    Gender,
    PairingType,
    ParentRequest,
    PlacementConstraint,
    PlacementConstraintType,
    RequestStatus,
    RequestType,
    Student,
    SurveyPairing,
)

_GENDERS = {
    "m": Gender.MALE,
    "male": Gender.MALE,
    "boy": Gender.MALE,
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
    "girl": Gender.FEMALE,
    "o": Gender.OTHER,
    "x": Gender.OTHER,
    "other": Gender.OTHER,
    "nonbinary": Gender.OTHER,
}

_ACADEMIC_LEVELS = {
    "advanced": AcademicLevel.ADVANCED,
    "proficient": AcademicLevel.PROFICIENT,
    "basic": AcademicLevel.BASIC,
    "developing": AcademicLevel.BASIC,
    "belowbasic": AcademicLevel.BELOW_BASIC,
    "needssupport": AcademicLevel.BELOW_BASIC,
}

_BEHAVIOR_LEVELS = {
    "low": BehaviorLevel.LOW,
    "medium": BehaviorLevel.MEDIUM,
    "high": BehaviorLevel.HIGH,
}

_PAIRING_TYPES = {
    "good": PairingType.GOOD,
    "avoid": PairingType.AVOID,
    "shouldseparate": PairingType.SHOULD_SEPARATE,
}

_PLACEMENT_TYPES = {
    "mustbetogether": PlacementConstraintType.MUST_BE_TOGETHER,
    "keeptogether": PlacementConstraintType.MUST_BE_TOGETHER,
    "mustbeseparate": PlacementConstraintType.MUST_BE_SEPARATE,
    "keepseparate": PlacementConstraintType.MUST_BE_SEPARATE,
    "preferteacher": PlacementConstraintType.PREFER_TEACHER,
    "avoidteacher": PlacementConstraintType.AVOID_TEACHER,
}


def _key(value: Any) -> str:
    """'Below Basic' / 'below_basic' / 'belowBasic' -> 'belowbasic'."""
    return re.sub(r"[\s_\-]", "", str(value)).lower()


def _lookup(table: dict, value: Any, field_name: str, default: Any = None) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise InvalidInputError(f"Missing required field {field_name!r}", field=field_name)
    found = table.get(_key(value))
    if found is None:
        raise InvalidInputError(f"Unknown {field_name} value {value!r}", field=field_name)
    return found


def _require_id(raw: dict, *names: str) -> str:
    for name in names:
        value = raw.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    raise InvalidInputError(f"Missing required field {names[0]!r}", field=names[0])


def _optional_id(raw: dict, name: str) -> Optional[str]:
    value = raw.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _priority(raw: dict) -> int:
    value = raw.get("priority", 0)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise InvalidInputError(f"priority must be an integer, got {value!r}", field="priority") from None


def load_students(raw_students: list[dict]) -> list[Student]:
    """Missing academicLevel / behaviorLevel default to proficient / medium. hasIEP / has504 imply special needs."""
    result: list[Student] = []
    for raw in raw_students:
        special = bool(raw.get("specialNeeds")) or bool(raw.get("hasIEP")) or bool(raw.get("has504"))
        result.append(
            Student(
                student_id=_require_id(raw, "id", "studentId"),
                gender=_lookup(_GENDERS, raw.get("gender"), "gender"),
                academic_level=_lookup(
                    _ACADEMIC_LEVELS, raw.get("academicLevel"), "academicLevel", AcademicLevel.PROFICIENT
                ),
                behavior_level=_lookup(
                    _BEHAVIOR_LEVELS, raw.get("behaviorLevel"), "behaviorLevel", BehaviorLevel.MEDIUM
                ),
                special_needs=special,
                grade_code=str(raw.get("gradeCode") or raw.get("grade") or ""),
            )
        )
    return result


def load_parent_requests(raw_requests: list[dict]) -> list[ParentRequest]:
    result: list[ParentRequest] = []
    for raw in raw_requests:
        try:
            request_type = RequestType(str(raw.get("type", "")).strip())
        except ValueError:
            raise InvalidInputError(
                f"Unknown parent request type {raw.get('type')!r}; allowed: {[t.value for t in RequestType]}",
                field="type",
            ) from None
        try:
            status = RequestStatus(str(raw.get("status") or RequestStatus.PENDING.value).strip())
        except ValueError:
            raise InvalidInputError(
                f"Unknown parent request status {raw.get('status')!r}", field="status"
            ) from None
        result.append(
            ParentRequest(
                student_id=_require_id(raw, "studentId"),
                request_type=request_type,
                status=status,
                target_student_id=_optional_id(raw, "targetStudentId"),
                target_teacher_id=_optional_id(raw, "targetTeacherId"),
                priority=_priority(raw),
                request_id=_optional_id(raw, "id"),
            )
        )
    return result


def load_survey_pairs(raw_surveys: list[dict]) -> list[SurveyPairing]:
    """One entry may pair a student with several others (pairedStudentIds) -> one SurveyPairing each."""
    result: list[SurveyPairing] = []
    for raw in raw_surveys:
        student_id = _require_id(raw, "studentId")
        pairing_type = _lookup(_PAIRING_TYPES, raw.get("pairingType"), "pairingType")
        paired = list(raw.get("pairedStudentIds") or [])
        single = _optional_id(raw, "pairedStudentId")
        if single is not None:
            paired.append(single)
        if not paired:
            raise InvalidInputError(f"Survey pairing for {student_id} lists no paired student", field="pairedStudentIds")
        for other in paired:
            result.append(
                SurveyPairing(
                    student_id=student_id,
                    paired_student_id=str(other).strip(),
                    pairing_type=pairing_type,
                    teacher_id=_optional_id(raw, "teacherId"),
                    priority=_priority(raw),
                )
            )
    return result


def load_placement_constraints(raw_constraints: list[dict]) -> list[PlacementConstraint]:
    """Admin group rules. Members come from studentIds (or students); description doubles as reason."""
    result: list[PlacementConstraint] = []
    for raw in raw_constraints:
        constraint_type = _lookup(_PLACEMENT_TYPES, raw.get("type"), "type")
        members = raw.get("studentIds")
        if members is None:
            members = raw.get("students")
        if not isinstance(members, list):
            raise InvalidInputError("Placement constraint needs a studentIds list", field="studentIds")
        result.append(
            PlacementConstraint(
                constraint_type=constraint_type,
                student_ids=tuple(str(m).strip() for m in members),
                reason=_optional_id(raw, "reason") or _optional_id(raw, "description"),
                teacher_id=_optional_id(raw, "teacherId"),
                constraint_id=_optional_id(raw, "id"),
            )
        )
    return result


def load_class_slots(raw_classes: Optional[list[dict]]) -> Optional[list[ClassSlot]]:
    if not raw_classes:
        return None
    return [
        ClassSlot(class_id=_require_id(raw, "classId", "id"), teacher_id=_optional_id(raw, "teacherId"))
        for raw in raw_classes
    ]


@dataclass
class RosterDocument:
    students: list[Student]
    parent_requests: list[ParentRequest] = field(default_factory=list)
    survey_pairs: list[SurveyPairing] = field(default_factory=list)
    class_slots: Optional[list[ClassSlot]] = None
    placement_constraints: list[PlacementConstraint] = field(default_factory=list)


def load_roster_document(doc: dict) -> RosterDocument:
    """
    Whole JSON document: {"students": [...], "parentRequests": [...], "surveyPairs": [...],
    "placementConstraints": [...], "classes": [...]}.
    """
    if not isinstance(doc, dict) or "students" not in doc:
        raise InvalidInputError("Roster document must be an object with a 'students' list", field="students")
    return RosterDocument(
        students=load_students(doc.get("students") or []),
        parent_requests=load_parent_requests(doc.get("parentRequests") or []),
        survey_pairs=load_survey_pairs(doc.get("surveyPairs") or []),
        class_slots=load_class_slots(doc.get("classes")),
        placement_constraints=load_placement_constraints(doc.get("placementConstraints") or []),
    )
