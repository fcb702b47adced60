import pytest

from classplacement.domain.models import AcademicLevel, BehaviorLevel, Gender, Student


def _student(sid, gender="male", academic="proficient", behavior="medium", special=False):
    return Student(
        student_id=sid,
        gender=Gender(gender),
        academic_level=AcademicLevel(academic),
        behavior_level=BehaviorLevel(behavior),
        special_needs=special,
    )


@pytest.fixture
def make_student():
    return _student


@pytest.fixture
def grade_of_30():
    """15 boys / 15 girls, academic and behavior levels spread evenly. Odd ids are boys."""
    levels = [a.value for a in AcademicLevel]
    behaviors = [b.value for b in BehaviorLevel]
    return [
        _student(
            f"s{i:02d}",
            "male" if i % 2 else "female",
            levels[i % len(levels)],
            behaviors[i % len(behaviors)],
            special=(i % 10 == 0),
        )
        for i in range(1, 31)
    ]


@pytest.fixture
def roster_doc():
    """Portal-shaped roster JSON (camelCase)."""
    students = []
    for i in range(1, 13):
        students.append(
            {
                "id": f"st{i:02d}",
                "gender": "M" if i % 2 else "F",
                "academicLevel": ["advanced", "proficient", "developing", "needs_support"][i % 4],
                "behaviorLevel": ["low", "medium", "high"][i % 3],
                "hasIEP": i == 12,
            }
        )
    return {
        "students": students,
        "parentRequests": [
            {"id": "r1", "studentId": "st01", "type": "classmate", "targetStudentId": "st02", "status": "approved"},
            {"id": "r2", "studentId": "st03", "type": "separation", "targetStudentId": "st04", "status": "pending"},
        ],
        "surveyPairs": [
            {"studentId": "st05", "pairingType": "should_separate", "pairedStudentIds": ["st06"]},
        ],
    }
