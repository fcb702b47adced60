"""HTTP layer: /optimize, /evaluate, health."""
import pytest
from fastapi.testclient import TestClient

from classplacement.api.main import app
from classplacement.api.schemas import EvaluateRequest, OptimizeRequest, RosterRequest


@pytest.fixture
def client():
    return TestClient(app)


class TestApi:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_optimize(self, client, roster_doc):
        payload = dict(roster_doc, classCount=3, classListId="cl-1", strategy="requests")
        response = client.post("/optimize", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["classListId"] == "cl-1"
        assert len(body["classes"]) == 3
        placed = sorted(sid for c in body["classes"] for sid in c["studentIds"])
        assert placed == sorted(s["id"] for s in roster_doc["students"])
        stats = body["statistics"]
        assert stats["totalStudents"] == 12
        assert len(stats["genderBalance"]) == 3
        assert 0 <= stats["overallScore"] <= 100
        assert stats["requestsFulfilled"] is not None
        by_student = {sid: c["classId"] for c in body["classes"] for sid in c["studentIds"]}
        assert by_student["st01"] == by_student["st02"]
        assert by_student["st05"] != by_student["st06"]

    def test_optimize_rejects_bad_class_count(self, client, roster_doc):
        response = client.post("/optimize", json=dict(roster_doc, classCount=0))
        assert response.status_code == 400
        assert "class_count" in response.json()["detail"]

    def test_optimize_rejects_unknown_strategy(self, client, roster_doc):
        response = client.post("/optimize", json=dict(roster_doc, classCount=2, strategy="random"))
        assert response.status_code == 400

    def test_optimize_requires_class_count(self, client, roster_doc):
        response = client.post("/optimize", json=roster_doc)
        assert response.status_code == 422

    def test_optimize_with_named_classes(self, client, roster_doc):
        payload = dict(roster_doc, classCount=2, classes=[{"classId": "4A", "teacherId": "t1"}, {"classId": "4B"}])
        body = client.post("/optimize", json=payload).json()
        assert [c["classId"] for c in body["classes"]] == ["4A", "4B"]
        assert body["classes"][0]["teacherId"] == "t1"

    def test_optimize_honours_placement_groups(self, client, roster_doc):
        groups = [
            {"id": "c1", "type": "must_be_together", "studentIds": ["st07", "st09", "st11"], "reason": "siblings"},
            {"id": "c2", "type": "must_be_separate", "studentIds": ["st08", "st10", "st12"]},
        ]
        payload = dict(roster_doc, classCount=3, placementConstraints=groups)
        response = client.post("/optimize", json=payload)
        assert response.status_code == 200
        body = response.json()
        by_student = {sid: c["classId"] for c in body["classes"] for sid in c["studentIds"]}
        assert by_student["st07"] == by_student["st09"] == by_student["st11"]
        assert len({by_student["st08"], by_student["st10"], by_student["st12"]}) == 3
        assert body["violations"] == []

    def test_optimize_rejects_unknown_placement_type(self, client, roster_doc):
        groups = [{"type": "same_bus", "studentIds": ["st07", "st08"]}]
        response = client.post("/optimize", json=dict(roster_doc, classCount=2, placementConstraints=groups))
        assert response.status_code == 400

    def test_evaluate(self, client, roster_doc):
        assignment = {s["id"]: ("A" if n < 6 else "B") for n, s in enumerate(roster_doc["students"])}
        assignment["st02"] = "B"
        assignment["st06"] = "B"
        response = client.post("/evaluate", json=dict(roster_doc, assignment=assignment))
        assert response.status_code == 200
        body = response.json()
        assert body["statistics"]["termination"] is None
        assert [v["kind"] for v in body["violations"]] == ["together_violated"]

    def test_evaluate_rejects_partial_assignment(self, client, roster_doc):
        response = client.post("/evaluate", json=dict(roster_doc, assignment={"st01": "A"}))
        assert response.status_code == 400


class TestSchemas:
    def test_requests_share_the_roster_fields(self):
        assert issubclass(OptimizeRequest, RosterRequest)
        assert issubclass(EvaluateRequest, RosterRequest)
        roster = RosterRequest.model_validate(
            {"students": [], "placementConstraints": [{"type": "must_be_separate", "studentIds": ["a", "b"]}]}
        )
        assert roster.placement_constraints[0].student_ids == ["a", "b"]
        assert roster.model_dump(by_alias=True)["placementConstraints"][0]["studentIds"] == ["a", "b"]
