"""
Constraint graph builder. Parent requests + teacher survey pairings + admin placement
groups -> deduplicated pairwise constraints, hard-together groups (union-find) and conflicts.
Never raises: bad references and contradictions become Conflict entries.
"""

import logging
from dataclasses import dataclass, replace
from itertools import combinations
from typing import Iterable, Optional, Sequence

from classplacement.domain.models import (
    Conflict,
    ConflictKind,
    Constraint,
    ConstraintKind,
    ConstraintOrigin,
    PairingType,
    ParentRequest,
    PlacementConstraint,
    PlacementConstraintType,
    RequestStatus,
    RequestType,
    SurveyPairing,
    make_constraint,
)

logger = logging.getLogger(__name__)


@dataclass
class ConstraintGraph:
    constraints: list[Constraint]
    groups: list[tuple[str, ...]]  # hard-together components, singletons included
    conflicts: list[Conflict]

    @property
    def hard_together(self) -> list[Constraint]:
        return [c for c in self.constraints if c.hard and c.kind is ConstraintKind.TOGETHER]

    @property
    def hard_separate(self) -> list[Constraint]:
        return [c for c in self.constraints if c.hard and c.kind is ConstraintKind.SEPARATE]

    @property
    def hard(self) -> list[Constraint]:
        return [c for c in self.constraints if c.hard]

    @property
    def soft(self) -> list[Constraint]:
        """Soft requests plus constraints demoted to advisory."""
        return [c for c in self.constraints if not c.hard]


class UnionFind:
    """Disjoint sets over string ids. Root is always the smallest id of the set."""

    def __init__(self, ids: Iterable[str]):
        self.parent = {i: i for i in ids}

    def find(self, x: str) -> str:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if rb < ra:
            ra, rb = rb, ra
        self.parent[rb] = ra

    def groups(self) -> list[tuple[str, ...]]:
        by_root: dict[str, list[str]] = {}
        for i in self.parent:
            by_root.setdefault(self.find(i), []).append(i)
        return sorted(tuple(sorted(members)) for members in by_root.values())


def _pair_conflict(a: str, b: str, kind: ConflictKind, reason: str) -> Conflict:
    return Conflict(student_ids=tuple(sorted((a, b))), kind=kind, reason=reason)


def _check_refs(
    a: str,
    b: Optional[str],
    known_ids: set[str],
    source: str,
) -> Optional[Conflict]:
    if b is None or b == "":
        return Conflict(
            student_ids=(a,),
            kind=ConflictKind.UNKNOWN_STUDENT,
            reason=f"{source} for {a} has no target student",
        )
    unknown = [s for s in (a, b) if s not in known_ids]
    if unknown:
        return _pair_conflict(
            a, b, ConflictKind.UNKNOWN_STUDENT, f"{source} references unknown student(s) {', '.join(unknown)}"
        )
    if a == b:
        return Conflict(
            student_ids=(a,),
            kind=ConflictKind.SELF_REFERENCE,
            reason=f"{source} pairs {a} with itself",
        )
    return None


def normalize_parent_request(request: ParentRequest) -> Optional[Constraint]:
    """Approved -> hard, pending -> soft, declined / teacher requests -> None."""
    if request.status is RequestStatus.DECLINED:
        return None
    if request.request_type is RequestType.TEACHER:
        return None
    kind = ConstraintKind.TOGETHER if request.request_type is RequestType.CLASSMATE else ConstraintKind.SEPARATE
    return make_constraint(
        request.student_id,
        request.target_student_id or "",
        kind,
        ConstraintOrigin.PARENT_REQUEST,
        hard=request.status is RequestStatus.APPROVED,
        priority=request.priority,
    )


def normalize_survey_pairing(pairing: SurveyPairing) -> Constraint:
    """should_separate -> hard separate, avoid -> soft separate, good -> soft together."""
    if pairing.pairing_type is PairingType.GOOD:
        kind, hard = ConstraintKind.TOGETHER, False
    elif pairing.pairing_type is PairingType.AVOID:
        kind, hard = ConstraintKind.SEPARATE, False
    else:
        kind, hard = ConstraintKind.SEPARATE, True
    return make_constraint(
        pairing.student_id,
        pairing.paired_student_id,
        kind,
        ConstraintOrigin.TEACHER_SURVEY,
        hard=hard,
        priority=pairing.priority,
    )


def normalize_placement_constraint(constraint: PlacementConstraint) -> list[Constraint]:
    """Group rule -> one hard pairwise constraint per pair of distinct members. Teacher rules -> []."""
    if constraint.constraint_type is PlacementConstraintType.MUST_BE_TOGETHER:
        kind = ConstraintKind.TOGETHER
    elif constraint.constraint_type is PlacementConstraintType.MUST_BE_SEPARATE:
        kind = ConstraintKind.SEPARATE
    else:
        return []
    members = sorted(set(constraint.student_ids))
    return [
        make_constraint(a, b, kind, ConstraintOrigin.PLACEMENT, hard=True)
        for a, b in combinations(members, 2)
    ]


def _request_label(request: ParentRequest) -> str:
    return f"Parent request {request.request_id}" if request.request_id else "Parent request"


def _placement_label(constraint: PlacementConstraint) -> str:
    label = constraint.constraint_type.value
    if constraint.constraint_id:
        label = f"{label} {constraint.constraint_id}"
    if constraint.reason:
        label = f"{label} ({constraint.reason})"
    return f"Placement constraint {label}"


def _check_group(
    constraint: PlacementConstraint,
    known_ids: set[str],
) -> Optional[Conflict]:
    members = tuple(sorted(set(constraint.student_ids)))
    unknown = [s for s in members if s not in known_ids]
    if unknown:
        return Conflict(
            student_ids=members,
            kind=ConflictKind.UNKNOWN_STUDENT,
            reason=f"{_placement_label(constraint)} references unknown student(s) {', '.join(unknown)}",
        )
    if len(members) < 2:
        return Conflict(
            student_ids=members,
            kind=ConflictKind.SELF_REFERENCE,
            reason=f"{_placement_label(constraint)} names fewer than two distinct students",
        )
    return None


def merge_duplicates(constraints: Sequence[Constraint]) -> list[Constraint]:
    """
    Same pair + same kind -> one constraint: highest priority, hard = OR of all,
    origin of the highest-priority entry (first seen on ties).
    """
    merged: dict[tuple[str, str, ConstraintKind], Constraint] = {}
    for c in constraints:
        key = (c.student_a, c.student_b, c.kind)
        prev = merged.get(key)
        if prev is None:
            merged[key] = c
            continue
        origin = c.origin if c.priority > prev.priority else prev.origin
        merged[key] = replace(
            prev,
            origin=origin,
            hard=prev.hard or c.hard,
            priority=max(prev.priority, c.priority),
        )
    return [merged[k] for k in sorted(merged, key=lambda k: (k[0], k[1], k[2].value))]


def build_constraint_graph(
    student_ids: Iterable[str],
    parent_requests: Sequence[ParentRequest] = (),
    survey_pairs: Sequence[SurveyPairing] = (),
    placement_constraints: Sequence[PlacementConstraint] = (),
) -> ConstraintGraph:
    known = set(student_ids)
    conflicts: list[Conflict] = []
    raw: list[Constraint] = []

    for req in parent_requests:
        if req.status is RequestStatus.DECLINED:
            continue
        if req.request_type is RequestType.TEACHER:
            logger.info(
                "%s from %s for teacher %s ignored: teacher affinity is not scored",
                _request_label(req), req.student_id, req.target_teacher_id,
            )
            continue
        bad = _check_refs(req.student_id, req.target_student_id, known, _request_label(req))
        if bad is not None:
            conflicts.append(bad)
            continue
        c = normalize_parent_request(req)
        if c is not None:
            raw.append(c)

    for pairing in survey_pairs:
        bad = _check_refs(pairing.student_id, pairing.paired_student_id, known, "Survey pairing")
        if bad is not None:
            conflicts.append(bad)
            continue
        raw.append(normalize_survey_pairing(pairing))

    for placement in placement_constraints:
        if placement.constraint_type not in (
            PlacementConstraintType.MUST_BE_TOGETHER,
            PlacementConstraintType.MUST_BE_SEPARATE,
        ):
            logger.info("%s ignored: teacher affinity is not scored", _placement_label(placement))
            continue
        bad = _check_group(placement, known)
        if bad is not None:
            conflicts.append(bad)
            continue
        raw.extend(normalize_placement_constraint(placement))

    constraints = merge_duplicates(raw)

    # Direct contradictions: hard together + hard separate on the same pair.
    hard_kinds: dict[tuple[str, str], set[ConstraintKind]] = {}
    for c in constraints:
        if c.hard:
            hard_kinds.setdefault(c.pair, set()).add(c.kind)
    contradicted = {pair for pair, kinds in hard_kinds.items() if len(kinds) == 2}
    if contradicted:
        constraints = [replace(c, hard=False) if c.pair in contradicted else c for c in constraints]
        for a, b in sorted(contradicted):
            conflicts.append(
                _pair_conflict(
                    a, b, ConflictKind.CONTRADICTION,
                    f"{a} and {b} are required both together and apart; both demoted to advisory",
                )
            )

    # Transitive contradictions: hard separate inside one hard-together group.
    uf = UnionFind(sorted(known))
    for c in constraints:
        if c.hard and c.kind is ConstraintKind.TOGETHER:
            uf.union(c.student_a, c.student_b)
    demoted: list[Constraint] = []
    for c in constraints:
        if c.hard and c.kind is ConstraintKind.SEPARATE and uf.find(c.student_a) == uf.find(c.student_b):
            demoted.append(c)
            conflicts.append(
                _pair_conflict(
                    c.student_a, c.student_b, ConflictKind.TRANSITIVE_CONTRADICTION,
                    f"{c.student_a} and {c.student_b} must be apart but are linked by must-be-together "
                    f"requests; separation demoted to advisory",
                )
            )
    if demoted:
        demoted_set = set(demoted)
        constraints = [replace(c, hard=False) if c in demoted_set else c for c in constraints]

    for conflict in conflicts:
        logger.warning("Constraint conflict %s: %s", conflict.kind.value, conflict.reason)

    return ConstraintGraph(constraints=constraints, groups=uf.groups(), conflicts=conflicts)
