"""
Hard-constraint check for any partition (optimizer output or a manually edited roster).
"""

from typing import Iterable

from classplacement.domain.models import Conflict, ConflictKind, Constraint, ConstraintKind
from classplacement.domain.partition import Partition


def find_violations(partition: Partition, hard_constraints: Iterable[Constraint]) -> list[Conflict]:
    index = partition.cohort.index
    out: list[Conflict] = []
    for c in hard_constraints:
        same = partition.same_class(index[c.student_a], index[c.student_b])
        if c.kind is ConstraintKind.TOGETHER and not same:
            out.append(
                Conflict(
                    student_ids=c.pair,
                    kind=ConflictKind.TOGETHER_VIOLATED,
                    reason=f"{c.student_a} and {c.student_b} must share a class but are split",
                )
            )
        elif c.kind is ConstraintKind.SEPARATE and same:
            out.append(
                Conflict(
                    student_ids=c.pair,
                    kind=ConflictKind.SEPARATE_VIOLATED,
                    reason=f"{c.student_a} and {c.student_b} must be separated but share a class",
                )
            )
    return out
