"""
Cohort index and Partition (student -> class). numpy state only, no I/O.

Invariant: every student of the cohort is assigned to exactly one class at all
times; sizes and per-factor category counts always agree with class_of.
"""

from typing import Sequence

import numpy as np

from classplacement.domain.constraints import Factor
from classplacement.domain.models import AcademicLevel, BehaviorLevel, Gender, Student

SPECIAL_NEEDS_YES = "yes"
SPECIAL_NEEDS_NO = "no"

FACTOR_CATEGORIES: dict[Factor, tuple[str, ...]] = {
    Factor.GENDER: tuple(g.value for g in Gender),
    Factor.ACADEMIC_LEVEL: tuple(a.value for a in AcademicLevel),
    Factor.BEHAVIOR_LEVEL: tuple(b.value for b in BehaviorLevel),
    Factor.SPECIAL_NEEDS: (SPECIAL_NEEDS_YES, SPECIAL_NEEDS_NO),
}


def category_of(student: Student, factor: Factor) -> str:
    if factor is Factor.GENDER:
        return student.gender.value
    if factor is Factor.ACADEMIC_LEVEL:
        return student.academic_level.value
    if factor is Factor.BEHAVIOR_LEVEL:
        return student.behavior_level.value
    if factor is Factor.SPECIAL_NEEDS:
        return SPECIAL_NEEDS_YES if student.special_needs else SPECIAL_NEEDS_NO
    raise ValueError(f"{factor.value} is not a categorical factor")


class Cohort:
    """Immutable roster index. Students are ordered by student_id for determinism."""

    def __init__(self, students: Sequence[Student]):
        self.students: list[Student] = sorted(students, key=lambda s: s.student_id)
        self.ids: list[str] = [s.student_id for s in self.students]
        self.index: dict[str, int] = {sid: i for i, sid in enumerate(self.ids)}
        n = len(self.students)
        self.codes: dict[Factor, np.ndarray] = {}
        self.reference: dict[Factor, np.ndarray] = {}
        for factor, categories in FACTOR_CATEGORIES.items():
            lookup = {c: i for i, c in enumerate(categories)}
            codes = np.array([lookup[category_of(s, factor)] for s in self.students], dtype=np.int64)
            self.codes[factor] = codes
            counts = np.bincount(codes, minlength=len(categories)).astype(float)
            self.reference[factor] = counts / n if n else counts

    @property
    def size(self) -> int:
        return len(self.students)

    @staticmethod
    def cardinality(factor: Factor) -> int:
        return len(FACTOR_CATEGORIES[factor])


class Partition:
    def __init__(self, cohort: Cohort, class_count: int, class_of: Sequence[int]):
        labels = np.asarray(class_of, dtype=np.int64).copy()
        if labels.shape != (cohort.size,):
            raise ValueError(f"class_of must have {cohort.size} entries, got {labels.shape}")
        if cohort.size and (labels.min() < 0 or labels.max() >= class_count):
            raise ValueError("class_of references a class outside [0, class_count)")
        self.cohort = cohort
        self.class_count = class_count
        self.class_of = labels
        self.sizes = np.bincount(labels, minlength=class_count).astype(np.int64)
        self.counts: dict[Factor, np.ndarray] = {}
        for factor, codes in cohort.codes.items():
            m = np.zeros((class_count, cohort.cardinality(factor)), dtype=np.int64)
            np.add.at(m, (labels, codes), 1)
            self.counts[factor] = m

    def copy(self) -> "Partition":
        clone = object.__new__(Partition)
        clone.cohort = self.cohort
        clone.class_count = self.class_count
        clone.class_of = self.class_of.copy()
        clone.sizes = self.sizes.copy()
        clone.counts = {f: m.copy() for f, m in self.counts.items()}
        return clone

    def move(self, students: Sequence[int], dest: int) -> None:
        """Relocate students (cohort indices) to class dest, in place."""
        for i in students:
            src = int(self.class_of[i])
            if src == dest:
                continue
            self.sizes[src] -= 1
            self.sizes[dest] += 1
            for factor, m in self.counts.items():
                code = self.cohort.codes[factor][i]
                m[src, code] -= 1
                m[dest, code] += 1
            self.class_of[i] = dest

    def preview(self, moves: Sequence[tuple[Sequence[int], int]]) -> "Partition":
        """Scratch copy with moves applied; self is left untouched."""
        scratch = self.copy()
        for students, dest in moves:
            scratch.move(students, dest)
        return scratch

    def members(self, class_index: int) -> list[int]:
        return np.flatnonzero(self.class_of == class_index).tolist()

    def roster_ids(self, class_index: int) -> list[str]:
        return [self.cohort.ids[i] for i in self.members(class_index)]

    def same_class(self, a: int, b: int) -> bool:
        return bool(self.class_of[a] == self.class_of[b])

    def size_imbalance(self) -> int:
        """sum_k |k_count * size_k - n|; 0 when every class has exactly n / k students."""
        n = self.cohort.size
        return int(np.abs(self.class_count * self.sizes - n).sum())
