"""
Seed assigner. Greedy deterministic distribution of placement units (hard-together
bundles) over the class slots. One pass, no solver.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from classplacement.domain.constraints import Factor, OptimizationFactors, StrategyWeights
from classplacement.domain.models import Conflict, ConflictKind, Constraint
from classplacement.domain.partition import Cohort, Partition

logger = logging.getLogger(__name__)


@dataclass
class SeedResult:
    partition: Partition
    units: list[tuple[int, ...]]  # cohort indices; each unit always shares one class
    conflicts: list[Conflict]
    demoted: list[Constraint]  # hard separations that could not be honored


def build_units(cohort: Cohort, groups: Sequence[Sequence[str]]) -> list[tuple[int, ...]]:
    """Hard-together groups -> tuples of cohort indices. Students missing from groups become singletons."""
    seen: set[int] = set()
    units: list[tuple[int, ...]] = []
    for group in groups:
        members = tuple(sorted(cohort.index[sid] for sid in group if sid in cohort.index))
        if not members:
            continue
        units.append(members)
        seen.update(members)
    for i in range(cohort.size):
        if i not in seen:
            units.append((i,))
    return sorted(units)


def separation_partners(cohort: Cohort, hard_separate: Sequence[Constraint]) -> dict[int, set[int]]:
    partners: dict[int, set[int]] = {}
    for c in hard_separate:
        a, b = cohort.index[c.student_a], cohort.index[c.student_b]
        partners.setdefault(a, set()).add(b)
        partners.setdefault(b, set()).add(a)
    return partners


def _scarce_codes(cohort: Cohort, factors: OptimizationFactors) -> dict[Factor, set[int]]:
    """Categories present in the grade but below an even share (1 / cardinality)."""
    out: dict[Factor, set[int]] = {}
    for factor in factors.categorical:
        ref = cohort.reference[factor]
        even = 1.0 / len(ref)
        out[factor] = {j for j, share in enumerate(ref) if 0 < share < even}
    return out


def _dominant_factor(factors: OptimizationFactors, weights: StrategyWeights) -> Optional[Factor]:
    best: Optional[Factor] = None
    for factor in factors.categorical:
        if best is None or weights.for_factor(factor) > weights.for_factor(best):
            best = factor
    return best


def seed_partition(
    cohort: Cohort,
    class_count: int,
    groups: Sequence[Sequence[str]],
    hard_separate: Sequence[Constraint],
    factors: OptimizationFactors,
    weights: StrategyWeights,
    preferred: Optional[dict[str, int]] = None,
) -> SeedResult:
    """
    1. Bundle hard-together groups into units.
    2. Order units: size desc, scarce-value count desc, lowest student id.
    3. Each unit goes to the slot with fewest students among slots holding none of its
       separation partners; ties -> fewest students with the unit's dominant value;
       then lowest slot index.
    4. If every slot holds a partner: smallest slot, violation recorded, separation demoted.
    preferred (warm start): student_id -> slot index; a unit keeps the slot most of its
    members prefer unless that slot holds a partner.
    """
    units = build_units(cohort, groups)
    partners = separation_partners(cohort, hard_separate)
    sep_lookup = {(cohort.index[c.student_a], cohort.index[c.student_b]): c for c in hard_separate}

    scarce = _scarce_codes(cohort, factors)

    def scarce_count(unit: tuple[int, ...]) -> int:
        return sum(
            1
            for factor, codes in scarce.items()
            for i in unit
            if cohort.codes[factor][i] in codes
        )

    order = sorted(units, key=lambda u: (-len(u), -scarce_count(u), u[0]))

    dominant = _dominant_factor(factors, weights)
    dom_counts = np.zeros((class_count, cohort.cardinality(dominant) if dominant else 1), dtype=np.int64)

    class_of = np.full(cohort.size, -1, dtype=np.int64)
    sizes = np.zeros(class_count, dtype=np.int64)
    conflicts: list[Conflict] = []
    demoted: list[Constraint] = []

    for unit in order:
        members = set(unit)
        unit_partners = {p for i in unit for p in partners.get(i, ()) if p not in members}
        forbidden = np.zeros(class_count, dtype=bool)
        for p in unit_partners:
            if class_of[p] >= 0:
                forbidden[class_of[p]] = True

        dom_value = 0
        if dominant is not None:
            dom_value = int(np.argmax(np.bincount(cohort.codes[dominant][list(unit)], minlength=dom_counts.shape[1])))

        slot: Optional[int] = None
        if preferred is not None:
            votes = np.bincount([preferred[cohort.ids[i]] for i in unit], minlength=class_count)
            wanted = int(np.argmax(votes))
            if not forbidden[wanted]:
                slot = wanted
        if slot is None:
            allowed = [k for k in range(class_count) if not forbidden[k]]
            if allowed:
                slot = min(allowed, key=lambda k: (sizes[k], dom_counts[k, dom_value], k))
            else:
                slot = min(range(class_count), key=lambda k: (sizes[k], k))
                for i in unit:
                    for p in sorted(partners.get(i, ())):
                        if p in members or class_of[p] != slot:
                            continue
                        key = (min(i, p), max(i, p))
                        c = sep_lookup[key]
                        demoted.append(c)
                        conflicts.append(
                            Conflict(
                                student_ids=c.pair,
                                kind=ConflictKind.INFEASIBLE_SEPARATION,
                                reason=(
                                    f"No class free of separation partners for {cohort.ids[i]}; "
                                    f"placed with {cohort.ids[p]}"
                                ),
                            )
                        )

        for i in unit:
            class_of[i] = slot
        sizes[slot] += len(unit)
        if dominant is not None:
            for i in unit:
                dom_counts[slot, cohort.codes[dominant][i]] += 1

    for conflict in conflicts:
        logger.warning("Seed conflict %s: %s", conflict.kind.value, conflict.reason)
    logger.debug("Seeded %d units over %d classes, sizes=%s", len(units), class_count, sizes.tolist())

    return SeedResult(
        partition=Partition(cohort, class_count, class_of),
        units=units,
        conflicts=conflicts,
        demoted=demoted,
    )
