"""
Local search. Hill climbing with randomized relocation / swap sampling over placement
units, scored by the balance scorer. Seeded numpy Generator -> reproducible runs.
Every candidate is previewed on a scratch copy; the working partition only changes on accept.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from classplacement.domain.constraints import OptimizationFactors, SearchConfig, StrategyWeights
from classplacement.domain.evaluation import ScoreCard, score_partition
from classplacement.domain.models import Constraint, SearchStats
from classplacement.domain.objective_function import SoftConstraintIndex, compute_priority_satisfaction
from classplacement.domain.partition import Partition

logger = logging.getLogger(__name__)

TERMINATION_BUDGET = "budget"
TERMINATION_STAGNATION = "stagnation"
TERMINATION_CANCELLED = "cancelled"
TERMINATION_DEADLINE = "deadline"
TERMINATION_NO_MOVES = "no_moves"

_EPS = 1e-9

# (unit index, destination class)
Move = tuple[int, int]


@dataclass
class SearchOutcome:
    partition: Partition
    card: ScoreCard
    stats: SearchStats


@dataclass
class _Candidate:
    moves: list[Move]
    preview: Partition
    card: ScoreCard
    delta: float
    size_gain: int
    priority_gain: int
    ids: tuple[str, ...]

    def sort_key(self) -> tuple:
        bucket = self.delta if abs(self.delta) > _EPS else 0.0
        return (-bucket, -self.size_gain, -self.priority_gain, self.ids)

    def acceptable(self) -> bool:
        if self.delta > _EPS:
            return True
        if self.delta < 0:
            return False
        return self.size_gain > 0 or (self.size_gain == 0 and self.priority_gain > 0)


class LocalSearch:
    def __init__(
        self,
        units: Sequence[tuple[int, ...]],
        hard_separate: Sequence[Constraint],
        factors: OptimizationFactors,
        weights: StrategyWeights,
        target_size: int,
        soft: SoftConstraintIndex,
        config: SearchConfig,
    ):
        self.units = list(units)
        self.factors = factors
        self.weights = weights
        self.target_size = target_size
        self.soft = soft
        self.config = config
        self.rng = np.random.default_rng(config.seed)
        self._hard_separate = list(hard_separate)

    def _score(self, partition: Partition) -> ScoreCard:
        return score_partition(partition, self.factors, self.weights, self.target_size, self.soft)

    def _unit_partners(self, partition: Partition) -> list[set[int]]:
        index = partition.cohort.index
        by_student: dict[int, set[int]] = {}
        for c in self._hard_separate:
            a, b = index[c.student_a], index[c.student_b]
            by_student.setdefault(a, set()).add(b)
            by_student.setdefault(b, set()).add(a)
        out: list[set[int]] = []
        for unit in self.units:
            members = set(unit)
            out.append({p for i in unit for p in by_student.get(i, ()) if p not in members})
        return out

    def _sample(self, unit_class: np.ndarray, class_count: int) -> Optional[list[Move]]:
        u = int(self.rng.integers(len(self.units)))
        a = int(unit_class[u])
        if self.rng.random() < self.config.swap_probability:
            others = np.flatnonzero(unit_class != a)
            if len(others) == 0:
                return None
            v = int(others[int(self.rng.integers(len(others)))])
            return [(u, int(unit_class[v])), (v, a)]
        dest = int(self.rng.integers(class_count - 1))
        if dest >= a:
            dest += 1
        return [(u, dest)]

    def run(self, partition: Partition, cancel_event: Optional[threading.Event] = None) -> SearchOutcome:
        """
        1. Score the seed.
        2. Until budget, stagnation, cancellation or deadline: sample candidates_per_step
           moves, drop infeasible ones, preview + score the rest, apply the best if it
           improves (or ties while reducing size imbalance / raising soft priority).
        3. Return the working partition; it is always the best seen.
        """
        cfg = self.config
        n, k = partition.cohort.size, partition.class_count
        budget = cfg.resolve_budget(n, k)
        stagnation_limit = cfg.resolve_stagnation(budget)
        min_size = max(0, n // k - cfg.size_slack)
        max_size = self.target_size + cfg.size_slack
        deadline = time.monotonic() + cfg.time_limit_s if cfg.time_limit_s is not None else None

        current = partition.copy()
        card = self._score(current)
        seed_score = card.overall
        current_priority = compute_priority_satisfaction(current, self.soft)
        current_imbalance = current.size_imbalance()
        unit_class = np.array([current.class_of[u[0]] for u in self.units], dtype=np.int64)
        unit_partners = self._unit_partners(current)
        ids = current.cohort.ids

        def outside(size: int) -> int:
            return max(0, min_size - size, size - max_size)

        def feasible(moves: list[Move]) -> bool:
            new_sizes = current.sizes.copy()
            new_class: dict[int, int] = {}
            for u, dest in moves:
                new_sizes[unit_class[u]] -= len(self.units[u])
                new_sizes[dest] += len(self.units[u])
                for i in self.units[u]:
                    new_class[i] = dest
            for c in {int(unit_class[u]) for u, _ in moves} | {d for _, d in moves}:
                old, new = int(current.sizes[c]), int(new_sizes[c])
                if outside(new) > 0 and outside(new) >= outside(old):
                    return False
            for u, dest in moves:
                for p in unit_partners[u]:
                    if new_class.get(p, int(current.class_of[p])) == dest:
                        return False
            return True

        evaluated = 0
        accepted = 0
        since_improvement = 0
        termination = TERMINATION_BUDGET

        if k < 2 or len(self.units) < 2:
            termination = TERMINATION_NO_MOVES
            budget = 0

        while evaluated < budget:
            if cancel_event is not None and cancel_event.is_set():
                termination = TERMINATION_CANCELLED
                break
            if deadline is not None and time.monotonic() >= deadline:
                termination = TERMINATION_DEADLINE
                break
            if since_improvement >= stagnation_limit:
                termination = TERMINATION_STAGNATION
                break

            candidates: list[_Candidate] = []
            for _ in range(max(1, cfg.candidates_per_step)):
                if evaluated >= budget:
                    break
                evaluated += 1
                since_improvement += 1
                moves = self._sample(unit_class, k)
                if moves is None or not feasible(moves):
                    continue
                preview = current.preview([(self.units[u], dest) for u, dest in moves])
                preview_card = self._score(preview)
                candidates.append(
                    _Candidate(
                        moves=moves,
                        preview=preview,
                        card=preview_card,
                        delta=preview_card.overall - card.overall,
                        size_gain=current_imbalance - preview.size_imbalance(),
                        priority_gain=compute_priority_satisfaction(preview, self.soft) - current_priority,
                        ids=tuple(sorted(ids[i] for u, _ in moves for i in self.units[u])),
                    )
                )

            if not candidates:
                continue
            best = min(candidates, key=_Candidate.sort_key)
            if not best.acceptable():
                continue

            current = best.preview
            card = best.card
            current_priority += best.priority_gain
            current_imbalance -= best.size_gain
            for u, dest in best.moves:
                unit_class[u] = dest
            accepted += 1
            since_improvement = 0
            logger.debug("Accepted move %s delta=%.6f score=%.4f", best.ids, best.delta, card.overall)

        logger.debug(
            "Local search finished: %s after %d evaluated / %d accepted moves", termination, evaluated, accepted
        )
        return SearchOutcome(
            partition=current,
            card=card,
            stats=SearchStats(
                seed_score=seed_score,
                moves_evaluated=evaluated,
                moves_accepted=accepted,
                termination=termination,
                random_seed=cfg.seed,
            ),
        )


def run_local_search(
    partition: Partition,
    units: Sequence[tuple[int, ...]],
    hard_separate: Sequence[Constraint],
    factors: OptimizationFactors,
    weights: StrategyWeights,
    target_size: int,
    soft: SoftConstraintIndex,
    config: SearchConfig,
    cancel_event: Optional[threading.Event] = None,
) -> SearchOutcome:
    search = LocalSearch(units, hard_separate, factors, weights, target_size, soft, config)
    return search.run(partition, cancel_event=cancel_event)
