"""
Domain configuration: balance factors, strategy weight vectors, search parameters.
Frozen dataclasses and enums only. No FastAPI.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from classplacement.domain.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

# Factors the portal can send that have no scoring model yet.
UNSCORED_FACTORS = frozenset({"teacherCompatibility"})


class Factor(str, Enum):
    GENDER = "gender"
    ACADEMIC_LEVEL = "academicLevel"
    BEHAVIOR_LEVEL = "behaviorLevel"
    SPECIAL_NEEDS = "specialNeeds"
    CLASS_SIZE = "classSize"

    @property
    def is_categorical(self) -> bool:
        return self is not Factor.CLASS_SIZE


@dataclass(frozen=True)
class OptimizationFactors:
    """Enabled balance dimensions. Disabled factors are not scored at all."""
    enabled: frozenset[Factor]

    @classmethod
    def of(cls, factors: Iterable[Factor]) -> "OptimizationFactors":
        return cls(enabled=frozenset(factors))

    @classmethod
    def all(cls) -> "OptimizationFactors":
        return cls(enabled=frozenset(Factor))

    @classmethod
    def parse(cls, values: Iterable["Factor | str"]) -> "OptimizationFactors":
        """Factor names as sent by the portal. Unscored factors are dropped, unknown ones rejected."""
        out: list[Factor] = []
        for value in values:
            if isinstance(value, Factor):
                out.append(value)
                continue
            if value in UNSCORED_FACTORS:
                logger.warning("Factor %r is not scored and will be ignored", value)
                continue
            try:
                out.append(Factor(value))
            except ValueError:
                raise InvalidInputError(
                    f"Unknown factor {value!r}; allowed: {[f.value for f in Factor]}",
                    field="factors",
                ) from None
        return cls.of(out)

    def ordered(self) -> list[Factor]:
        """Enabled factors in declaration order (stable for reports)."""
        return [f for f in Factor if f in self.enabled]

    @property
    def categorical(self) -> list[Factor]:
        return [f for f in self.ordered() if f.is_categorical]

    def __contains__(self, factor: Factor) -> bool:
        return factor in self.enabled


REQUESTS_WEIGHT_KEY = "requests"


@dataclass(frozen=True)
class StrategyWeights:
    gender: float = 1.0
    academic_level: float = 1.0
    behavior_level: float = 1.0
    special_needs: float = 1.0
    class_size: float = 1.0
    requests: float = 1.0

    def for_factor(self, factor: Factor) -> float:
        return {
            Factor.GENDER: self.gender,
            Factor.ACADEMIC_LEVEL: self.academic_level,
            Factor.BEHAVIOR_LEVEL: self.behavior_level,
            Factor.SPECIAL_NEEDS: self.special_needs,
            Factor.CLASS_SIZE: self.class_size,
        }[factor]

    def with_overrides(self, overrides: Optional[dict[str, float]]) -> "StrategyWeights":
        """
        Replace individual weights. Keys are factor names ("gender", "academicLevel", ...)
        or "requests". Weights must be >= 0.
        """
        if not overrides:
            return self
        fields = {
            Factor.GENDER.value: "gender",
            Factor.ACADEMIC_LEVEL.value: "academic_level",
            Factor.BEHAVIOR_LEVEL.value: "behavior_level",
            Factor.SPECIAL_NEEDS.value: "special_needs",
            Factor.CLASS_SIZE.value: "class_size",
            REQUESTS_WEIGHT_KEY: "requests",
        }
        changes: dict[str, float] = {}
        for key, value in overrides.items():
            if key not in fields:
                raise InvalidInputError(f"Unknown weight {key!r}; allowed: {sorted(fields)}", field="weights")
            value = float(value)
            if value < 0:
                raise InvalidInputError(f"Weight {key!r} must be >= 0, got {value}", field="weights")
            changes[fields[key]] = value
        return replace(self, **changes)


class Strategy(str, Enum):
    BALANCED = "balanced"
    ACADEMIC = "academic"
    BEHAVIOR = "behavior"
    REQUESTS = "requests"

    @property
    def weights(self) -> StrategyWeights:
        return _STRATEGY_WEIGHTS[self]

    @classmethod
    def parse(cls, value: "Strategy | str") -> "Strategy":
        if isinstance(value, Strategy):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(
                f"Unknown strategy {value!r}; allowed: {[s.value for s in cls]}",
                field="strategy",
            ) from None


_STRATEGY_WEIGHTS: dict[Strategy, StrategyWeights] = {
    Strategy.BALANCED: StrategyWeights(),
    Strategy.ACADEMIC: StrategyWeights(academic_level=3.0),
    Strategy.BEHAVIOR: StrategyWeights(behavior_level=3.0),
    Strategy.REQUESTS: StrategyWeights(
        gender=0.5,
        academic_level=0.5,
        behavior_level=0.5,
        special_needs=0.5,
        class_size=0.5,
        requests=3.0,
    ),
}


@dataclass(frozen=True)
class SearchConfig:
    # None = students * classes * budget_per_student_class
    move_budget: Optional[int] = None
    budget_per_student_class: int = 10
    # None = move_budget // 10 evaluated moves without an accepted move
    stagnation_limit: Optional[int] = None
    swap_probability: float = 0.7
    candidates_per_step: int = 4
    # class sizes must stay within [floor(n/k) - size_slack, target + size_slack]
    size_slack: int = 1
    seed: int = 42
    time_limit_s: Optional[float] = None

    def resolve_budget(self, student_count: int, class_count: int) -> int:
        if self.move_budget is not None:
            return max(0, self.move_budget)
        return max(1, student_count * class_count * self.budget_per_student_class)

    def resolve_stagnation(self, budget: int) -> int:
        if self.stagnation_limit is not None:
            return max(1, self.stagnation_limit)
        return max(1, budget // 10)
