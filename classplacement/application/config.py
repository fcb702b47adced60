"""
Default configuration for the optimize_classes / evaluate_assignment use cases.
Single place so the API, the CLI and the engine share the same values.
"""

from classplacement.domain.constraints import Factor, OptimizationFactors, SearchConfig, Strategy

DEFAULT_SEED = 42

DEFAULT_STRATEGY = Strategy.BALANCED

# Factors the portal enables when the request does not list any
DEFAULT_FACTORS = OptimizationFactors.of(
    [Factor.GENDER, Factor.ACADEMIC_LEVEL, Factor.BEHAVIOR_LEVEL, Factor.SPECIAL_NEEDS, Factor.CLASS_SIZE]
)

DEFAULT_SEARCH_CONFIG = SearchConfig(
    move_budget=None,
    budget_per_student_class=10,
    stagnation_limit=None,
    swap_probability=0.7,
    candidates_per_step=4,
    size_slack=1,
    seed=DEFAULT_SEED,
    time_limit_s=None,
)

CLASS_ID_PREFIX = "class_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# API
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]
