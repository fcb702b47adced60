"""
Domain exceptions. Only input validation is fatal; conflicts and infeasible
placements are reported in the OptimizationReport instead.
"""


class ClassPlacementError(Exception):
    """Base error of the placement engine."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(ClassPlacementError, ValueError):
    """Caller supplied input that cannot be optimized (bad class count, empty roster, unknown strategy...)."""

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.field = field
