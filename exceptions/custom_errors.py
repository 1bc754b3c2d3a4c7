class SchedulerError(Exception):
    """Base class for every error raised by the scheduling engine."""

    pass


class StructuralError(SchedulerError):
    """Raised when an input definition is malformed and can never reach the solver."""

    pass


class InvalidConditionError(StructuralError):
    """Raised when a condition tree is malformed or a conditionId cannot be resolved."""

    pass


class InvalidPatternError(StructuralError):
    """Raised when a recurrence pattern cannot be expanded."""

    pass


class CycleDetectedError(StructuralError):
    """Raised when links or ordering constraints form a cycle."""

    pass


class ChainDepthExceededError(StructuralError):
    """Raised when a chain of links is deeper than the configured maximum."""

    pass


class DataGapError(StructuralError):
    """Raised when adaptive duration has neither history nor a fallback."""

    pass


class ParseError(SchedulerError, ValueError):
    """Raised when a date, time or date-time string is not well-formed."""

    pass


class UnsatisfiableError(SchedulerError):
    """Raised when the solver proves that no schedule satisfies the links and constraints."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class ScheduleTimeoutError(SchedulerError, TimeoutError):
    """Raised when the search exceeded the caller-supplied time budget."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


# Mapping of custom exceptions to HTTP status codes
CUSTOM_ERRORS = {
    StructuralError: 400,
    InvalidConditionError: 400,
    InvalidPatternError: 400,
    CycleDetectedError: 400,
    ChainDepthExceededError: 400,
    DataGapError: 400,
    ParseError: 400,
    UnsatisfiableError: 422,
    ScheduleTimeoutError: 504,
}
