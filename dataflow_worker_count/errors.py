class WorkerCountError(Exception):
    exit_code = 1


class ValidationError(WorkerCountError):
    """Bad, missing or contradictory flags. Raised before any network call."""
    exit_code = 2


class AuthenticationError(WorkerCountError):
    pass


class NotFoundError(WorkerCountError):
    pass


class ApiError(WorkerCountError):
    pass


class NoDataError(WorkerCountError):
    """The lookback window held no autoscaling event with a usable count."""
