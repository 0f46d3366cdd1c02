"""Error taxonomy surfaced by the launch scheduler."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error the scheduler surfaces to callers."""

    code = "scheduler_error"
    retryable = False


class ValidationError(SchedulerError, ValueError):
    """Malformed input: quantity out of bounds, unknown lane or resource."""

    code = "validation_error"


class NotFound(SchedulerError, LookupError):
    """Referenced unit or resource does not exist."""

    code = "not_found"


class Unauthorized(SchedulerError):
    """Actor role lacks permission for the requested operation."""

    code = "unauthorized"


class InvalidTransition(SchedulerError):
    """Requested status edge is not defined from the unit's current state."""

    code = "invalid_transition"


class Conflict(SchedulerError):
    """A concurrent write won the optimistic-concurrency race."""

    code = "conflict"
    retryable = True


class ResourceFrozen(SchedulerError):
    """Resource is in a frozen/maintenance state and refuses transitions."""

    code = "resource_frozen"


class StoreUnavailable(SchedulerError):
    """Unit store I/O failed; nothing was applied."""

    code = "store_unavailable"
