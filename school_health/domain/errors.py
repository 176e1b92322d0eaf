"""
Error taxonomy for the campaign workflow.

Every failure the services raise derives from HealthCampaignError and carries a
short, user-facing message next to the technical one, so the presentation layer
can render it without knowing the cause.
"""


class HealthCampaignError(Exception):
    """Base class for all domain failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, *, user_message: str | None = None) -> None:
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class DomainValidationError(HealthCampaignError):
    """Input failed validation. Recovered locally, never sent to the server."""

    user_message = "Please correct the highlighted fields."

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = dict(field_errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.field_errors.items())
        super().__init__(f"validation failed: {summary}")


class ConflictError(HealthCampaignError):
    """The operation conflicts with current state and was aborted unchanged."""

    user_message = "This action conflicts with existing data and was not applied."


class AlreadyDecidedError(ConflictError):
    user_message = "A decision has already been recorded for this consent."


class InvalidTransitionError(ConflictError):
    user_message = "The event cannot move to that status."

    def __init__(self, current: str, requested: str, *, reason: str | None = None) -> None:
        self.current = current
        self.requested = requested
        detail = f"cannot transition from {current} to {requested}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class ConcurrencyConflictError(ConflictError):
    user_message = "This record was changed by someone else. Reload and try again."

    def __init__(self, kind: str, record_id: int, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{kind} {record_id} is at version {actual}, expected {expected}"
        )


class NotFoundError(HealthCampaignError):
    user_message = "The requested item may have been deleted."

    def __init__(self, kind: str, record_id: object) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class PermissionDeniedError(HealthCampaignError):
    user_message = "You don't have permission to perform this action."


class UnauthorizedError(PermissionDeniedError):
    user_message = "Your session has expired. Please log in again."


class ForbiddenError(PermissionDeniedError):
    pass


class ServiceUnavailableError(HealthCampaignError):
    """A collaborator (backend, catalog, student directory) could not be reached."""

    user_message = "Unable to connect to the server. Please check your connection."
