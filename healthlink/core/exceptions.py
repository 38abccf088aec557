"""Typed failures raised by the scheduling services.

Each error carries the HTTP status the routing layer answers with, so the
handler registered in ``healthlink.main`` can render any of them without a
lookup table.
"""


class HealthLinkError(Exception):
    status_code = 400
    default_message = 'Request could not be processed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(HealthLinkError):
    status_code = 400
    default_message = 'Invalid input.'


class ForbiddenError(HealthLinkError):
    status_code = 403
    default_message = 'You do not have permission to perform this action.'


class NotFoundError(HealthLinkError):
    status_code = 404
    default_message = 'Resource not found.'


class SlotUnavailableError(HealthLinkError):
    status_code = 409
    default_message = 'This time slot is not available.'


class InvalidTransitionError(HealthLinkError):
    status_code = 409
    default_message = 'This status change is not allowed.'


class ConcurrentUpdateError(HealthLinkError):
    status_code = 409
    default_message = 'The appointment was modified by someone else. Reload and try again.'
