"""
Domain exceptions for the warehouse service.

Every error carries the HTTP status the API answers with, so route
handlers can simply let them propagate to the error handler registered
in ``create_app``.
"""


class WMSError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class NotFoundError(WMSError):
    status_code = 404


class ConflictError(WMSError):
    status_code = 409


class ValidationError(WMSError):
    """Raised when a payload fails field validation; ``errors`` maps field -> message."""

    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        payload = super().to_dict()
        if self.errors:
            payload['fields'] = self.errors
        return payload


class WorkflowError(WMSError):
    """An operation that is not allowed in the record's current status."""

    status_code = 409


class PermissionDeniedError(WMSError):
    status_code = 403


class StoreConfigurationError(WMSError):
    status_code = 500
