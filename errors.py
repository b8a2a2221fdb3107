"""Error kinds raised by the services and rendered as JSON by the app."""


class ApiError(Exception):
    """Base class for errors that map to a structured JSON response."""
    kind = 'error'
    status_code = 400

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        error = {'kind': self.kind, 'message': self.message}
        if self.details:
            error['details'] = self.details
        return {'success': False, 'error': error}


class ValidationError(ApiError):
    kind = 'validation_error'
    status_code = 400


class AuthenticationError(ApiError):
    kind = 'authentication_error'
    status_code = 401


class Forbidden(ApiError):
    kind = 'forbidden'
    status_code = 403


class NotFound(ApiError):
    kind = 'not_found'
    status_code = 404


class Conflict(ApiError):
    kind = 'conflict'
    status_code = 409


class RateLimited(ApiError):
    kind = 'rate_limited'
    status_code = 429


class StorageError(ApiError):
    """Persistence failure. The message shown to callers is always generic."""
    kind = 'storage_error'
    status_code = 500

    def __init__(self, message='A storage error occurred. Please try again.', details=None):
        super().__init__(message, details)


class OAuthError(ApiError):
    kind = 'oauth_error'
    status_code = 502
