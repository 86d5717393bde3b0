# Error taxonomy shared by routes, stores and the delivery pipeline


class DuochatError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.errors = errors

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


class AuthenticationFailure(DuochatError):
    """Missing, invalid or expired session, or a session for a vanished user."""
    status_code = 401
    message = 'Unauthorized'


class ValidationFailure(DuochatError):
    status_code = 400
    message = 'Validation failed'


class NotFound(DuochatError):
    status_code = 404
    message = 'Not found'


class StoreFailure(DuochatError):
    """Persistence unavailable or a constraint was violated.

    The message is always generic; the underlying cause is chained and logged.
    """
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(None)
        self.detail = message
