class CivicLensError(Exception):
    """Base error for the discovery and aggregation core."""

    status_code = 500
    error_type = 'Internal Server Error'

    def __init__(self, message=None):
        super().__init__(message or self.error_type)
        self.message = message or self.error_type


class ValidationError(CivicLensError):
    """Custom validation error exception."""

    status_code = 400
    error_type = 'Validation Error'


class InvalidCoordinate(ValidationError):
    """Latitude/longitude missing, non-numeric or out of range."""

    error_type = 'Invalid Coordinate'


class InvalidParameter(ValidationError):
    """Bad radius, limit, filter value or date range."""

    error_type = 'Invalid Parameter'


class NotFound(CivicLensError):
    status_code = 404
    error_type = 'Not Found'


class PersistenceFailure(CivicLensError):
    """The underlying store rejected or failed a write/read."""

    status_code = 503
    error_type = 'Persistence Failure'


class PermissionDenied(CivicLensError):
    status_code = 403
    error_type = 'Forbidden'
