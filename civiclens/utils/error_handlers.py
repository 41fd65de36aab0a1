from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from flask_jwt_extended.exceptions import JWTExtendedException

from civiclens import db
from civiclens.utils.exceptions import CivicLensError


def register_error_handlers(app):
    """Register error handlers for the Flask application."""

    @app.errorhandler(CivicLensError)
    def handle_civiclens_error(error):
        """Handle validation, lookup and persistence errors raised by the core."""
        if error.status_code >= 500:
            app.logger.error(f'{error.error_type}: {error.message}')
        return create_error_response(error.error_type, error.message, error.status_code)

    @app.errorhandler(400)
    def handle_bad_request(error):
        """Handle bad request errors."""
        return create_error_response(
            'Bad Request',
            'The request could not be understood or was missing required parameters',
            400
        )

    @app.errorhandler(401)
    def handle_unauthorized(error):
        """Handle unauthorized errors."""
        return create_error_response('Unauthorized', 'Authentication is required to access this resource', 401)

    @app.errorhandler(403)
    def handle_forbidden(error):
        """Handle forbidden errors."""
        return create_error_response('Forbidden', 'You do not have permission to access this resource', 403)

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle not found errors."""
        return create_error_response('Not Found', 'The requested resource was not found', 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        """Handle method not allowed errors."""
        return create_error_response(
            'Method Not Allowed',
            f'The {request.method} method is not allowed for this endpoint',
            405
        )

    @app.errorhandler(429)
    def handle_rate_limit_exceeded(error):
        """Handle rate limit exceeded errors."""
        return create_error_response(
            'Rate Limit Exceeded',
            'Too many requests. Please try again later',
            429,
            retry_after=getattr(error, 'retry_after', None)
        )

    @app.errorhandler(500)
    def handle_internal_server_error(error):
        """Handle internal server errors."""
        app.logger.error(f'Internal Server Error: {error}')
        return create_error_response('Internal Server Error', 'An internal server error occurred', 500)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        """Handle database integrity errors."""
        db.session.rollback()
        app.logger.error(f'Database Integrity Error: {error}')

        error_message = str(error.orig).lower()
        if 'unique' in error_message or 'duplicate key value' in error_message:
            message = 'A record with this information already exists'
        elif 'foreign key' in error_message:
            message = 'Referenced record does not exist'
        else:
            message = 'Database constraint violation'

        return create_error_response('Database Constraint Violation', message, 409)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        """Store failures on the read path surface as persistence failures."""
        db.session.rollback()
        app.logger.error(f'Database Error: {error}')
        return create_error_response('Persistence Failure', 'A database error occurred', 503)

    @app.errorhandler(JWTExtendedException)
    def handle_jwt_exceptions(error):
        """Handle JWT related exceptions."""
        app.logger.warning(f'JWT Error: {error}')

        error_type = type(error).__name__

        if 'InvalidHeader' in error_type:
            message = 'Invalid authorization header'
        elif 'NoAuthorization' in error_type:
            message = 'Authorization token is required'
        elif 'RevokedToken' in error_type:
            message = 'Token has been revoked'
        else:
            message = 'Authentication error'

        return create_error_response('Authentication Error', message, 401)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        """Handle generic HTTP exceptions."""
        return create_error_response(error.name, error.description, error.code)

    @app.errorhandler(Exception)
    def handle_generic_exception(error):
        """Handle any unhandled exceptions."""
        app.logger.error(f'Unhandled Exception: {error}', exc_info=True)

        # Don't expose internal errors in production
        if app.config.get('DEBUG'):
            message = str(error)
        else:
            message = 'An unexpected error occurred'

        return create_error_response('Internal Server Error', message, 500)


def create_error_response(error_type, message, status_code=400, **kwargs):
    """Create a standardized error response."""
    response = {
        'error': error_type,
        'message': message,
        'status_code': status_code
    }
    response.update(kwargs)
    return jsonify(response), status_code


def create_success_response(data=None, message=None, status_code=200, **kwargs):
    """Create a standardized success response."""
    response = {
        'success': True,
        'status_code': status_code
    }

    if message:
        response['message'] = message

    if data is not None:
        response['data'] = data

    response.update(kwargs)
    return jsonify(response), status_code
