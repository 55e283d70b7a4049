"""
Custom error classes and error handling utilities for the staffing capacity API
"""

from datetime import datetime
from flask import jsonify
from werkzeug.exceptions import HTTPException
import logging

# Set up logger
logger = logging.getLogger(__name__)


class StaffingError(Exception):
    """Base exception class for the staffing capacity application"""

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ValidationError(StaffingError):
    """Raised when input validation fails"""

    def __init__(self, message, field=None):
        super().__init__(message, 400, {'field': field} if field else None)
        self.field = field


class NotFoundError(StaffingError):
    """Raised when a requested resource is not found"""

    def __init__(self, resource_type, resource_id=None):
        message = f"{resource_type} not found"
        if resource_id:
            message += f" with id {resource_id}"
        super().__init__(message, 404)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(StaffingError):
    """Raised when an operation would result in a scheduling conflict"""

    def __init__(self, message, conflicts=None):
        self.conflicts = list(conflicts or [])
        payload = None
        if self.conflicts:
            payload = {'conflicts': [_conflict_dict(c) for c in self.conflicts]}
        super().__init__(message, 409, payload)


class InvalidTransitionError(StaffingError):
    """Raised when an assignment status change is not allowed"""

    def __init__(self, current, requested):
        message = f"Cannot transition assignment from '{current}' to '{requested}'"
        super().__init__(message, 409, {'current_status': current, 'requested_status': requested})
        self.current = current
        self.requested = requested


class DegenerateWindowError(StaffingError, ZeroDivisionError):
    """Raised when a date window contains no working days"""

    def __init__(self, start_date, end_date):
        message = f"Date window {start_date} to {end_date} contains no working days"
        super().__init__(message, 422, {
            'start_date': start_date.isoformat() if start_date else None,
            'end_date': end_date.isoformat() if end_date else None
        })


class BusinessLogicError(StaffingError):
    """Raised when business logic constraints are violated"""

    def __init__(self, message):
        super().__init__(message, 422)  # Unprocessable Entity


def _conflict_dict(conflict):
    return conflict.to_dict() if hasattr(conflict, 'to_dict') else conflict


def register_error_handlers(app):
    """Register error handlers with the Flask app"""

    @app.errorhandler(StaffingError)
    def handle_staffing_error(error):
        """Handle custom staffing errors"""
        logger.warning(f"Staffing Error: {error.message}", extra={
            'status_code': error.status_code,
            'payload': error.payload
        })

        response = {
            'error': {
                'type': error.__class__.__name__,
                'message': error.message
            }
        }

        if error.payload:
            response['error']['details'] = error.payload

        return jsonify(response), error.status_code

    @app.errorhandler(400)
    def handle_bad_request(error):
        """Handle 400 Bad Request errors"""
        logger.warning(f"Bad Request: {error.description}")
        return jsonify({
            'error': {
                'type': 'BadRequest',
                'message': error.description or 'Bad request'
            }
        }), 400

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 Not Found errors"""
        logger.info(f"Not Found: {error.description}")
        return jsonify({
            'error': {
                'type': 'NotFound',
                'message': error.description or 'Resource not found'
            }
        }), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        """Handle 405 Method Not Allowed errors"""
        logger.warning(f"Method Not Allowed: {error.description}")
        return jsonify({
            'error': {
                'type': 'MethodNotAllowed',
                'message': 'Method not allowed for this endpoint'
            }
        }), 405

    @app.errorhandler(422)
    def handle_unprocessable_entity(error):
        """Handle 422 Unprocessable Entity errors"""
        logger.warning(f"Unprocessable Entity: {error.description}")
        return jsonify({
            'error': {
                'type': 'UnprocessableEntity',
                'message': error.description or 'Request could not be processed'
            }
        }), 422

    @app.errorhandler(429)
    def handle_rate_limited(error):
        """Handle 429 Too Many Requests errors"""
        logger.warning(f"Rate limit exceeded: {error.description}")
        return jsonify({
            'error': {
                'type': 'TooManyRequests',
                'message': error.description or 'Rate limit exceeded'
            }
        }), 429

    @app.errorhandler(500)
    def handle_internal_server_error(error):
        """Handle 500 Internal Server Error"""
        logger.error(f"Internal Server Error: {error.description}", exc_info=True)
        return jsonify({
            'error': {
                'type': 'InternalServerError',
                'message': 'An unexpected error occurred. Please try again later.'
            }
        }), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """Handle unexpected errors"""
        if isinstance(error, HTTPException):
            return error
        logger.error(f"Unexpected Error: {str(error)}", exc_info=True)
        return jsonify({
            'error': {
                'type': 'UnexpectedError',
                'message': 'An unexpected error occurred. Please contact support if this persists.'
            }
        }), 500


def validate_required(data, fields):
    """Validate that required fields are present in data"""
    if data is None:
        raise ValidationError("Request body is required")

    missing = []
    for field in fields:
        if field not in data or data[field] is None or (isinstance(data[field], str) and data[field].strip() == ''):
            missing.append(field)

    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_date_range(start_date, end_date, start_field="start_date", end_field="end_date"):
    """Validate date range logic; a single-day range is allowed"""
    if start_date and end_date:
        if end_date < start_date:
            raise ValidationError(f"{end_field} must not be before {start_field}", end_field)


def validate_positive_number(value, field_name, maximum=None):
    """Validate that a value is a positive number, optionally below a ceiling"""
    try:
        num = float(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a valid number", field_name)
    if num <= 0:
        raise ValidationError(f"{field_name} must be a positive number", field_name)
    if maximum is not None and num > maximum:
        raise ValidationError(f"{field_name} must not exceed {maximum}", field_name)
    return num


def validate_enum(value, allowed_values, field_name):
    """Validate that a value is in an allowed set"""
    if value not in allowed_values:
        raise ValidationError(f"{field_name} must be one of: {', '.join(allowed_values)}", field_name)


def parse_date(value, field_name):
    """Parse an ISO date string (or pass through a date) for a named field"""
    if value is None or value == '':
        raise ValidationError(f"{field_name} is required", field_name)
    if hasattr(value, 'isoformat') and not isinstance(value, str):
        return value.date() if isinstance(value, datetime) else value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        raise ValidationError(f"Invalid date format for {field_name}. Use YYYY-MM-DD", field_name)


def safe_db_operation(operation_func, error_message="Database operation failed"):
    """Safely execute database operations with error handling"""
    from db import db

    try:
        return operation_func()
    except StaffingError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Database operation failed: {str(e)}")
        raise StaffingError(error_message, 500) from e
