"""
Domain errors and the JSON error envelope used by every endpoint.

Client errors are rendered as ``{"status": "fail", "message": ...}`` and
server errors as ``{"status": "error", "message": ...}``. Field-level
validation problems are attached under ``details``.
"""

import logging

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidStateError(ValidationError):
    """
    A lifecycle operation is not allowed from the record's current state.

    Raised by offer and machine transitions (accepting a resolved offer,
    renting an unavailable machine, selling a sold machine, ...).
    Views translate it to 409 Conflict.
    """


def validation_details(exc):
    """
    Flatten a Django ValidationError into a JSON-friendly mapping.

    Returns:
        dict: field name -> list of messages
    """
    if hasattr(exc, 'error_dict'):
        return exc.message_dict
    return {'non_field_errors': exc.messages}


def error_message(exc):
    """Human readable single-line message for a Django ValidationError."""
    return ' '.join(str(message) for message in exc.messages)


def error_response(message, status_code=status.HTTP_400_BAD_REQUEST, details=None):
    """
    Build the standard error response.

    Args:
        message: Human readable message
        status_code: HTTP status code
        details: Optional field-level errors

    Returns:
        Response: ``{"status": "fail"|"error", "message": ..., "details"?: ...}``
    """
    body = {
        'status': 'error' if status_code >= 500 else 'fail',
        'message': message,
    }
    if details:
        body['details'] = details
    return Response(body, status=status_code)


def api_exception_handler(exc, context):
    """
    REST framework exception handler producing the marketplace error envelope.

    Handles the errors raised by the framework itself (failed JWT
    authentication, throttling, unknown objects, unsupported methods) so they
    look the same as the errors returned explicitly by the views. Anything
    else is logged and answered with a generic 500.
    """
    response = exception_handler(exc, context)
    view = context.get('view')

    if response is None:
        logger.exception(
            f"Unhandled error. View: {view.__class__.__name__ if view else 'unknown'}, "
            f"Error: {exc.__class__.__name__}"
        )
        return error_response('Something went wrong.', status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = response.data
    if isinstance(data, dict) and 'detail' in data:
        body = {'status': 'fail', 'message': str(data['detail'])}
    else:
        body = {'status': 'fail', 'message': 'Invalid input.', 'details': data}

    if response.status_code >= 500:
        body['status'] = 'error'

    logger.warning(
        f"Request rejected by framework. "
        f"View: {view.__class__.__name__ if view else 'unknown'}, "
        f"Status: {response.status_code}, Message: {body['message']}"
    )

    response.data = body
    return response
