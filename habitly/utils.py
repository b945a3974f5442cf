import logging
import traceback
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.core.exceptions import ValidationError
from django.db.utils import IntegrityError
from django.conf import settings

from .exceptions import HabitlyError

logger = logging.getLogger('habitly')


def custom_exception_handler(exc, context):
    """
    Custom exception handler for DRF that turns Habitly's typed errors into
    consistent error responses and logs exceptions for debugging.
    """
    if isinstance(exc, HabitlyError):
        view = context.get('view')
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'service call'}: {exc.message}"
        )
        return Response(
            {'error': exc.code, 'detail': exc.message},
            status=exc.status_code
        )

    # Call REST framework's default exception handler first to get the standard response
    response = exception_handler(exc, context)

    # If response is None, DRF doesn't handle this exception by default
    if response is None:
        if isinstance(exc, ValidationError):
            response = Response(
                {'error': 'Validation error', 'detail': exc.message_dict if hasattr(exc, 'message_dict') else str(exc)},
                status=status.HTTP_400_BAD_REQUEST
            )
        elif isinstance(exc, IntegrityError):
            response = Response(
                {'error': 'Database integrity error', 'detail': str(exc)},
                status=status.HTTP_400_BAD_REQUEST
            )
        else:
            error_message = str(exc)

            # Log the error with traceback for server debugging
            logger.error(
                f"Uncaught exception: {exc.__class__.__name__}: {error_message}\n"
                f"Traceback: {traceback.format_exc()}"
            )

            # In production, don't expose detailed error information to the client
            if not settings.DEBUG:
                error_message = "An unexpected error occurred. Please try again later."

            response = Response(
                {'error': 'Server error', 'detail': error_message},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    # For already handled exceptions, let's add consistency to the format
    else:
        data = response.data
        error_type = exc.__class__.__name__

        request = context.get('request')
        view = context.get('view')

        logger.error(
            f"Exception in {view.__class__.__name__}: {error_type}: {str(exc)}\n"
            f"Request: {request.method if request else '-'} {request.path if request else '-'}"
        )

        if isinstance(data, list):
            response.data = {'error': error_type, 'detail': data}
        elif isinstance(data, dict):
            if 'detail' in data and len(data) == 1:
                response.data = {'error': error_type, 'detail': data['detail']}
            elif not any(k in data for k in ['error', 'detail']):
                response.data = {'error': error_type, 'detail': data}

    return response
