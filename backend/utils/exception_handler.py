"""
DRF exception handler that translates ledger failures into HTTP responses.

Registered as REST_FRAMEWORK['EXCEPTION_HANDLER'] in settings.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from utils.exceptions import (
    LedgerError,
    InvalidInput,
    InsufficientStock,
    NotFound,
    TransactionConflict,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    InsufficientStock: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    TransactionConflict: status.HTTP_409_CONFLICT,
}


def ledger_exception_handler(exc, context):
    """
    Map LedgerError subclasses to a response, keeping the failure kind and message.

    Response body:
        {
            "error": {
                "code": "insufficient_stock",
                "message": "...",
                "retryable": false
            }
        }
    """
    if isinstance(exc, LedgerError):
        http_status = status.HTTP_400_BAD_REQUEST
        for error_class, mapped_status in STATUS_BY_ERROR.items():
            if isinstance(exc, error_class):
                http_status = mapped_status
                break

        view = context.get('view')
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'unknown view'}: {exc.detail}"
        )
        return Response(
            {
                'error': {
                    'code': exc.code,
                    'message': str(exc.detail),
                    'retryable': exc.retryable,
                }
            },
            status=http_status
        )

    return drf_exception_handler(exc, context)
