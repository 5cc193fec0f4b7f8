import logging

from django.conf import settings
from django.http import JsonResponse
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

NOT_LOGGED_IN_MESSAGE = "You are not logged in! Please log in to access."
GENERIC_ERROR_MESSAGE = "Something went very wrong!"


def envelope_status(status_code: int) -> str:
    """4xx responses are the client's fault ("fail"), 5xx are ours ("error")."""
    return "fail" if 400 <= status_code < 500 else "error"


def error_payload(message: str, status_code: int, errors=None) -> dict:
    payload = {"status": envelope_status(status_code), "message": message}
    if errors is not None:
        payload["errors"] = errors
    return payload


def error_response(message: str, status_code: int, errors=None) -> Response:
    return Response(error_payload(message, status_code, errors), status=status_code)


def _first_message(detail) -> str:
    # Serializer errors nest as {field: [ErrorDetail, ...]} or [ErrorDetail, ...]
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return "Invalid input."
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else "Invalid input."
    return str(detail)


def api_exception_handler(exc, context):
    """
    Single error boundary for every DRF view.

    Formats framework exceptions into the {status, message} envelope and turns
    anything unexpected into a 500 without leaking internals outside DEBUG.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled error in %s", view.__class__.__name__ if view else "view",
            exc_info=exc,
        )
        message = str(exc) if settings.DEBUG else GENERIC_ERROR_MESSAGE
        return error_response(message, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, exceptions.NotAuthenticated):
        message = NOT_LOGGED_IN_MESSAGE
    else:
        message = _first_message(response.data)

    errors = None
    if isinstance(exc, exceptions.ValidationError):
        errors = response.data

    response.data = error_payload(message, response.status_code, errors)
    return response


def not_found_view(request, exception=None):
    return JsonResponse(
        error_payload(
            f"Can't find {request.path} on this server!", status.HTTP_404_NOT_FOUND
        ),
        status=status.HTTP_404_NOT_FOUND,
    )


def server_error_view(request):
    return JsonResponse(
        error_payload(GENERIC_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
