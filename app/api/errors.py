from fastapi import status
from fastapi.responses import JSONResponse

from app.core.errors import ContentNotFoundError, ErrorKind, UserNotFoundError, error_kind
from app.models.recommendation import ErrorResponse


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, message=message).model_dump())


def recommendation_error_response(exc: BaseException) -> JSONResponse:
    """Translate a pipeline failure into its HTTP status and public error body."""
    kind = error_kind(exc)
    if kind == ErrorKind.NOT_FOUND:
        if isinstance(exc, ContentNotFoundError):
            return error_response(
                status.HTTP_404_NOT_FOUND, "content_not_found", f"Content with ID {exc.content_id} does not exist"
            )
        if isinstance(exc, UserNotFoundError):
            return error_response(
                status.HTTP_404_NOT_FOUND, "user_not_found", f"User with ID {exc.user_id} does not exist"
            )
        return error_response(status.HTTP_404_NOT_FOUND, "not_found", "Resource not found")
    if kind == ErrorKind.MODEL_UNAVAILABLE:
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, "model_unavailable", "Recommendation model is temporarily unavailable"
        )
    if kind == ErrorKind.TIMEOUT:
        return error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE, "request_timeout", "Request timed out, please try again"
        )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "An unexpected error occurred")
