from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MODEL_UNAVAILABLE = "model_unavailable"
    TIMEOUT = "timeout"
    CACHE = "cache"
    INTERNAL = "internal"


class RecommendationError(Exception):
    """
    Base class for every failure the recommendation pipeline raises.
    Callers classify on `kind`, never on the message text.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def with_context(self, stage: str) -> "RecommendationError":
        """Return a copy of this error of the same class with `stage` prefixed to the message."""
        wrapped = type(self).__new__(type(self))
        RecommendationError.__init__(wrapped, f"{stage}: {self.message}" if self.message else stage)
        wrapped.__dict__.update({k: v for k, v in self.__dict__.items() if k != "message"})
        wrapped.__cause__ = self
        return wrapped

    def __str__(self) -> str:
        return self.message


class UserNotFoundError(RecommendationError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, user_id: int):
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class ContentNotFoundError(RecommendationError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, content_id: int):
        super().__init__(f"content {content_id} not found")
        self.content_id = content_id


class ModelUnavailableError(RecommendationError):
    kind = ErrorKind.MODEL_UNAVAILABLE


class RequestTimeoutError(RecommendationError):
    kind = ErrorKind.TIMEOUT


class CacheError(RecommendationError):
    kind = ErrorKind.CACHE


class RepositoryError(RecommendationError):
    kind = ErrorKind.INTERNAL


def error_kind(exc: BaseException) -> ErrorKind:
    """Kind of any exception; anything outside the taxonomy is internal."""
    if isinstance(exc, RecommendationError):
        return exc.kind
    return ErrorKind.INTERNAL
