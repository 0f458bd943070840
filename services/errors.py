# FILE: services/errors.py


class LiveReviewError(Exception):
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": type(self).__name__}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LiveReviewError):
    """Malformed or incomplete input. Nothing was written."""

    status_code = 400


class ModerationBlocked(LiveReviewError):
    """Content failed the profanity/spam/blocked-address checks."""

    status_code = 422


class RateLimited(LiveReviewError):
    status_code = 429


class ConflictError(LiveReviewError):
    status_code = 409


class NotFound(LiveReviewError):
    status_code = 404


class BackendError(LiveReviewError):
    """Database or storage failure. Not retried automatically."""

    status_code = 503
