"""Comment system errors.

Each error carries a stable ``code`` that the HTTP layer maps to a status
code in ``handle_comment_error``.
"""


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentValidationError(CommentError):
    """Input failed a domain rule (page key, link policy, author fields)."""

    def __init__(self, message: str = "body invalid", field: str = "body"):
        self.field = field
        super().__init__(message, "validation_error")


class AuthenticationRequiredError(CommentError):
    """The operation needs a signed-in user."""

    def __init__(self, message: str = "login required"):
        super().__init__(message, "authentication_required")


class OwnershipDeniedError(CommentError):
    """Caller cannot prove ownership of the comment."""

    def __init__(self, message: str = "not allowed to edit this comment"):
        super().__init__(message, "ownership_denied")


class CommentNotFoundError(CommentError):
    """Comment, reply or report does not exist (or is soft-deleted)."""

    def __init__(self, message: str = "comment not found"):
        super().__init__(message, "comment_not_found")


class RateLimitExceededError(CommentError):
    """Too many requests in the current window."""

    def __init__(self, message: str = "too many requests, try again later"):
        super().__init__(message, "rate_limit_exceeded")


class DuplicateReportError(CommentError):
    """The reporter already reported this comment."""

    def __init__(self, message: str = "already reported"):
        super().__init__(message, "duplicate_report")


class UpstreamFailureError(CommentError):
    """Persistence layer failed or timed out."""

    def __init__(self, message: str = "storage unavailable"):
        super().__init__(message, "upstream_failure")
