"""
Error taxonomy for the CMS.

Every error carries the HTTP status it maps to; the FastAPI exception handler
in main turns any of them into a `{success: false, error}` envelope.
"""


class APIError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(APIError):
    status_code = 400
    message = "Invalid request"


class DuplicateSlugError(APIError):
    status_code = 400
    message = "Movie with this title already exists"


class NotFoundError(APIError):
    status_code = 404
    message = "Movie not found"


class MissingTokenError(APIError):
    status_code = 401
    message = "Access token required"


class InvalidTokenError(APIError):
    status_code = 403
    message = "Invalid or expired token"


class ForbiddenError(APIError):
    status_code = 403
    message = "Admin access required"


class InvalidCredentialsError(APIError):
    status_code = 401
    message = "Invalid credentials"


class PayloadTooLargeError(APIError):
    status_code = 400
    message = "File too large"


class UnsupportedMediaError(APIError):
    status_code = 400
    message = "Only image files are allowed"
