class AppException(Exception):
    """Base application exception."""

    status_code = 500

    def __init__(self, message: str = ""):
        self.message = message or (self.__doc__ or "").strip()
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception."""

    status_code = 404


class InvalidRequestError(AppException):
    """Request is well-formed but asks for something not allowed."""

    status_code = 400


class ConflictError(AppException):
    """Request conflicts with the current state of the resource."""

    status_code = 409


class ForbiddenError(AppException):
    """Action not permitted for the caller's plan or limits."""

    status_code = 403


class UnauthorizedError(AppException):
    """Caller could not be authenticated."""

    status_code = 401


class TransientError(AppException):
    """Temporary storage or network failure; safe to retry."""

    status_code = 503
