class AppError(Exception):
    """Base for every failure surfaced to API callers."""

    code = "internal_error"
    status_code = 500
    default_message = "Unexpected failure"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid input"


class AuthError(AppError):
    code = "auth_error"
    status_code = 401
    default_message = "Invalid token"


class AuthorizationError(AppError):
    code = "authorization_error"
    status_code = 403
    default_message = "Insufficient permissions"


class NotEnrolled(AuthorizationError):
    code = "not_enrolled"
    default_message = "You are not enrolled in this class"


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class TokenNotFound(NotFoundError):
    code = "token_not_found"
    default_message = "The QR code is not valid"


class ConflictError(AppError):
    code = "conflict"
    status_code = 409
    default_message = "Conflicting state"


class AlreadyEnrolled(ConflictError):
    code = "already_enrolled"
    default_message = "Student is already enrolled in this class"


class AlreadyMarked(ConflictError):
    code = "already_marked"
    default_message = "You have already marked attendance for this class today"


class TokenExpired(ConflictError):
    code = "token_expired"
    default_message = "The QR code has expired"


class EmailTaken(ConflictError):
    code = "email_taken"
    default_message = "Email already registered"


class StudentCodeTaken(ConflictError):
    code = "student_code_taken"
    default_message = "Student code already in use"


class InternalError(AppError):
    pass
