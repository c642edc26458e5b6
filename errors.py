"""
Failure taxonomy for the shop backend.

Domain modules raise these; main.py turns them into the JSON envelope with
the matching HTTP status.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request data"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Not authorized to access this route. Please login."


class InvalidCredentials(Unauthorized):
    default_message = "Invalid email or password"


class InvalidToken(Unauthorized):
    default_message = "Invalid token"


class TokenExpired(Unauthorized):
    default_message = "Token expired"


class Forbidden(AppError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class ProductNotFound(NotFound):
    default_message = "Product not found"


class Conflict(AppError):
    status_code = 400
    default_message = "Request conflicts with current state"


class DuplicateEmail(Conflict):
    default_message = "User already exists with this email"


class OutOfStock(Conflict):
    default_message = "Product is out of stock or has insufficient quantity"


class InvalidState(Conflict):
    default_message = "Only pending orders can be cancelled"


class Internal(AppError):
    pass
