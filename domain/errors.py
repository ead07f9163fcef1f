"""Domain Errors

Every error raised by the domain and application layers is one of these.
The HTTP layer maps ``status_code`` straight onto the response.
"""


class DomainError(Exception):
    """Base class for typed domain failures"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    """Bad input shape or range"""
    status_code = 400


class NotFoundError(DomainError):
    """Referenced entity does not exist"""
    status_code = 404


class AuthError(DomainError):
    """Missing or invalid credentials"""
    status_code = 401


class ForbiddenError(DomainError):
    """Authenticated but not allowed"""
    status_code = 403


class StateError(DomainError, ValueError):
    """Operation not allowed in the current lifecycle state"""
    status_code = 400


class ConflictError(DomainError):
    """Uniqueness, overlap or referential-integrity violation"""
    status_code = 400


class UnexpectedError(DomainError):
    status_code = 500


class NoPriceTierError(ValidationError):
    """No configured price tier covers the requested party size"""

    def __init__(self, people_count: int):
        super().__init__(f"No price range available for {people_count} people")
        self.people_count = people_count
