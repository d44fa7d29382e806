"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Missing, invalid or expired bearer token"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class ForbiddenCodeError(BaseAPIException):
    """Submitted source matched a forbidden pattern"""
    def __init__(self, reason: str):
        super().__init__(
            "Code contains forbidden patterns",
            status_code=403,
            details={"reason": reason}
        )
        self.reason = reason


class UnsupportedLanguageError(BaseAPIException):
    """No runtime registered for the language"""
    def __init__(self, language: str):
        super().__init__(
            f"Unsupported language: {language}",
            status_code=400,
            details={"language": language}
        )
        self.language = language


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NoTestCasesError(BusinessLogicError):
    """Question has no test cases usable for the requested mode"""
    def __init__(self, message: str = "No test cases available"):
        super().__init__(message)


# System Errors
class CodeExecutionError(BaseAPIException):
    """Code execution failed"""
    def __init__(self, message: str = "Code execution failed"):
        super().__init__(message, status_code=500)
