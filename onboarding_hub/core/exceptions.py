from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

class InputValidationError(AppException):
    """Malformed input. Named to avoid clashing with pydantic's ValidationError."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )

class DuplicateOnboardingError(AppException):
    def __init__(self, employee_id: int):
        super().__init__(
            message="Onboarding process already exists for this employee",
            status_code=409,
            error_code="DUPLICATE_ONBOARDING",
            details={"employee_id": employee_id}
        )

class DependencyNotSatisfiedError(AppException):
    def __init__(self, step_id: str, pending_dependencies: list):
        super().__init__(
            message=f"Step '{step_id}' has incomplete dependencies: {', '.join(pending_dependencies)}",
            status_code=409,
            error_code="DEPENDENCY_NOT_SATISFIED",
            details={"step_id": step_id, "pending_dependencies": pending_dependencies}
        )

class IllegalTransitionError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="ILLEGAL_TRANSITION",
            details=details
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND"
        )

class ConcurrencyConflictError(AppException):
    def __init__(self, record_id: int):
        super().__init__(
            message="Onboarding record was modified concurrently, please retry",
            status_code=409,
            error_code="CONCURRENT_MODIFICATION",
            details={"record_id": record_id}
        )

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )
