# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, onboarding, audit_log

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .onboarding import OnboardingRecordRow
from .audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "OnboardingRecordRow",
    "AuditLog",
]
