"""
Employee record collaborator.

Onboarding holds user ids only. Lookups and the completion cascade go through
this gateway so the lifecycle never writes the users table itself.
"""
import logging
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from onboarding_hub.models.user import EmployeeOnboardingStatus, User, UserRole

logger = logging.getLogger(__name__)


class EmployeeRecords(Protocol):
    def exists(self, user_id: int, roles: Optional[Iterable[UserRole]] = None) -> bool:
        ...

    def notify_onboarding_completed(self, employee_id: int) -> None:
        """Idempotent: safe to call again for an employee already marked completed."""
        ...


class UserEmployeeRecords:
    """Gateway backed by the users table of the same database."""

    def __init__(self, db: Session):
        self.db = db

    def exists(self, user_id: int, roles: Optional[Iterable[UserRole]] = None) -> bool:
        query = self.db.query(User.id).filter(User.id == user_id, User.is_active == True)  # noqa: E712
        if roles is not None:
            query = query.filter(User.role.in_(list(roles)))
        return query.first() is not None

    def notify_onboarding_completed(self, employee_id: int) -> None:
        user = self.db.get(User, employee_id)
        if user is None:
            logger.warning(f"Onboarding completed for unknown employee {employee_id}")
            return
        if user.onboarding_status != EmployeeOnboardingStatus.completed:
            user.onboarding_status = EmployeeOnboardingStatus.completed
            logger.info(f"Employee {employee_id} onboarding status set to completed")
