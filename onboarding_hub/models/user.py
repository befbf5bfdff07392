"""
User Model.
The employee record collaborator: onboarding only references users by id and
updates `onboarding_status` through the employee records gateway.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
import enum
from onboarding_hub.database import Base


class UserRole(str, enum.Enum):
    """
    - ADMIN: full access to every onboarding record
    - HR: creates onboarding records and manages the ones assigned to them
    - EMPLOYEE: self-service access (also acts as a buddy when assigned)
    """
    ADMIN = "admin"
    HR = "hr"
    EMPLOYEE = "employee"


class EmployeeOnboardingStatus(str, enum.Enum):
    not_started = "not-started"
    in_progress = "in-progress"
    completed = "completed"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)

    onboarding_status = Column(
        Enum(EmployeeOnboardingStatus),
        default=EmployeeOnboardingStatus.not_started,
        nullable=False,
    )

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
