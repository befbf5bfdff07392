from sqlalchemy import Column, Integer, Date, DateTime, Boolean, JSON, Enum as SQLEnum, ForeignKey
from sqlalchemy.sql import func
import enum
from onboarding_hub.database import Base


class OnboardingStatus(str, enum.Enum):
    not_started = "not-started"
    in_progress = "in-progress"
    completed = "completed"
    on_hold = "on-hold"


class StepStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"
    skipped = "skipped"
    blocked = "blocked"


class StepCategory(str, enum.Enum):
    documentation = "documentation"
    training = "training"
    setup = "setup"
    meeting = "meeting"
    orientation = "orientation"
    compliance = "compliance"


class StepPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class AssigneeRole(str, enum.Enum):
    employee = "Employee"
    buddy = "Buddy"
    hr = "HR"
    it_team = "IT Team"
    manager = "Manager"


class FeedbackType(str, enum.Enum):
    employee = "employee"
    buddy = "buddy"
    hr = "hr"
    manager = "manager"


class MeetingStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"
    rescheduled = "rescheduled"


class OnboardingRecordRow(Base):
    """
    One onboarding aggregate per employee. Steps and auxiliary lists live in
    `document`; the scalar columns mirror it for filtering and uniqueness.
    """
    __tablename__ = "onboarding_records"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    assigned_hr_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_buddy_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(SQLEnum(OnboardingStatus), default=OnboardingStatus.not_started, nullable=False, index=True)
    overall_progress = Column(Integer, default=0, nullable=False)
    expected_completion_date = Column(Date, nullable=False)
    completion_notified = Column(Boolean, default=False, nullable=False)
    document = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Compare-and-swap on every UPDATE
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<OnboardingRecord {self.id} employee={self.employee_id} ({self.status.value})>"
