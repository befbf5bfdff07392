import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from onboarding_hub.models.onboarding import (
    AssigneeRole,
    FeedbackType,
    OnboardingStatus,
    StepCategory,
    StepPriority,
    StepStatus,
)
from onboarding_hub.schemas.onboarding import (
    NOTES_MAX_LENGTH,
    ChecklistItem,
    Meeting,
    OnboardingRecord,
    Step,
    StepFeedback,
)


# --- Requests ---

class StepCreate(BaseModel):
    step_id: Optional[str] = None
    title: str = Field(min_length=1)
    description: str = ""
    category: StepCategory
    priority: StepPriority = StepPriority.medium
    estimated_duration_hours: float = Field(gt=0)
    dependencies: List[str] = Field(default_factory=list)
    assigned_to_role: Optional[AssigneeRole] = None
    assigned_to_identity: Optional[int] = None

    def to_step(self) -> Step:
        """New pending step. Unassigned steps belong to the employee."""
        role = self.assigned_to_role
        if role is None and self.assigned_to_identity is None:
            role = AssigneeRole.employee
        return Step(
            step_id=self.step_id or f"step_{uuid.uuid4().hex[:12]}",
            title=self.title.strip(),
            description=self.description.strip(),
            category=self.category,
            priority=self.priority,
            estimated_duration_hours=self.estimated_duration_hours,
            dependencies=list(self.dependencies),
            assigned_to_role=role,
            assigned_to_identity=self.assigned_to_identity,
        )


class OnboardingCreate(BaseModel):
    employee_id: int
    expected_completion_date: date
    start_date: Optional[date] = None
    assigned_buddy_id: Optional[int] = None
    assigned_hr_id: Optional[int] = None
    steps: List[StepCreate] = Field(default_factory=list)
    use_default_template: bool = False


class StepTransitionRequest(BaseModel):
    status: StepStatus
    note: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)


class StepUpdateRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    feedback: Optional[StepFeedback] = None


class FeedbackCreate(BaseModel):
    type: FeedbackType
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=500)

    @field_validator("comment", mode="before")
    @classmethod
    def _strip_comment(cls, value):
        return value.strip() if isinstance(value, str) else value


class HoldRequest(BaseModel):
    on_hold: bool
    reason: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)


class MeetingCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int = Field(gt=0)
    attendees: List[int] = Field(default_factory=list)
    notes: Optional[str] = None

    def to_meeting(self) -> Meeting:
        return Meeting(**self.model_dump())


class ChecklistItemCreate(BaseModel):
    item: str = Field(min_length=1)

    def to_item(self) -> ChecklistItem:
        return ChecklistItem(item=self.item.strip())


class DocumentAttach(BaseModel):
    document_id: int


# --- Responses ---

class OnboardingResponse(OnboardingRecord):
    days_since_start: int
    days_until_expected_completion: int
    next_pending_step_id: Optional[str] = None
    blocked_step_ids: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: OnboardingRecord, today: Optional[date] = None) -> "OnboardingResponse":
        next_step = record.next_pending_step()
        return cls(
            **record.model_dump(),
            days_since_start=record.elapsed_days(today),
            days_until_expected_completion=record.remaining_days(today),
            next_pending_step_id=next_step.step_id if next_step else None,
            blocked_step_ids=[s.step_id for s in record.blocked_steps()],
        )


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class OnboardingListResponse(BaseModel):
    onboardings: List[OnboardingResponse]
    pagination: Pagination


class RecentOnboarding(BaseModel):
    id: int
    employee_id: int
    status: OnboardingStatus
    overall_progress: int


class OnboardingOverview(BaseModel):
    total: int
    completed: int
    in_progress: int
    on_hold: int
    not_started: int
    overdue: int
    average_progress: float


class OnboardingStatsResponse(BaseModel):
    overview: OnboardingOverview
    by_status: Dict[str, int]
    recent: List[RecentOnboarding]


class DefaultTemplateResponse(BaseModel):
    steps: List[Step]
