"""
Onboarding aggregate: the Step value and the Onboarding Record that owns them.

These models are the persisted document and the unit the lifecycle engine
operates on. They carry no database session and can be built in memory.
"""
from datetime import date, datetime, timezone
from graphlib import CycleError, TopologicalSorter
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, model_validator

from onboarding_hub.models.onboarding import (
    AssigneeRole,
    FeedbackType,
    MeetingStatus,
    OnboardingStatus,
    StepCategory,
    StepPriority,
    StepStatus,
)

NOTES_MAX_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepFeedback(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=300)


class Step(BaseModel):
    step_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    category: StepCategory
    priority: StepPriority = StepPriority.medium
    estimated_duration_hours: float = Field(gt=0)
    dependencies: List[str] = Field(default_factory=list)
    assigned_to_role: Optional[AssigneeRole] = None
    assigned_to_identity: Optional[int] = None
    status: StepStatus = StepStatus.pending
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    feedback: Optional[StepFeedback] = None

    @model_validator(mode="after")
    def _completed_at_matches_status(self) -> "Step":
        if (self.completed_at is not None) != (self.status == StepStatus.completed):
            raise ValueError(
                f"Step '{self.step_id}': completed_at must be set exactly when the step is completed"
            )
        return self


class FeedbackEntry(BaseModel):
    from_id: int
    type: FeedbackType
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


class Meeting(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int = Field(gt=0)
    attendees: List[int] = Field(default_factory=list)
    status: MeetingStatus = MeetingStatus.scheduled
    notes: Optional[str] = None


class ChecklistItem(BaseModel):
    item: str = Field(min_length=1)
    completed: bool = False
    completed_at: Optional[datetime] = None
    completed_by: Optional[int] = None


def validate_step_graph(steps: Iterable[Step]) -> None:
    """Raises ValueError for duplicate ids, unknown or self dependencies, and cycles."""
    steps = list(steps)
    ids = [s.step_id for s in steps]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate step ids: {', '.join(duplicates)}")

    known = set(ids)
    for step in steps:
        if step.step_id in step.dependencies:
            raise ValueError(f"Step '{step.step_id}' cannot depend on itself")
        unknown = [d for d in step.dependencies if d not in known]
        if unknown:
            raise ValueError(f"Step '{step.step_id}' depends on unknown steps: {', '.join(unknown)}")

    try:
        TopologicalSorter({s.step_id: s.dependencies for s in steps}).prepare()
    except CycleError as e:
        raise ValueError(f"Step dependencies form a cycle: {' -> '.join(e.args[1])}") from e


class OnboardingRecord(BaseModel):
    id: Optional[int] = None
    employee_id: int
    status: OnboardingStatus = OnboardingStatus.not_started
    start_date: date = Field(default_factory=date.today)
    expected_completion_date: date
    actual_completion_date: Optional[datetime] = None
    assigned_hr_id: int
    assigned_buddy_id: Optional[int] = None
    steps: List[Step] = Field(default_factory=list)
    overall_progress: int = Field(default=0, ge=0, le=100)
    feedback: List[FeedbackEntry] = Field(default_factory=list)
    meetings: List[Meeting] = Field(default_factory=list)
    checklist: List[ChecklistItem] = Field(default_factory=list)
    documents: List[int] = Field(default_factory=list)
    completion_notified: bool = False

    @model_validator(mode="after")
    def _check_consistency(self) -> "OnboardingRecord":
        if self.expected_completion_date < self.start_date:
            raise ValueError("expected_completion_date cannot be before start_date")
        validate_step_graph(self.steps)
        return self

    def find_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.steps if s.step_id == step_id), None)

    def next_pending_step(self) -> Optional[Step]:
        return next((s for s in self.steps if s.status == StepStatus.pending), None)

    def blocked_steps(self) -> List[Step]:
        return [s for s in self.steps if s.status == StepStatus.blocked]

    def elapsed_days(self, today: Optional[date] = None) -> int:
        return abs(((today or date.today()) - self.start_date).days)

    def remaining_days(self, today: Optional[date] = None) -> int:
        return (self.expected_completion_date - (today or date.today())).days

    def is_overdue(self, today: Optional[date] = None) -> bool:
        return (
            self.status != OnboardingStatus.completed
            and self.expected_completion_date < (today or date.today())
        )
