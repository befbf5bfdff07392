"""
Lifecycle Engine for onboarding records.

Every operation checks authorization and validity before it touches the
record, so a rejected call leaves the record exactly as it was. Operations
mutate the record in place and finish with `recompute()`; persisting the
result is the caller's job.

Step state machine:

    pending ──> in-progress ──> completed
       │  │          │
       │  └─> blocked <┘     (HR/admin, reason required)
       └────> skipped        (HR/admin)

    blocked ──> pending | in-progress   (HR/admin)

completed and skipped are terminal.
"""
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from onboarding_hub.core.exceptions import (
    AccessDeniedError,
    DependencyNotSatisfiedError,
    IllegalTransitionError,
    InputValidationError,
    NotFoundError,
)
from onboarding_hub.models.onboarding import OnboardingStatus, StepStatus
from onboarding_hub.schemas.onboarding import (
    NOTES_MAX_LENGTH,
    ChecklistItem,
    FeedbackEntry,
    Meeting,
    OnboardingRecord,
    Step,
    StepFeedback,
    utcnow,
    validate_step_graph,
)
from onboarding_hub.services.access_policy import (
    Actor,
    RecordField,
    can_mutate,
    can_read,
    is_record_manager,
)

ALLOWED_TRANSITIONS: Dict[StepStatus, FrozenSet[StepStatus]] = {
    StepStatus.pending: frozenset({StepStatus.in_progress, StepStatus.blocked, StepStatus.skipped}),
    StepStatus.in_progress: frozenset({StepStatus.completed, StepStatus.blocked}),
    StepStatus.blocked: frozenset({StepStatus.pending, StepStatus.in_progress}),
    StepStatus.completed: frozenset(),
    StepStatus.skipped: frozenset(),
}

# Targets reserved to the record's HR or an admin
MANAGER_ONLY_TARGETS = frozenset({StepStatus.blocked, StepStatus.skipped})


def compute_progress(steps: List[Step]) -> int:
    total = len(steps)
    if total == 0:
        return 0
    completed = sum(1 for s in steps if s.status == StepStatus.completed)
    # round(100 * completed / total) with halves rounded up
    return (200 * completed + total) // (2 * total)


def recompute(record: OnboardingRecord, now: Optional[datetime] = None) -> bool:
    """
    Refresh overall_progress and the derived status.

    Returns True when this call moved the record into `completed`.
    """
    was_completed = record.status == OnboardingStatus.completed
    record.overall_progress = compute_progress(record.steps)

    if record.overall_progress == 100:
        record.status = OnboardingStatus.completed
        if record.actual_completion_date is None:
            record.actual_completion_date = now or utcnow()
    elif record.overall_progress > 0 and record.status not in (
        OnboardingStatus.completed,
        OnboardingStatus.on_hold,
    ):
        record.status = OnboardingStatus.in_progress

    return not was_completed and record.status == OnboardingStatus.completed


def _require_participant(record: OnboardingRecord, actor: Actor) -> None:
    # Outsiders get the same answer whether or not a step id exists
    if not can_read(actor, record):
        raise AccessDeniedError("You are not allowed to modify this onboarding")


def _get_step(record: OnboardingRecord, step_id: str) -> Step:
    step = record.find_step(step_id)
    if step is None:
        raise NotFoundError(f"Step '{step_id}' not found")
    return step


def _clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = note.strip()
    if len(note) > NOTES_MAX_LENGTH:
        raise InputValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    return note or None


def transition_step(
    record: OnboardingRecord,
    step_id: str,
    actor: Actor,
    new_status: StepStatus,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Move one step to `new_status`. Returns True when the record became completed."""
    _require_participant(record, actor)
    step = _get_step(record, step_id)

    if not can_mutate(actor, record, RecordField.step_status, step_id):
        raise AccessDeniedError("You are not allowed to change the status of this step")

    current = step.status
    if (new_status in MANAGER_ONLY_TARGETS or current == StepStatus.blocked) and not is_record_manager(actor, record):
        raise AccessDeniedError("Only the assigned HR or an admin may block, skip or unblock steps")

    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransitionError(
            f"Cannot move step '{step_id}' from {current.value} to {new_status.value}",
            details={"step_id": step_id, "from": current.value, "to": new_status.value},
        )

    note = _clean_note(note)
    if new_status == StepStatus.blocked and not note:
        raise InputValidationError("A reason is required to block a step")

    if new_status == StepStatus.in_progress:
        pending = [d for d in step.dependencies if _get_step(record, d).status != StepStatus.completed]
        if pending:
            raise DependencyNotSatisfiedError(step_id, pending)

    now = now or utcnow()
    step.status = new_status
    if new_status == StepStatus.in_progress and step.started_at is None:
        step.started_at = now
    if new_status == StepStatus.completed:
        step.completed_at = now

    if new_status == StepStatus.blocked:
        step.blocked_reason = note
    else:
        step.blocked_reason = None
        if note:
            step.notes = note

    return recompute(record, now)


def update_step(
    record: OnboardingRecord,
    step_id: str,
    actor: Actor,
    notes: Optional[str] = None,
    feedback: Optional[StepFeedback] = None,
) -> bool:
    """Edit the free-text notes and/or feedback of a step."""
    _require_participant(record, actor)
    step = _get_step(record, step_id)
    if notes is None and feedback is None:
        raise InputValidationError("Nothing to update: provide notes or feedback")
    if notes is not None and not can_mutate(actor, record, RecordField.step_notes, step_id):
        raise AccessDeniedError("You are not allowed to edit notes on this step")
    if feedback is not None and not can_mutate(actor, record, RecordField.step_feedback, step_id):
        raise AccessDeniedError("You are not allowed to leave feedback on this step")

    if notes is not None:
        step.notes = _clean_note(notes)
    if feedback is not None:
        step.feedback = feedback
    return recompute(record)


def add_step(record: OnboardingRecord, actor: Actor, step: Step, now: Optional[datetime] = None) -> bool:
    if not can_mutate(actor, record, RecordField.steps):
        raise AccessDeniedError("Only the assigned HR or an admin may add steps")
    if step.status != StepStatus.pending:
        raise InputValidationError("New steps must start as pending")
    try:
        validate_step_graph([*record.steps, step])
    except ValueError as e:
        raise InputValidationError(str(e)) from e

    record.steps.append(step)
    return recompute(record, now)


def set_hold(record: OnboardingRecord, actor: Actor, on_hold: bool) -> None:
    """Put a record on hold, or resume it. on-hold is never derived from progress."""
    if not can_mutate(actor, record, RecordField.status):
        raise AccessDeniedError("Only the assigned HR or an admin may change the onboarding status")
    if record.status == OnboardingStatus.completed:
        raise IllegalTransitionError("A completed onboarding cannot be put on hold or resumed")

    if on_hold:
        if record.status == OnboardingStatus.on_hold:
            raise IllegalTransitionError("Onboarding is already on hold")
        record.status = OnboardingStatus.on_hold
    else:
        if record.status != OnboardingStatus.on_hold:
            raise IllegalTransitionError("Onboarding is not on hold")
        record.status = OnboardingStatus.not_started
    recompute(record)


# --- Auxiliary collections (append-only) ---

def add_feedback(record: OnboardingRecord, actor: Actor, entry: FeedbackEntry) -> None:
    if not can_mutate(actor, record, RecordField.feedback):
        raise AccessDeniedError("You are not allowed to leave feedback on this onboarding")
    record.feedback.append(entry)


def schedule_meeting(record: OnboardingRecord, actor: Actor, meeting: Meeting) -> None:
    if not can_mutate(actor, record, RecordField.meetings):
        raise AccessDeniedError("Only the assigned HR or an admin may schedule meetings")
    record.meetings.append(meeting)


def add_checklist_item(record: OnboardingRecord, actor: Actor, item: ChecklistItem) -> None:
    if not can_mutate(actor, record, RecordField.checklist):
        raise AccessDeniedError("Only the assigned HR or an admin may edit the checklist")
    record.checklist.append(item)


def complete_checklist_item(
    record: OnboardingRecord,
    actor: Actor,
    index: int,
    now: Optional[datetime] = None,
) -> None:
    if not can_mutate(actor, record, RecordField.checklist):
        raise AccessDeniedError("Only the assigned HR or an admin may edit the checklist")
    if index < 0 or index >= len(record.checklist):
        raise NotFoundError(f"Checklist item {index} not found")
    item = record.checklist[index]
    if item.completed:
        raise IllegalTransitionError(f"Checklist item {index} is already completed")
    item.completed = True
    item.completed_at = now or utcnow()
    item.completed_by = actor.id


def attach_document(record: OnboardingRecord, actor: Actor, document_id: int) -> None:
    if not can_mutate(actor, record, RecordField.documents):
        raise AccessDeniedError("Only the assigned HR or an admin may attach documents")
    if document_id not in record.documents:
        record.documents.append(document_id)
