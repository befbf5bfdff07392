"""
Access Control Policy for onboarding records.

A single place decides who may change or see what. Every function here is
pure: the answer depends only on the actor and the record passed in.

Mutation rules, first rule whose actor condition matches decides:
    1. admin                              -> every field
    2. hr assigned to the record          -> every field
    3. the onboarding employee            -> step status/notes/feedback on
                                             Employee steps, record feedback
    4. the assigned buddy                 -> same, on Buddy steps
    5. anyone else                        -> nothing
"""
import enum
from dataclasses import dataclass
from typing import Optional, Union

from onboarding_hub.models.onboarding import AssigneeRole
from onboarding_hub.models.user import UserRole
from onboarding_hub.schemas.onboarding import OnboardingRecord, Step


@dataclass(frozen=True)
class Actor:
    id: int
    role: UserRole


class RecordField(str, enum.Enum):
    step_status = "step.status"
    step_notes = "step.notes"
    step_feedback = "step.feedback"
    status = "status"
    steps = "steps"
    feedback = "feedback"
    meetings = "meetings"
    checklist = "checklist"
    documents = "documents"


STEP_FIELDS = frozenset({RecordField.step_status, RecordField.step_notes, RecordField.step_feedback})


def resolve_assignee(step: Step, record: OnboardingRecord) -> Optional[AssigneeRole]:
    """
    The role a step belongs to: explicit role first, else the assignee's
    relation to the record. A step with neither belongs to the employee.
    """
    if step.assigned_to_role is not None:
        return step.assigned_to_role
    identity = step.assigned_to_identity
    if identity is None:
        return AssigneeRole.employee
    if identity == record.employee_id:
        return AssigneeRole.employee
    if record.assigned_buddy_id is not None and identity == record.assigned_buddy_id:
        return AssigneeRole.buddy
    if identity == record.assigned_hr_id:
        return AssigneeRole.hr
    return None


def is_record_manager(actor: Actor, record: OnboardingRecord) -> bool:
    """Rules 1 and 2: admins and the HR assigned to this record."""
    if actor.role == UserRole.ADMIN:
        return True
    return actor.role == UserRole.HR and actor.id == record.assigned_hr_id


def _participant_may(
    record: OnboardingRecord,
    field: RecordField,
    step_id: Optional[str],
    as_role: AssigneeRole,
) -> bool:
    if field == RecordField.feedback:
        return True
    if field not in STEP_FIELDS or step_id is None:
        return False
    step = record.find_step(step_id)
    return step is not None and resolve_assignee(step, record) == as_role


def can_mutate(
    actor: Actor,
    record: OnboardingRecord,
    field: Union[RecordField, str],
    step_id: Optional[str] = None,
) -> bool:
    try:
        field = RecordField(field)
    except ValueError:
        # Unknown fields are never mutable
        return False

    if is_record_manager(actor, record):
        return True
    if actor.id == record.employee_id:
        return _participant_may(record, field, step_id, AssigneeRole.employee)
    if record.assigned_buddy_id is not None and actor.id == record.assigned_buddy_id:
        return _participant_may(record, field, step_id, AssigneeRole.buddy)
    return False


def can_read(actor: Actor, record: OnboardingRecord) -> bool:
    if is_record_manager(actor, record):
        return True
    if actor.id == record.employee_id:
        return True
    return record.assigned_buddy_id is not None and actor.id == record.assigned_buddy_id


def can_create(actor: Actor) -> bool:
    return actor.role in (UserRole.ADMIN, UserRole.HR)


def can_list(actor: Actor) -> bool:
    return actor.role in (UserRole.ADMIN, UserRole.HR)


def listing_scope(actor: Actor) -> Optional[int]:
    """HR id a listing is restricted to; None means every record (admins)."""
    return None if actor.role == UserRole.ADMIN else actor.id
