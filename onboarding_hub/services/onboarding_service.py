import math
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from pydantic import ValidationError
from sqlalchemy.orm import Session

from onboarding_hub.core.config import settings
from onboarding_hub.core.exceptions import (
    AccessDeniedError,
    AppException,
    DuplicateOnboardingError,
    InputValidationError,
    NotFoundError,
)
from onboarding_hub.models.onboarding import FeedbackType, OnboardingStatus, StepStatus
from onboarding_hub.models.user import UserRole
from onboarding_hub.schemas.onboarding import (
    ChecklistItem,
    FeedbackEntry,
    Meeting,
    OnboardingRecord,
    Step,
    StepFeedback,
)
from onboarding_hub.services import access_policy, onboarding_lifecycle as lifecycle
from onboarding_hub.services.access_policy import Actor
from onboarding_hub.services.audit import AuditService
from onboarding_hub.services.base import BaseService
from onboarding_hub.services.employee_records import EmployeeRecords, UserEmployeeRecords
from onboarding_hub.services.onboarding_repository import OnboardingRepository
from onboarding_hub.services.onboarding_templates import build_default_steps

T = TypeVar("T")

ENTITY_TYPE = "onboarding"


def _validation_details(error: ValidationError) -> Dict[str, Any]:
    return {
        "errors": [
            {"field": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in error.errors()
        ]
    }


class OnboardingService(BaseService):
    """
    Application service for onboarding records.

    Each mutating operation is one read -> authorize/validate -> mutate ->
    recompute -> write transaction, together with its audit entry.
    """

    def __init__(
        self,
        db: Session,
        employee_records: Optional[EmployeeRecords] = None,
        repository: Optional[OnboardingRepository] = None,
    ):
        super().__init__(db)
        self.employee_records = employee_records or UserEmployeeRecords(db)
        self.repository = repository or OnboardingRepository(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_onboarding(
        self,
        actor: Actor,
        employee_id: int,
        expected_completion_date: date,
        steps: Optional[List[Step]] = None,
        assigned_buddy_id: Optional[int] = None,
        start_date: Optional[date] = None,
        assigned_hr_id: Optional[int] = None,
        use_default_template: bool = False,
    ) -> OnboardingRecord:
        if not access_policy.can_create(actor):
            raise AccessDeniedError("Access denied. Admin or HR role required.")

        if use_default_template and steps:
            raise InputValidationError("Provide custom steps or use the default template, not both")
        steps = build_default_steps() if use_default_template else list(steps or [])
        if not steps:
            raise InputValidationError("At least one step is required")

        if not self.employee_records.exists(employee_id):
            raise NotFoundError("Employee not found")
        if assigned_buddy_id is not None:
            if assigned_buddy_id == employee_id:
                raise InputValidationError("An employee cannot be their own onboarding buddy")
            if not self.employee_records.exists(assigned_buddy_id):
                raise NotFoundError("Assigned buddy not found")

        hr_id = actor.id
        if assigned_hr_id is not None and assigned_hr_id != actor.id:
            if actor.role != UserRole.ADMIN:
                raise AccessDeniedError("Only admins may assign an onboarding to another HR")
            if not self.employee_records.exists(assigned_hr_id, roles=(UserRole.HR, UserRole.ADMIN)):
                raise NotFoundError("Assigned HR not found")
            hr_id = assigned_hr_id

        # Fast path; the unique constraint still decides concurrent creators
        if self.repository.exists_for_employee(employee_id):
            raise DuplicateOnboardingError(employee_id)

        try:
            record = OnboardingRecord(
                employee_id=employee_id,
                start_date=start_date or date.today(),
                expected_completion_date=expected_completion_date,
                assigned_hr_id=hr_id,
                assigned_buddy_id=assigned_buddy_id,
                steps=steps,
            )
        except ValidationError as e:
            raise InputValidationError("Invalid onboarding data", details=_validation_details(e)) from e
        lifecycle.recompute(record)

        def audit_creation(created: OnboardingRecord) -> None:
            self.audit.log_action(
                action="create_onboarding",
                entity_type=ENTITY_TYPE,
                entity_id=created.id,
                actor=actor,
                details={
                    "employee_id": employee_id,
                    "step_count": len(steps),
                    "default_template": use_default_template,
                },
            )

        try:
            record = self.repository.add(record, after_insert=audit_creation)
        except DuplicateOnboardingError:
            self._logger.warning(f"Duplicate onboarding rejected for employee {employee_id}")
            raise
        self._logger.info(
            f"Onboarding {record.id} created for employee {employee_id} with {len(record.steps)} steps"
        )
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_record(self, record_id: int, actor: Actor) -> OnboardingRecord:
        record = self.repository.get(record_id)
        if not access_policy.can_read(actor, record):
            raise AccessDeniedError("Access denied")
        return record

    def get_by_employee(self, employee_id: int, actor: Actor) -> OnboardingRecord:
        record = self.repository.get_by_employee(employee_id)
        if not access_policy.can_read(actor, record):
            raise AccessDeniedError("Access denied")
        return record

    def list_records(
        self,
        actor: Actor,
        status: Optional[OnboardingStatus] = None,
        assigned_hr_id: Optional[int] = None,
        assigned_buddy_id: Optional[int] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[OnboardingRecord], int]:
        if not access_policy.can_list(actor):
            raise AccessDeniedError("Access denied. Admin or HR role required.")
        scope = access_policy.listing_scope(actor)
        if scope is not None:
            if assigned_hr_id is not None and assigned_hr_id != scope:
                raise AccessDeniedError("HR users can only list onboardings assigned to them")
            assigned_hr_id = scope

        page = max(page, 1)
        limit = self.page_size(limit)
        return self.repository.list(
            status=status,
            assigned_hr_id=assigned_hr_id,
            assigned_buddy_id=assigned_buddy_id,
            offset=(page - 1) * limit,
            limit=limit,
        )

    def stats_overview(self, actor: Actor) -> Dict[str, Any]:
        if not access_policy.can_list(actor):
            raise AccessDeniedError("Access denied. Admin or HR role required.")
        return self.repository.stats(assigned_hr_id=access_policy.listing_scope(actor))

    @staticmethod
    def default_template() -> List[Step]:
        return build_default_steps()

    @staticmethod
    def page_size(limit: Optional[int] = None) -> int:
        return min(max(limit or settings.default_page_size, 1), settings.max_page_size)

    @staticmethod
    def page_count(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(
        self,
        record_id: int,
        actor: Actor,
        action: str,
        mutation: Callable[[OnboardingRecord], T],
        details: Optional[Dict[str, Any]] = None,
    ) -> Tuple[OnboardingRecord, T]:
        def apply(record: OnboardingRecord) -> T:
            result = mutation(record)
            self.audit.log_action(
                action=action,
                entity_type=ENTITY_TYPE,
                entity_id=record.id,
                actor=actor,
                details=details,
            )
            return result

        try:
            return self.repository.mutate(record_id, apply)
        except AppException as e:
            self._logger.warning(
                f"{action} rejected on onboarding {record_id}: {e.message}",
                extra={"code": e.error_code, "actor_id": actor.id, "record_id": record_id},
            )
            raise

    def _after_step_change(self, record: OnboardingRecord, became_completed: bool) -> OnboardingRecord:
        if not became_completed:
            return record
        self._logger.info(f"Onboarding {record.id} completed for employee {record.employee_id}")
        try:
            return self.deliver_completion(record.id)
        except Exception:
            # The step change is already committed; redeliver_completions() retries later
            self._logger.exception(f"Completion delivery failed for onboarding {record.id}")
            return record

    def transition_step(
        self,
        record_id: int,
        step_id: str,
        actor: Actor,
        new_status: StepStatus,
        note: Optional[str] = None,
    ) -> OnboardingRecord:
        record, became_completed = self._mutate(
            record_id,
            actor,
            "transition_onboarding_step",
            lambda r: lifecycle.transition_step(r, step_id, actor, new_status, note),
            details={"step_id": step_id, "status": new_status, "note": note},
        )
        self._logger.info(f"Onboarding {record_id}: step '{step_id}' -> {new_status.value}")
        return self._after_step_change(record, became_completed)

    def update_step(
        self,
        record_id: int,
        step_id: str,
        actor: Actor,
        notes: Optional[str] = None,
        feedback: Optional[StepFeedback] = None,
    ) -> OnboardingRecord:
        record, became_completed = self._mutate(
            record_id,
            actor,
            "update_onboarding_step",
            lambda r: lifecycle.update_step(r, step_id, actor, notes=notes, feedback=feedback),
            details={"step_id": step_id, "notes": notes is not None, "feedback": feedback},
        )
        return self._after_step_change(record, became_completed)

    def add_step(self, record_id: int, actor: Actor, step: Step) -> OnboardingRecord:
        record, became_completed = self._mutate(
            record_id,
            actor,
            "add_onboarding_step",
            lambda r: lifecycle.add_step(r, actor, step.model_copy(deep=True)),
            details={"step_id": step.step_id, "dependencies": step.dependencies},
        )
        return self._after_step_change(record, became_completed)

    def set_hold(
        self,
        record_id: int,
        actor: Actor,
        on_hold: bool,
        reason: Optional[str] = None,
    ) -> OnboardingRecord:
        record, _ = self._mutate(
            record_id,
            actor,
            "hold_onboarding" if on_hold else "resume_onboarding",
            lambda r: lifecycle.set_hold(r, actor, on_hold),
            details={"reason": reason},
        )
        self._logger.info(f"Onboarding {record_id} {'put on hold' if on_hold else 'resumed'}")
        return record

    def add_feedback(
        self,
        record_id: int,
        actor: Actor,
        feedback_type: FeedbackType,
        rating: int,
        comment: str,
    ) -> OnboardingRecord:
        try:
            entry = FeedbackEntry(from_id=actor.id, type=feedback_type, rating=rating, comment=comment)
        except ValidationError as e:
            raise InputValidationError("Invalid feedback", details=_validation_details(e)) from e

        record, _ = self._mutate(
            record_id,
            actor,
            "add_onboarding_feedback",
            lambda r: lifecycle.add_feedback(r, actor, entry.model_copy()),
            details={"type": feedback_type, "rating": rating},
        )
        return record

    def schedule_meeting(self, record_id: int, actor: Actor, meeting: Meeting) -> OnboardingRecord:
        record, _ = self._mutate(
            record_id,
            actor,
            "schedule_onboarding_meeting",
            lambda r: lifecycle.schedule_meeting(r, actor, meeting.model_copy(deep=True)),
            details={"title": meeting.title, "scheduled_at": meeting.scheduled_at.isoformat()},
        )
        return record

    def add_checklist_item(self, record_id: int, actor: Actor, item: ChecklistItem) -> OnboardingRecord:
        record, _ = self._mutate(
            record_id,
            actor,
            "add_onboarding_checklist_item",
            lambda r: lifecycle.add_checklist_item(r, actor, item.model_copy()),
            details={"item": item.item},
        )
        return record

    def complete_checklist_item(self, record_id: int, actor: Actor, index: int) -> OnboardingRecord:
        record, _ = self._mutate(
            record_id,
            actor,
            "complete_onboarding_checklist_item",
            lambda r: lifecycle.complete_checklist_item(r, actor, index),
            details={"index": index},
        )
        return record

    def attach_document(self, record_id: int, actor: Actor, document_id: int) -> OnboardingRecord:
        record, _ = self._mutate(
            record_id,
            actor,
            "attach_onboarding_document",
            lambda r: lifecycle.attach_document(r, actor, document_id),
            details={"document_id": document_id},
        )
        return record

    # ------------------------------------------------------------------
    # Completion cascade
    # ------------------------------------------------------------------

    def deliver_completion(self, record_id: int) -> OnboardingRecord:
        """
        Tell the employee record that onboarding is complete, once per record.
        The flag and the employee update commit together; a record whose flag
        is still unset is picked up by `redeliver_completions()`.
        """
        def notify(record: OnboardingRecord) -> bool:
            if record.status != OnboardingStatus.completed or record.completion_notified:
                return False
            self.employee_records.notify_onboarding_completed(record.employee_id)
            record.completion_notified = True
            self.audit.log_action(
                action="notify_onboarding_completed",
                entity_type=ENTITY_TYPE,
                entity_id=record.id,
                actor=None,
                details={"employee_id": record.employee_id},
            )
            return True

        record, delivered = self.repository.mutate(record_id, notify)
        if delivered:
            self._logger.info(f"Completion of onboarding {record_id} delivered to employee {record.employee_id}")
        return record

    def redeliver_completions(self) -> int:
        delivered = 0
        for record_id in self.repository.pending_completion_ids():
            if self.deliver_completion(record_id).completion_notified:
                delivered += 1
        return delivered
