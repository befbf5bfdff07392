import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from onboarding_hub.core.schemas import ApiResponse
from onboarding_hub.database import get_db
from onboarding_hub.models.onboarding import OnboardingStatus
from onboarding_hub.routers.auth_deps import get_current_actor, require_admin, require_hr
from onboarding_hub.schemas.onboarding_workflow import (
    ChecklistItemCreate,
    DefaultTemplateResponse,
    DocumentAttach,
    FeedbackCreate,
    HoldRequest,
    MeetingCreate,
    OnboardingCreate,
    OnboardingListResponse,
    OnboardingOverview,
    OnboardingResponse,
    OnboardingStatsResponse,
    Pagination,
    RecentOnboarding,
    StepCreate,
    StepTransitionRequest,
    StepUpdateRequest,
)
from onboarding_hub.services.access_policy import Actor
from onboarding_hub.services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding")


def get_onboarding_service(db: Session = Depends(get_db)) -> OnboardingService:
    return OnboardingService(db)


def _respond(record, message: Optional[str] = None) -> ApiResponse[OnboardingResponse]:
    return ApiResponse.ok(OnboardingResponse.from_record(record), message=message)


@router.get("", response_model=ApiResponse[OnboardingListResponse])
def list_onboardings(
    status_filter: Optional[OnboardingStatus] = Query(default=None, alias="status"),
    assigned_hr_id: Optional[int] = None,
    assigned_buddy_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    actor: Actor = Depends(require_hr()),
    service: OnboardingService = Depends(get_onboarding_service),
):
    records, total = service.list_records(
        actor,
        status=status_filter,
        assigned_hr_id=assigned_hr_id,
        assigned_buddy_id=assigned_buddy_id,
        page=page,
        limit=limit,
    )
    effective_limit = service.page_size(limit)
    return ApiResponse.ok(OnboardingListResponse(
        onboardings=[OnboardingResponse.from_record(r) for r in records],
        pagination=Pagination(
            current=page,
            pages=service.page_count(total, effective_limit),
            total=total,
            limit=effective_limit,
        ),
    ))


@router.get("/stats/overview", response_model=ApiResponse[OnboardingStatsResponse])
def onboarding_stats(
    actor: Actor = Depends(require_hr()),
    service: OnboardingService = Depends(get_onboarding_service),
):
    stats = service.stats_overview(actor)
    by_status = stats["by_status"]
    return ApiResponse.ok(OnboardingStatsResponse(
        overview=OnboardingOverview(
            total=stats["total"],
            completed=by_status[OnboardingStatus.completed.value],
            in_progress=by_status[OnboardingStatus.in_progress.value],
            on_hold=by_status[OnboardingStatus.on_hold.value],
            not_started=by_status[OnboardingStatus.not_started.value],
            overdue=stats["overdue"],
            average_progress=stats["average_progress"],
        ),
        by_status=by_status,
        recent=[
            RecentOnboarding(
                id=r.id,
                employee_id=r.employee_id,
                status=r.status,
                overall_progress=r.overall_progress,
            )
            for r in stats["recent"]
        ],
    ))


@router.get("/template/default", response_model=ApiResponse[DefaultTemplateResponse])
def default_template(actor: Actor = Depends(require_hr())):
    return ApiResponse.ok(DefaultTemplateResponse(steps=OnboardingService.default_template()))


@router.post("/completions/redeliver", response_model=ApiResponse[dict])
def redeliver_completions(
    actor: Actor = Depends(require_admin()),
    service: OnboardingService = Depends(get_onboarding_service),
):
    delivered = service.redeliver_completions()
    return ApiResponse.ok({"delivered": delivered})


@router.get("/employee/{employee_id}", response_model=ApiResponse[OnboardingResponse])
def get_employee_onboarding(
    employee_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.get_by_employee(employee_id, actor))


@router.post("", response_model=ApiResponse[OnboardingResponse], status_code=status.HTTP_201_CREATED)
def create_onboarding(
    payload: OnboardingCreate,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    logger.info(f"Creating onboarding for employee {payload.employee_id}")
    record = service.create_onboarding(
        actor,
        employee_id=payload.employee_id,
        expected_completion_date=payload.expected_completion_date,
        steps=[s.to_step() for s in payload.steps],
        assigned_buddy_id=payload.assigned_buddy_id,
        start_date=payload.start_date,
        assigned_hr_id=payload.assigned_hr_id,
        use_default_template=payload.use_default_template,
    )
    return _respond(record, "Onboarding process created successfully")


@router.get("/{record_id}", response_model=ApiResponse[OnboardingResponse])
def get_onboarding(
    record_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.get_record(record_id, actor))


@router.post("/{record_id}/steps/{step_id}/transition", response_model=ApiResponse[OnboardingResponse])
def transition_step(
    record_id: int,
    step_id: str,
    payload: StepTransitionRequest,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    record = service.transition_step(record_id, step_id, actor, payload.status, payload.note)
    return _respond(record, "Step updated successfully")


@router.patch("/{record_id}/steps/{step_id}", response_model=ApiResponse[OnboardingResponse])
def update_step(
    record_id: int,
    step_id: str,
    payload: StepUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    record = service.update_step(record_id, step_id, actor, notes=payload.notes, feedback=payload.feedback)
    return _respond(record, "Step updated successfully")


@router.post("/{record_id}/steps", response_model=ApiResponse[OnboardingResponse])
def add_step(
    record_id: int,
    payload: StepCreate,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.add_step(record_id, actor, payload.to_step()), "Step added successfully")


@router.post("/{record_id}/feedback", response_model=ApiResponse[OnboardingResponse])
def add_feedback(
    record_id: int,
    payload: FeedbackCreate,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    record = service.add_feedback(record_id, actor, payload.type, payload.rating, payload.comment)
    return _respond(record, "Feedback added successfully")


@router.post("/{record_id}/hold", response_model=ApiResponse[OnboardingResponse])
def set_hold(
    record_id: int,
    payload: HoldRequest,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    record = service.set_hold(record_id, actor, payload.on_hold, payload.reason)
    return _respond(record, "Onboarding put on hold" if payload.on_hold else "Onboarding resumed")


@router.post("/{record_id}/meetings", response_model=ApiResponse[OnboardingResponse])
def schedule_meeting(
    record_id: int,
    payload: MeetingCreate,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.schedule_meeting(record_id, actor, payload.to_meeting()), "Meeting scheduled")


@router.post("/{record_id}/checklist", response_model=ApiResponse[OnboardingResponse])
def add_checklist_item(
    record_id: int,
    payload: ChecklistItemCreate,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.add_checklist_item(record_id, actor, payload.to_item()))


@router.post("/{record_id}/checklist/{index}/complete", response_model=ApiResponse[OnboardingResponse])
def complete_checklist_item(
    record_id: int,
    index: int,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.complete_checklist_item(record_id, actor, index))


@router.post("/{record_id}/documents", response_model=ApiResponse[OnboardingResponse])
def attach_document(
    record_id: int,
    payload: DocumentAttach,
    actor: Actor = Depends(get_current_actor),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return _respond(service.attach_document(record_id, actor, payload.document_id))
