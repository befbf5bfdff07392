"""
Persistence for onboarding records.

A record is stored as one JSON document plus a few mirrored columns used for
filtering and for the one-record-per-employee constraint. Updates go through
SQLAlchemy's version counter: a write based on a stale read fails instead of
overwriting a concurrent change, and `mutate()` re-reads and re-applies the
change a bounded number of times.
"""
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random

from onboarding_hub.core.config import settings
from onboarding_hub.core.exceptions import ConcurrencyConflictError, DuplicateOnboardingError, NotFoundError
from onboarding_hub.models.onboarding import OnboardingRecordRow, OnboardingStatus
from onboarding_hub.schemas.onboarding import OnboardingRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MIRRORED_COLUMNS = (
    "employee_id",
    "assigned_hr_id",
    "assigned_buddy_id",
    "status",
    "overall_progress",
    "expected_completion_date",
    "completion_notified",
)


class OnboardingRepository:
    def __init__(self, db: Session, max_attempts: Optional[int] = None):
        self.db = db
        self.max_attempts = max_attempts or settings.max_conflict_retries

    # --- Mapping ---

    @staticmethod
    def to_record(row: OnboardingRecordRow) -> OnboardingRecord:
        record = OnboardingRecord.model_validate(row.document)
        record.id = row.id
        return record

    @staticmethod
    def _write(row: OnboardingRecordRow, record: OnboardingRecord) -> None:
        row.document = record.model_dump(mode="json", exclude={"id"})
        for column in _MIRRORED_COLUMNS:
            setattr(row, column, getattr(record, column))

    # --- Reads ---

    def get(self, record_id: int) -> OnboardingRecord:
        row = self.db.get(OnboardingRecordRow, record_id)
        if row is None:
            raise NotFoundError("Onboarding process not found")
        return self.to_record(row)

    def get_by_employee(self, employee_id: int) -> OnboardingRecord:
        row = self.db.query(OnboardingRecordRow).filter(OnboardingRecordRow.employee_id == employee_id).first()
        if row is None:
            raise NotFoundError("Onboarding process not found for this employee")
        return self.to_record(row)

    def exists_for_employee(self, employee_id: int) -> bool:
        return (
            self.db.query(OnboardingRecordRow.id)
            .filter(OnboardingRecordRow.employee_id == employee_id)
            .first()
            is not None
        )

    def _filtered(
        self,
        status: Optional[OnboardingStatus] = None,
        assigned_hr_id: Optional[int] = None,
        assigned_buddy_id: Optional[int] = None,
    ):
        query = self.db.query(OnboardingRecordRow)
        if status is not None:
            query = query.filter(OnboardingRecordRow.status == status)
        if assigned_hr_id is not None:
            query = query.filter(OnboardingRecordRow.assigned_hr_id == assigned_hr_id)
        if assigned_buddy_id is not None:
            query = query.filter(OnboardingRecordRow.assigned_buddy_id == assigned_buddy_id)
        return query

    def list(
        self,
        status: Optional[OnboardingStatus] = None,
        assigned_hr_id: Optional[int] = None,
        assigned_buddy_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[OnboardingRecord], int]:
        query = self._filtered(status, assigned_hr_id, assigned_buddy_id)
        total = query.count()
        rows = query.order_by(OnboardingRecordRow.id.desc()).offset(offset).limit(limit).all()
        return [self.to_record(r) for r in rows], total

    def stats(self, assigned_hr_id: Optional[int] = None, today: Optional[date] = None) -> Dict:
        query = self._filtered(assigned_hr_id=assigned_hr_id)
        by_status = {s.value: 0 for s in OnboardingStatus}
        for status, count in (
            query.with_entities(OnboardingRecordRow.status, func.count(OnboardingRecordRow.id))
            .group_by(OnboardingRecordRow.status)
            .all()
        ):
            by_status[status.value] = count

        average = query.with_entities(func.avg(OnboardingRecordRow.overall_progress)).scalar()
        overdue = query.filter(
            OnboardingRecordRow.expected_completion_date < (today or date.today()),
            OnboardingRecordRow.status != OnboardingStatus.completed,
        ).count()
        recent = [self.to_record(r) for r in query.order_by(OnboardingRecordRow.id.desc()).limit(5).all()]

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "overdue": overdue,
            "average_progress": round(float(average or 0), 2),
            "recent": recent,
        }

    def pending_completion_ids(self) -> List[int]:
        rows = (
            self.db.query(OnboardingRecordRow.id)
            .filter(
                OnboardingRecordRow.status == OnboardingStatus.completed,
                OnboardingRecordRow.completion_notified == False,  # noqa: E712
            )
            .all()
        )
        return [r.id for r in rows]

    # --- Writes ---

    def add(
        self,
        record: OnboardingRecord,
        after_insert: Optional[Callable[[OnboardingRecord], None]] = None,
    ) -> OnboardingRecord:
        """
        Conditional insert. The unique constraint on employee_id decides races
        between concurrent creators; the loser gets DuplicateOnboardingError.
        `after_insert` runs inside the same transaction.
        """
        row = OnboardingRecordRow()
        self._write(row, record)
        self.db.add(row)
        try:
            self.db.flush()
            created = self.to_record(row)
            if after_insert is not None:
                after_insert(created)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateOnboardingError(record.employee_id) from e
        except Exception:
            self.db.rollback()
            raise
        return created

    def mutate(
        self,
        record_id: int,
        mutation: Callable[[OnboardingRecord], T],
    ) -> Tuple[OnboardingRecord, T]:
        """
        Read, apply `mutation`, write, all in one transaction. The mutation may
        run more than once when a concurrent writer wins the race, so it must
        only act on the record it is given and on this session.
        """
        for attempt in Retrying(
            retry=retry_if_exception_type(ConcurrencyConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random(0, 0.05),
            reraise=True,
        ):
            with attempt:
                return self._mutate_once(record_id, mutation)

    def _mutate_once(
        self,
        record_id: int,
        mutation: Callable[[OnboardingRecord], T],
    ) -> Tuple[OnboardingRecord, T]:
        row = self.db.get(OnboardingRecordRow, record_id, populate_existing=True)
        if row is None:
            raise NotFoundError("Onboarding process not found")
        record = self.to_record(row)

        try:
            result = mutation(record)
            self._write(row, record)
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent modification of onboarding {record_id}, re-reading")
            raise ConcurrencyConflictError(record_id) from e
        except Exception:
            self.db.rollback()
            raise
        return record, result
