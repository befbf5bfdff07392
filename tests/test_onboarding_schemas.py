from datetime import date, timedelta

from onboarding_hub.schemas.onboarding import OnboardingRecord
from onboarding_hub.schemas.onboarding_workflow import OnboardingResponse

TODAY = date(2024, 3, 11)


def test_response_day_counts(make_record):
    record = make_record()
    record.start_date = TODAY - timedelta(days=10)
    record.expected_completion_date = TODAY + timedelta(days=20)

    response = OnboardingResponse.from_record(record, today=TODAY)

    assert response.days_since_start == 10
    assert response.days_until_expected_completion == 20
    assert response.next_pending_step_id == "A"
    assert not record.is_overdue(TODAY)
    assert record.is_overdue(TODAY + timedelta(days=21))


def test_response_fields_do_not_shadow_record_methods():
    for name in ("days_since_start", "days_until_expected_completion"):
        assert name in OnboardingResponse.model_fields
        assert not hasattr(OnboardingRecord, name)


def test_record_document_is_stored_as_json():
    from sqlalchemy import JSON

    from onboarding_hub.models.onboarding import OnboardingRecordRow

    assert isinstance(OnboardingRecordRow.__table__.c.document.type, JSON)
