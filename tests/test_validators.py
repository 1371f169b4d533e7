"""Tests for request validation."""

import pytest

from medsync.core.exceptions import ValidationError
from medsync.schemas.appointments import AppointmentStatus
from medsync.services.validation import (
    parse_status,
    validate_appointment_request,
    validate_list_filters,
)
from medsync.utils.validators import is_valid_insured_id, sanitize_insured_id


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1", "00001"),
        ("123", "00123"),
        ("12345", "12345"),
        (42, "00042"),
        ("123456", "123456"),
    ],
)
def test_sanitize_insured_id(raw, expected):
    """Short insured IDs are left-padded with zeros."""
    assert sanitize_insured_id(raw) == expected


@pytest.mark.parametrize(
    ("raw", "accepted"),
    [
        ("1", True),
        ("00000", True),
        ("1234", True),
        ("12a4", False),
        ("123456", False),
        ("１２３４５", False),
    ],
)
def test_padded_insured_id_acceptance(raw, accepted):
    """Padded IDs are accepted iff they are exactly five ASCII digits."""
    assert is_valid_insured_id(sanitize_insured_id(raw)) is accepted


def test_validate_appointment_request_pads_insured_id():
    """A valid request is returned with the insured ID zero-padded."""
    request = validate_appointment_request(
        {"insuredId": "123", "scheduleId": 7, "countryISO": "CL", "extra": "ignored"}
    )

    assert request.insured_id == "00123"
    assert request.schedule_id == 7
    assert request.country_iso == "CL"


def test_validate_appointment_request_reports_every_field():
    """Every failing field is reported in a single error."""
    with pytest.raises(ValidationError) as exc_info:
        validate_appointment_request({"insuredId": "12a45", "scheduleId": -1, "countryISO": "AR"})

    fields = [d["field"] for d in exc_info.value.details]
    assert fields == ["insuredId", "scheduleId", "countryISO"]
    assert exc_info.value.status_code == 400
    assert "insuredId must be exactly 5 digits" in exc_info.value.message
    assert "scheduleId must be a positive integer" in exc_info.value.message
    assert "countryISO must be either PE or CL" in exc_info.value.message


def test_validate_appointment_request_missing_fields():
    """Missing fields are reported as required."""
    with pytest.raises(ValidationError) as exc_info:
        validate_appointment_request({})

    messages = {d["field"]: d["message"] for d in exc_info.value.details}
    assert messages == {
        "insuredId": "insuredId is required",
        "scheduleId": "scheduleId is required",
        "countryISO": "countryISO is required",
    }


@pytest.mark.parametrize("schedule_id", [0, True, 1.5, "abc"])
def test_validate_appointment_request_rejects_bad_schedule(schedule_id):
    """Schedule IDs must be positive integers."""
    with pytest.raises(ValidationError) as exc_info:
        validate_appointment_request(
            {"insuredId": "12345", "scheduleId": schedule_id, "countryISO": "PE"}
        )

    assert exc_info.value.details == [
        {"field": "scheduleId", "message": "scheduleId must be a positive integer"}
    ]


def test_validate_appointment_request_rejects_empty_insured_id():
    """An empty insured ID is not padded into a valid one."""
    with pytest.raises(ValidationError) as exc_info:
        validate_appointment_request({"insuredId": "", "scheduleId": 1, "countryISO": "PE"})

    assert exc_info.value.details[0]["field"] == "insuredId"


def test_validate_appointment_request_rejects_non_object():
    """The request body must be a JSON object."""
    with pytest.raises(ValidationError):
        validate_appointment_request(["12345", 7, "PE"])


def test_validate_list_filters_defaults():
    """Limit and offset default to 20 and 0."""
    filters = validate_list_filters()

    assert filters.limit == 20
    assert filters.offset == 0
    assert filters.country_iso is None
    assert filters.status is None


def test_validate_list_filters_parses_query_strings():
    """Query string values are converted."""
    filters = validate_list_filters("CL", "completed", "5", "10")

    assert filters.country_iso == "CL"
    assert filters.status == "completed"
    assert filters.limit == 5
    assert filters.offset == 10


def test_validate_list_filters_reports_every_filter():
    """Every out-of-range filter is reported in a single error."""
    with pytest.raises(ValidationError) as exc_info:
        validate_list_filters("AR", "cancelled", "101", "-1")

    fields = [d["field"] for d in exc_info.value.details]
    assert fields == ["countryISO", "status", "limit", "offset"]


@pytest.mark.parametrize("limit", [0, 101, "ten"])
def test_validate_list_filters_limit_range(limit):
    """Limit must be between 1 and 100."""
    with pytest.raises(ValidationError, match="limit must be between 1 and 100"):
        validate_list_filters(limit=limit)


def test_parse_status():
    """Known statuses parse; anything else is a validation error."""
    assert parse_status("completed") is AppointmentStatus.COMPLETED
    assert parse_status(AppointmentStatus.FAILED) is AppointmentStatus.FAILED

    with pytest.raises(ValidationError, match="Invalid status: cancelled"):
        parse_status("cancelled")
