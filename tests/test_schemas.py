"""Tests for appointment status rules and error serialization."""

import pytest

from medsync.core.exceptions import ConflictError, ExternalServiceError, ValidationError
from medsync.schemas.appointments import AppointmentStatus


@pytest.mark.parametrize(
    ("status", "terminal"),
    [
        (AppointmentStatus.PENDING, False),
        (AppointmentStatus.COMPLETED, True),
        (AppointmentStatus.FAILED, True),
    ],
)
def test_status_is_terminal(status, terminal):
    assert status.is_terminal is terminal


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        ("pending", "completed", True),
        ("pending", "failed", True),
        ("pending", "pending", True),
        ("completed", "completed", True),
        ("completed", "failed", False),
        ("failed", "completed", False),
        ("completed", "pending", False),
    ],
)
def test_can_transition_to(make_appointment, current, target, allowed):
    """Only pending appointments move; terminal ones accept their own status again."""
    appointment = make_appointment(status=current)

    assert appointment.can_transition_to(target) is allowed
    assert appointment.is_pending() is (current == "pending")


def test_can_transition_to_rejects_unknown_status(make_appointment):
    with pytest.raises(ValueError):
        make_appointment().can_transition_to("cancelled")


def test_exception_to_dict():
    """Errors serialize their code, message and status."""
    assert ConflictError("Appointment already exists").to_dict() == {
        "code": "CONFLICT",
        "message": "Appointment already exists",
        "status_code": 409,
    }
    assert ExternalServiceError("redis", "down").to_dict()["status_code"] == 502


def test_validation_error_to_dict_includes_details():
    details = [{"field": "insuredId", "message": "insuredId must be exactly 5 digits"}]

    data = ValidationError(details=details).to_dict()

    assert data["code"] == "VALIDATION_ERROR"
    assert data["status_code"] == 400
    assert data["details"] == details
