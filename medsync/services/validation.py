"""Request validation for the appointment lifecycle."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from medsync.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, SUPPORTED_COUNTRIES
from medsync.core.exceptions import ValidationError
from medsync.schemas.appointments import (
    AppointmentFilters,
    AppointmentRequest,
    AppointmentStatus,
)

FIELD_MESSAGES = {
    "insuredId": "insuredId must be exactly 5 digits",
    "scheduleId": "scheduleId must be a positive integer",
    "countryISO": "countryISO must be either PE or CL",
}

VALID_STATUSES = tuple(status.value for status in AppointmentStatus)


def _raise_for(details: list[dict[str, str]]) -> None:
    if details:
        raise ValidationError(
            f"Validation failed: {', '.join(d['message'] for d in details)}",
            details=details,
        )


def validate_appointment_request(data: Any) -> AppointmentRequest:
    """
    Validate a create-appointment request.

    Validation is exhaustive: every failing field is reported in one error.

    Args:
        data: Raw request payload

    Returns:
        Validated request with a zero-padded insured ID

    Raises:
        ValidationError: If any field is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            details=[{"field": "body", "message": "Request body must be a JSON object"}],
        )

    try:
        return AppointmentRequest.model_validate(data)
    except PydanticValidationError as exc:
        details: list[dict[str, str]] = []
        seen: set[str] = set()
        for error in exc.errors():
            field = str(error["loc"][0]) if error["loc"] else "body"
            if field in seen:
                continue
            seen.add(field)
            if error["type"] == "missing":
                message = f"{field} is required"
            else:
                message = FIELD_MESSAGES.get(field, error["msg"])
            details.append({"field": field, "message": message})
        _raise_for(details)
        raise


def validate_list_filters(
    country_iso: str | None = None,
    status: str | None = None,
    limit: Any = None,
    offset: Any = None,
) -> AppointmentFilters:
    """
    Validate list filters.

    Args:
        country_iso: Optional country filter
        status: Optional status filter
        limit: Page size, 1..100 (default 20)
        offset: Records to skip, >= 0 (default 0)

    Returns:
        Validated filters

    Raises:
        ValidationError: If any filter is out of range
    """
    details: list[dict[str, str]] = []

    if country_iso and country_iso not in SUPPORTED_COUNTRIES:
        details.append({"field": "countryISO", "message": "countryISO must be either 'PE' or 'CL'"})

    if status and status not in VALID_STATUSES:
        details.append(
            {
                "field": "status",
                "message": "status must be one of: 'pending', 'completed', 'failed'",
            }
        )

    parsed_limit = DEFAULT_PAGE_LIMIT
    if limit is not None:
        parsed_limit = _to_int(limit)
        if parsed_limit is None or not 1 <= parsed_limit <= MAX_PAGE_LIMIT:
            details.append({"field": "limit", "message": "limit must be between 1 and 100"})

    parsed_offset = 0
    if offset is not None:
        parsed_offset = _to_int(offset)
        if parsed_offset is None or parsed_offset < 0:
            details.append({"field": "offset", "message": "offset must be 0 or greater"})

    _raise_for(details)

    return AppointmentFilters(
        country_iso=country_iso or None,
        status=status or None,
        limit=parsed_limit,
        offset=parsed_offset,
    )


def parse_status(status: Any) -> AppointmentStatus:
    """
    Parse a status value.

    Raises:
        ValidationError: If the status is not one of pending, completed, failed
    """
    if isinstance(status, AppointmentStatus):
        return status
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}",
            details=[{"field": "status", "message": f"Invalid status: {status}"}],
        )
    return AppointmentStatus(status)


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None
