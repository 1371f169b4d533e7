"""Field-level validation helpers."""

import re

from medsync.constants import INSURED_ID_LENGTH

INSURED_ID_PATTERN = re.compile(r"\d{5}", re.ASCII)


def sanitize_insured_id(insured_id: str | int) -> str:
    """
    Left-pad an insured ID with zeros up to five characters.

    Values that are already five characters or longer are returned unchanged.

    Args:
        insured_id: Raw insured ID

    Returns:
        Padded insured ID
    """
    value = str(insured_id)
    if len(value) >= INSURED_ID_LENGTH:
        return value
    return "0" * (INSURED_ID_LENGTH - len(value)) + value


def is_valid_insured_id(insured_id: str) -> bool:
    """Check a (padded) insured ID is exactly five ASCII digits."""
    return bool(INSURED_ID_PATTERN.fullmatch(insured_id))
