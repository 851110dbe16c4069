"""Data validation helpers.

Functions:
- is_valid_uuid(value) -> bool
- validate_email(email) -> bool
- is_indian_phone(value) -> bool: 10 digits starting with 6-9
- is_valid_date(value) / is_valid_time(value): scheduled exam formats
"""

import re
import uuid
from datetime import datetime

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
INDIAN_PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")


def is_valid_uuid(value: str) -> bool:
    """Check that value is a canonical UUID string."""
    try:
        return str(uuid.UUID(value)) == value.lower()
    except (ValueError, AttributeError):
        return False


def validate_email(email: str) -> bool:
    """Basic email shape check."""
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_indian_phone(value: str) -> bool:
    """Check for a 10 digit mobile number starting with 6-9."""
    return bool(INDIAN_PHONE_PATTERN.match(value.strip()))


def is_valid_date(value: str) -> bool:
    """Check YYYY-MM-DD."""
    try:
        datetime.strptime(value, "%Y-%m-%d")
        return True
    except ValueError:
        return False


def is_valid_time(value: str) -> bool:
    """Check HH:MM or HH:MM:SS."""
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            datetime.strptime(value, fmt)
            return True
        except ValueError:
            continue
    return False
