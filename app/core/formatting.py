"""
Formatting and validation helpers shared by the account-center flows.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from email_validator import validate_email, EmailNotValidError

from app.core.errors import ValidationFailed

PASSWORD_MIN_LENGTH = 8

_PHONE_GROUPINGS = [
    # China: +86 xxx xxxx xxxx
    (re.compile(r'^\+86(\d{3})(\d{4})(\d{4})$'), "+86 {0} {1} {2}"),
    # US/CA: +1 xxx xxx xxxx
    (re.compile(r'^\+1(\d{3})(\d{3})(\d{4})$'), "+1 {0} {1} {2}"),
    # HK/MO: +852/+853 xxxx xxxx
    (re.compile(r'^\+(852|853)(\d{4})(\d{4})$'), "+{0} {1} {2}"),
    # TW: +886 x xxxx xxxx or +886 xx xxxx xxxx
    (re.compile(r'^\+886(\d{1,2})(\d{4})(\d{4})$'), "+886 {0} {1} {2}"),
    # JP: +81 xx xxxx xxxx
    (re.compile(r'^\+81(\d{2})(\d{4})(\d{4})$'), "+81 {0} {1} {2}"),
]
_GENERIC_PHONE = re.compile(r'^\+(\d{1,3})(\d+)$')

_MONTHS_EN = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def format_phone(phone: Optional[str]) -> str:
    """
    Format a phone number for display.

    Handles both "+8613812345678" and "8613812345678" (Logto may omit the +).
    e.g. "+8613812345678" -> "+86 138 1234 5678"
         "85256182666"    -> "+852 5618 2666"
    """
    if not phone:
        return ""

    normalized = phone if phone.startswith("+") else f"+{phone}"

    for pattern, template in _PHONE_GROUPINGS:
        match = pattern.match(normalized)
        if match:
            return template.format(*match.groups())

    generic = _GENERIC_PHONE.match(normalized)
    if generic:
        rest = generic.group(2)
        groups = [rest[i:i + 4] for i in range(0, len(rest), 4)]
        return f"+{generic.group(1)} {' '.join(groups)}"

    return phone


def format_date(timestamp_ms: int, language: str = "en") -> str:
    """Long-form date for a millisecond epoch timestamp."""
    value = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    if language == "zh-CN":
        return f"{value.year}年{value.month}月{value.day}日"
    return f"{_MONTHS_EN[value.month - 1]} {value.day}, {value.year}"


def map_locale_to_language(locale: Optional[str]) -> Optional[str]:
    if not locale:
        return None
    if locale.startswith("zh"):
        return "zh-CN"
    if locale.startswith("en"):
        return "en"
    return None


def validate_new_password(new_password: str, confirm_password: str) -> List[str]:
    """
    Client-side checks for a new password.

    Returns:
        List[str]: Validation messages in display order; empty when valid
    """
    errors = []
    if not new_password:
        errors.append("Please enter a new password")
    elif len(new_password) < PASSWORD_MIN_LENGTH:
        errors.append(f"New password must be at least {PASSWORD_MIN_LENGTH} characters")
    if new_password and new_password != confirm_password:
        errors.append("The two passwords do not match")
    return errors


def normalize_email(value: str) -> str:
    """
    Validate an email address and return its normalized form.

    Raises:
        ValidationFailed: If the address is not a valid email
    """
    try:
        return validate_email((value or "").strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationFailed(f"Invalid email address: {e}")


def normalize_phone(value: str) -> str:
    """
    Reduce a phone number to the digits Logto stores: country code followed
    by the subscriber number, 8-15 digits, no leading +.

    Spaces, dashes, dots and parentheses are ignored.

    Raises:
        ValidationFailed: If the number is not plausible
    """
    compact = re.sub(r'[\s\-().]', '', value or "")
    if compact.startswith("+"):
        compact = compact[1:]
    if not re.match(r'^[1-9]\d{7,14}$', compact):
        raise ValidationFailed("Invalid phone number. Include the country code, e.g. +1 415 555 0100")
    return compact
