"""
Field rules for the three collections and the profile completeness check.

Each collection has an ordered table of ``FieldRule`` entries. ``validate``
walks the table and either returns a cleaned copy of the record (string
values trimmed where the rule says so) or raises ``ValidationError`` naming
every field that failed.
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from errors import ValidationError

PHONE_PATTERN = re.compile(r"[0-9]{10}")
PINCODE_PATTERN = re.compile(r"[0-9]{6}")

PHONE_MESSAGE = "Please enter a valid 10-digit phone number"
PINCODE_MESSAGE = "Please enter a valid 6-digit pincode"


def is_ten_digit_phone(value: Any) -> bool:
    return isinstance(value, str) and PHONE_PATTERN.fullmatch(value) is not None


def is_six_digit_postal_code(value: Any) -> bool:
    return isinstance(value, str) and PINCODE_PATTERN.fullmatch(value) is not None


class FieldRule(NamedTuple):
    name: str
    required: bool = True
    trim: bool = False
    check: Optional[Callable[[Any], bool]] = None
    message: Optional[str] = None


USERS = "users"
BOOKINGS = "bookings"
CONTACTS = "contacts"

RULES: Dict[str, Tuple[FieldRule, ...]] = {
    USERS: (
        FieldRule("auth0Id"),
        FieldRule("firstName", trim=True),
        FieldRule("lastName", trim=True),
        FieldRule("username", trim=True),
        FieldRule("email", trim=True),
        FieldRule("phone", check=is_ten_digit_phone, message=PHONE_MESSAGE),
        FieldRule("alternativePhone", required=False, check=is_ten_digit_phone, message=PHONE_MESSAGE),
        FieldRule("addressLine1", trim=True),
        FieldRule("addressLine2", trim=True),
        FieldRule("city", trim=True),
        FieldRule("state", trim=True),
        FieldRule("pincode", check=is_six_digit_postal_code, message=PINCODE_MESSAGE),
        FieldRule("landmark", required=False, trim=True),
    ),
    BOOKINGS: (
        FieldRule("firstName", trim=True),
        FieldRule("lastName", trim=True),
        FieldRule("phone", check=is_ten_digit_phone, message=PHONE_MESSAGE),
        FieldRule("date"),
        FieldRule("timeSlot"),
    ),
    CONTACTS: (
        FieldRule("firstName", trim=True),
        FieldRule("lastName", trim=True),
        FieldRule("email", trim=True),
        FieldRule("message"),
    ),
}

MANDATORY_PROFILE_FIELDS = (
    "firstName",
    "lastName",
    "username",
    "phone",
    "addressLine1",
    "addressLine2",
    "city",
    "state",
    "pincode",
)

_PROFILE_FORMATS = {
    "phone": is_ten_digit_phone,
    "pincode": is_six_digit_postal_code,
}


def _rules(kind: str) -> Tuple[FieldRule, ...]:
    try:
        return RULES[kind]
    except KeyError:
        raise ValueError(f"Unknown collection: {kind}") from None


def required_fields(kind: str) -> List[str]:
    """Names of the fields a record of ``kind`` must carry."""
    return [rule.name for rule in _rules(kind) if rule.required]


def format_checks(kind: str) -> Dict[str, Callable[[Any], bool]]:
    """Fields of ``kind`` that carry a format predicate, mapped to it."""
    return {rule.name: rule.check for rule in _rules(kind) if rule.check is not None}


def validate(kind: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """Check ``record`` against the rules for ``kind``.

    Returns a shallow copy with trimmed values. Raises ``ValidationError``
    listing every violated field, in table order.
    """
    cleaned = dict(record)
    fields: List[str] = []
    messages: List[str] = []

    for rule in _rules(kind):
        value = cleaned.get(rule.name)
        if value is None:
            if rule.required:
                fields.append(rule.name)
                messages.append(f"{rule.name} is required")
            continue
        if not isinstance(value, str):
            fields.append(rule.name)
            messages.append(f"{rule.name} must be a string")
            continue

        if rule.trim:
            value = value.strip()
            cleaned[rule.name] = value

        if not value.strip():
            if rule.required:
                fields.append(rule.name)
                messages.append(f"{rule.name} is required")
            continue

        if rule.check is not None and not rule.check(value):
            fields.append(rule.name)
            messages.append(rule.message or f"{rule.name} is invalid")

    if fields:
        raise ValidationError(fields, messages)
    return cleaned


def is_profile_complete(record: Any) -> bool:
    """True when every mandatory profile field is filled in and well-formed."""
    if not isinstance(record, dict):
        return False

    for name in MANDATORY_PROFILE_FIELDS:
        value = record.get(name)
        if not isinstance(value, str):
            return False
        value = value.strip()
        if not value:
            return False
        check = _PROFILE_FORMATS.get(name)
        if check is not None and not check(value):
            return False
    return True
