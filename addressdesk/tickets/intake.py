from __future__ import annotations

import re
from dataclasses import asdict
from enum import Enum
from typing import Any, Mapping, TypeVar

from .errors import ValidationError
from .models import County, PremiseType, RequestType, TicketIntake

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
_NON_DIGITS_RE = re.compile(r"\D")

_MAX_LENGTHS = {
    "first_name": 50,
    "last_name": 50,
    "email": 255,
    "street_name": 255,
    "existing_address": 200,
    "additional_info": 1000,
    "property_id": 100,
    "closest_intersection": 255,
    "subdivision": 255,
    "lot_number": 50,
}
_OPTIONAL_TEXT = (
    "existing_address",
    "additional_info",
    "property_id",
    "closest_intersection",
    "subdivision",
    "lot_number",
)

E = TypeVar("E", bound=Enum)


def normalize_phone(value: Any) -> str | None:
    """Keep a phone number only when exactly ten digits remain."""

    if value is None:
        return None
    digits = _NON_DIGITS_RE.sub("", str(value))
    return digits if len(digits) == 10 else None


def _text(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _enum(data: Mapping[str, Any], key: str, enum_type: type[E], problems: list[str]) -> E | None:
    value = data.get(key)
    if value is None or value == "":
        problems.append(f"{key} is required")
        return None
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        problems.append(f"{key} must be one of: {allowed}")
        return None


def _coordinate(data: Mapping[str, Any], key: str, problems: list[str]) -> float | None:
    value = data.get(key)
    if value is None or value == "":
        problems.append(f"{key} is required")
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        problems.append(f"{key} must be a number")
        return None


def validate_intake(data: Mapping[str, Any] | TicketIntake) -> TicketIntake:
    """Validate front desk intake data and return a normalized :class:`TicketIntake`.

    Every problem found is reported in a single :class:`ValidationError`.
    """

    if isinstance(data, TicketIntake):
        data = asdict(data)

    problems: list[str] = []

    first_name = _text(data, "first_name")
    last_name = _text(data, "last_name")
    email = _text(data, "email")
    street_name = _text(data, "street_name")
    for key, value in (
        ("first_name", first_name),
        ("last_name", last_name),
        ("email", email),
        ("street_name", street_name),
    ):
        if value is None:
            problems.append(f"{key} is required")
    if email is not None and not EMAIL_RE.match(email):
        problems.append("email must be a valid email address")

    request_type = _enum(data, "request_type", RequestType, problems)
    premise_type = _enum(data, "premise_type", PremiseType, problems)
    county = _enum(data, "county", County, problems)
    x_coordinate = _coordinate(data, "x_coordinate", problems)
    y_coordinate = _coordinate(data, "y_coordinate", problems)

    optional = {key: _text(data, key) for key in _OPTIONAL_TEXT}

    lengths = {
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "street_name": street_name,
        **optional,
    }
    for key, limit in _MAX_LENGTHS.items():
        value = lengths.get(key)
        if value is not None and len(value) > limit:
            problems.append(f"{key} cannot be more than {limit} characters")

    if problems:
        raise ValidationError("Invalid ticket intake: " + "; ".join(problems), problems=problems)

    return TicketIntake(
        first_name=first_name,  # type: ignore[arg-type]
        last_name=last_name,  # type: ignore[arg-type]
        email=email,  # type: ignore[arg-type]
        request_type=request_type,  # type: ignore[arg-type]
        premise_type=premise_type,  # type: ignore[arg-type]
        county=county,  # type: ignore[arg-type]
        street_name=street_name,  # type: ignore[arg-type]
        x_coordinate=x_coordinate,  # type: ignore[arg-type]
        y_coordinate=y_coordinate,  # type: ignore[arg-type]
        mobile_phone=normalize_phone(data.get("mobile_phone")),
        landline_phone=normalize_phone(data.get("landline_phone")),
        **optional,
    )
