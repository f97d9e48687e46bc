import pytest

from addressdesk.tickets.errors import ValidationError
from addressdesk.tickets.intake import normalize_phone, validate_intake
from addressdesk.tickets.models import County, PremiseType, RequestType

from conftest import make_intake


def test_validate_intake_returns_normalized_value():
    intake = validate_intake(make_intake(first_name="  Maria ", landline_phone="555-01"))

    assert intake.first_name == "Maria"
    assert intake.request_type == RequestType.NEW_ADDRESS
    assert intake.premise_type == PremiseType.RESIDENCE
    assert intake.county == County.HIDALGO
    assert intake.mobile_phone == "9565550134"
    assert intake.landline_phone is None
    assert intake.x_coordinate == pytest.approx(-98.2)


def test_validate_intake_reports_every_problem_together():
    data = make_intake(email="not-an-email", county="Cameron")
    del data["street_name"]
    del data["y_coordinate"]

    with pytest.raises(ValidationError) as exc:
        validate_intake(data)

    problems = exc.value.problems
    assert "email must be a valid email address" in problems
    assert "street_name is required" in problems
    assert "y_coordinate is required" in problems
    assert any(problem.startswith("county must be one of") for problem in problems)


def test_validate_intake_enforces_length_limits():
    with pytest.raises(ValidationError) as exc:
        validate_intake(make_intake(last_name="x" * 51, additional_info="y" * 1001))

    assert exc.value.problems == [
        "last_name cannot be more than 50 characters",
        "additional_info cannot be more than 1000 characters",
    ]


@pytest.mark.parametrize(
    "field,limit",
    [
        ("street_name", 255),
        ("property_id", 100),
        ("closest_intersection", 255),
        ("subdivision", 255),
        ("lot_number", 50),
    ],
)
def test_validate_intake_matches_column_widths(field, limit):
    assert getattr(validate_intake(make_intake(**{field: "a" * limit})), field) == "a" * limit

    with pytest.raises(ValidationError) as exc:
        validate_intake(make_intake(**{field: "a" * (limit + 1)}))

    assert exc.value.problems == [f"{field} cannot be more than {limit} characters"]


def test_validate_intake_rejects_non_numeric_coordinates():
    with pytest.raises(ValidationError) as exc:
        validate_intake(make_intake(x_coordinate="east"))

    assert exc.value.problems == ["x_coordinate must be a number"]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(956) 555-0134", "9565550134"),
        ("956.555.0134", "9565550134"),
        ("+1 956 555 0134", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected

