from datetime import datetime, timedelta, timezone

from addressdesk.tickets.numbering import ticket_number


def test_ticket_number_uses_creation_wall_clock():
    created = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    assert ticket_number(created) == "240115090000"


def test_ticket_number_follows_the_given_timezone():
    central = timezone(timedelta(hours=-6))
    created = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc).astimezone(central)

    assert ticket_number(created) == "240115030000"


def test_retry_attempts_append_two_digit_suffix():
    created = datetime(2024, 12, 31, 23, 59, 58, tzinfo=timezone.utc)

    assert ticket_number(created, 0) == "241231235958"
    assert ticket_number(created, 1) == "241231235958-01"
    assert ticket_number(created, 12) == "241231235958-12"
