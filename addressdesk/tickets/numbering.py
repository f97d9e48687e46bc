from __future__ import annotations

from datetime import datetime


def ticket_number(created_at: datetime, attempt: int = 0) -> str:
    """Return the ``YYMMDDHHMMSS`` number for a ticket created at ``created_at``.

    Uses the wall clock of ``created_at`` as given. A positive ``attempt``
    appends a two digit counter so that tickets created within the same
    second can still be numbered uniquely.
    """

    base = created_at.strftime("%y%m%d%H%M%S")
    if attempt <= 0:
        return base
    return f"{base}-{attempt:02d}"
