"""Database models and utilities."""

from .models import StaffTable, TicketHistoryTable, TicketTable

__all__ = [
    "StaffTable",
    "TicketHistoryTable",
    "TicketTable",
]
