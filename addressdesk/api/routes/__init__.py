"""Route modules exposed by the API package."""

from . import ping, signatures, staff, tickets

__all__ = ["ping", "signatures", "staff", "tickets"]
