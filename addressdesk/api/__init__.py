"""HTTP surface of the Address Desk service."""
