"""Configuration and logging for the Address Desk service."""
