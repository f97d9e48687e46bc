"""Address Desk: address assignment ticket workflow service."""
