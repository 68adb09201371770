"""Service layer for business logic."""

from vaultmind.services.agent import VaultAgent, parse_triage_response

__all__ = [
    "VaultAgent",
    "parse_triage_response",
]
