"""Domain Interfaces for dependency inversion.

These interfaces define contracts that the infrastructure layer implements,
keeping the auth orchestrator independent of the database and the mailer.
"""

from .email import IEmailDispatcher
from .repositories import ICredentialRepository

__all__ = ["ICredentialRepository", "IEmailDispatcher"]
