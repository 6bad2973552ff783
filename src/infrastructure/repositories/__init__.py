"""Repository implementations for the infrastructure layer."""

from .credential_repository import CredentialRepository
from src.domain.interfaces.repositories import ICredentialRepository

__all__ = ["CredentialRepository", "ICredentialRepository"]
