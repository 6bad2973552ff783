"""Infrastructure Services.

Concrete implementations of domain service interfaces that deal with external
integrations.
"""

from .email_dispatcher import LoggingEmailDispatcher

__all__ = ["LoggingEmailDispatcher"]
