"""Centralized cache key naming for the auth service.

Every Redis key the service reads or writes is built here so the layout stays
consistent with the other services sharing the same Redis instance.
"""


class CacheKeys:
    AUTH_PREFIX = "auth"
    RATE_LIMIT_PREFIX = "rate_limit"

    @classmethod
    def auth_session(cls, session_id: str) -> str:
        return f"{cls.AUTH_PREFIX}:session:{session_id}"

    @classmethod
    def auth_user_sessions(cls, user_id: str) -> str:
        return f"{cls.AUTH_PREFIX}:user_sessions:{user_id}"

    @classmethod
    def auth_refresh_token(cls, token_id: str) -> str:
        return f"{cls.AUTH_PREFIX}:refresh:{token_id}"

    @classmethod
    def auth_blacklist(cls, token_hash: str) -> str:
        return f"{cls.AUTH_PREFIX}:blacklist:{token_hash}"

    @classmethod
    def failed_attempts(cls, user_id: str) -> str:
        return f"{cls.AUTH_PREFIX}:failed_attempts:{user_id}"

    @classmethod
    def account_lockout(cls, user_id: str) -> str:
        return f"{cls.AUTH_PREFIX}:account_lockout:{user_id}"

    @classmethod
    def rate_limit(cls, action: str, identifier: str) -> str:
        return f"{cls.RATE_LIMIT_PREFIX}:{action}:{identifier}"
