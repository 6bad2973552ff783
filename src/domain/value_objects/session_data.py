"""Cached session snapshot written on login."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionData(BaseModel):
    """Session snapshot stored in the cache under the session id.

    Serialized with camelCase keys so the cache layout matches the other
    services reading the same Redis namespace.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(alias="userId")
    email: str
    username: str
    role: str
    permissions: List[str] = Field(default_factory=list)
    last_activity: datetime = Field(alias="lastActivity")
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    created_at: datetime = Field(alias="createdAt")

    def to_cache(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class RefreshTokenData(BaseModel):
    """Refresh-token metadata mirrored in the cache next to the durable row."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    token_id: str = Field(alias="tokenId")
    expires_at: datetime = Field(alias="expiresAt")
    created_at: datetime = Field(alias="createdAt")
    is_revoked: bool = Field(default=False, alias="isRevoked")

    def to_cache(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
