from .auth_cache import AuthCacheService
from .keys import CacheKeys

__all__ = ["AuthCacheService", "CacheKeys"]
