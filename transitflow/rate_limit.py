from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings


# Shared so routers can tighten individual endpoints with @limiter.limit
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
