"""slowapi limiter setup. Generation is the expensive path, so only the resolve route is limited."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from desbuguei.config import Settings


def build_limiter(settings: Settings) -> Limiter:
    """One limiter per app, so each app's settings decide whether limits apply."""
    return Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
