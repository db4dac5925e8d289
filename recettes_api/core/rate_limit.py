# Rate limiting - uses client IP address for rate limit key.
# Each application gets its own limiter (create_app puts it on app.state);
# the limit and the on/off switch come from that application's settings.

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from slowapi.wrappers import LimitGroup

from recettes_api.core.config import Settings


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def auth_limits(settings: Settings) -> LimitGroup:
    return LimitGroup(
        settings.AUTH_RATE_LIMIT,
        get_remote_address,
        scope="auth",
        per_method=False,
        methods=None,
        error_message=None,
        exempt_when=None,
        cost=1,
        override_defaults=False,
    )


def limit_auth_attempts(request: Request) -> None:
    """
    Dependency counting login / registration attempts per client address.
    Raises RateLimitExceeded once AUTH_RATE_LIMIT is used up.
    """
    limiter: Limiter = request.app.state.limiter
    if not limiter.enabled:
        return
    client = get_remote_address(request)
    for limit in auth_limits(request.app.state.settings):
        if not limiter.limiter.hit(limit.limit, client, limit.scope, request.url.path):
            raise RateLimitExceeded(limit)
