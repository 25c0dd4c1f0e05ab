from slowapi import Limiter
from slowapi.util import get_remote_address

from kpi_backend.core.config import settings

# Applied to every route through SlowAPIMiddleware; disabled under test
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.environment != "testing",
)
