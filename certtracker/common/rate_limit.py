"""Rate limiting configuration using slowapi.

Routers import ``limiter`` for per-endpoint limits; main.py wires it into
the app state and registers the 429 handler.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Default: 60 requests/minute per client IP.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)

# Endpoint-specific limits
LOGIN_LIMIT = "10/minute"
CRON_LIMIT = "5/minute"
