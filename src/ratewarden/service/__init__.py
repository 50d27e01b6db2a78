"""FastAPI integration: rate-limit dependency and operator admin API."""

from ratewarden.service.app import create_app
from ratewarden.service.dependencies import client_key, get_limiter, rate_limit

__all__ = ["client_key", "create_app", "get_limiter", "rate_limit"]
