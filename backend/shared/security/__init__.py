"""
Security module: actor resolution and rate limiting.
"""

from shared.security.actor import Actor, current_actor, require_actor
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "Actor",
    "current_actor",
    "require_actor",
    "limiter",
    "rate_limit_exceeded_handler",
]
