"""
Shared module for code used by the REST API and its workers.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging, request ids, reference masking
  - constants.py: Status vocabularies, payment methods, limits

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit()
  - events/: Redis pub/sub, event routing

- shared.security: Caller identity and rate limiting
  - actor.py: Actor resolved from gateway headers
  - rate_limit.py: slowapi limiter for payment endpoints

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Request/response Pydantic schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, SessionStatus
    from shared.utils.exceptions import NotFoundError, ForbiddenError
"""
