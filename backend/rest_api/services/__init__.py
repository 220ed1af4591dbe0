"""
Services module for business logic.

- domain/: application services (sessions, orders, bills) and the pure
  aggregate logic they orchestrate (pricing, order/session state machines)
- payments/: MoMo gateway client, circuit breaker, payment coordinator
- events/: post-commit notification fan-out

Usage:
    from rest_api.services.domain import SessionService
    service = SessionService(db, notifier, background_tasks)
    session = service.create_session(table_id, actor)
"""
