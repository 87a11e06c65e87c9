"""Business logic services for the make2manage web service."""

from web.services.session_service import (
    SessionNotFound,
    SessionService,
    get_session_service,
    reset_session_service,
)

__all__ = ["SessionNotFound", "SessionService", "get_session_service", "reset_session_service"]
