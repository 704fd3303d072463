"""Database session management."""

from agenda_access.database.session import get_db_session

__all__ = ["get_db_session"]
