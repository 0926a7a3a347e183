"""Database initialization script."""

from src.signin.core.services.database.db_session import DbSessionService
from src.signin.runtime.context import AppContext, load_context


def init_db(context: AppContext | None = None) -> None:
    """Create all database tables."""
    context = context or load_context()
    database_service = DbSessionService(context.config)
    try:
        database_service.create_all()
    finally:
        database_service.dispose()


if __name__ == "__main__":
    init_db()
