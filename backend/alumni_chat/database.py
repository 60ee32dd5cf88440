"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator

from alumni_chat.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """Extra engine arguments for the configured backend."""
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    options = {"connect_args": {"check_same_thread": False}}
    # In-memory SQLite lives inside one connection; share it across sessions
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# Create database engine
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url)
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.

    Usage:
        @router.get("/conversations")
        def list_conversations(db: Session = Depends(get_db)):
            return ConversationStore(db).list_for_user(user.id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
