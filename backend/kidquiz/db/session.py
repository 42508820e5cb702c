"""Session factory and the per-request session dependency."""

from collections.abc import Generator

from sqlalchemy.orm import Session, sessionmaker

from kidquiz.db.engine import engine

# Services commit explicitly; loaded rows stay readable after commit
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request; uncommitted work is rolled back on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
