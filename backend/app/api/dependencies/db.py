"""Database session dependency."""

import logging
from collections.abc import Generator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal

logger = logging.getLogger(__name__)


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session, committed when the handler returns cleanly.

    Import writes commit on their own; this final commit only covers reads
    and any work a handler leaves pending.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Rolling back request session after handler error")
        session.rollback()
        raise
    finally:
        session.close()
