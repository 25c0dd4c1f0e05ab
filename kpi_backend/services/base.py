import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kpi_backend.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def commit_or_raise(db: Session, action: str) -> None:
    """Commit the unit of work, rolling everything back if the write fails."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to {action}") from e


def flush_or_raise(db: Session, action: str) -> None:
    """Flush pending rows mid-transaction, rolling back if the write fails."""
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to {action}") from e
