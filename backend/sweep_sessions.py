"""
Deletes expired rows from the sessions table.

Meant to be run periodically by cron or a container scheduler:

    */15 * * * *  cd /srv/backend && python sweep_sessions.py
"""
import sys
import os
from typing import Callable, Optional

from sqlalchemy.orm import Session

sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from duplicate_detector.core.logging import setup_logging, get_logger
from duplicate_detector.services.sessions import sweep_expired

logger = get_logger(__name__)


def run_sweep(session_factory: Optional[Callable[[], Session]] = None) -> int:
    """
    Runs one sweep in its own database session.

    Args:
        session_factory: Defaults to the application's SessionLocal.

    Returns:
        Number of sessions removed.
    """
    if session_factory is None:
        from duplicate_detector.core.database import SessionLocal
        session_factory = SessionLocal

    db = session_factory()
    try:
        return sweep_expired(db)
    except Exception:
        db.rollback()
        logger.exception("Session sweep failed.")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging()
    removed = run_sweep()
    print(f"Removed {removed} expired sessions.")
