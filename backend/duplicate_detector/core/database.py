import logging
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from duplicate_detector.core.config import settings

logger = logging.getLogger(__name__)

# pool_pre_ping=True validates connections before use, so a restarted
# PostgreSQL container does not surface as a failed request.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=15
)

# SessionLocal is a factory for new Session objects
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all declarative SQLAlchemy models
Base = declarative_base()


def init_db():
    """
    Verifies the database is reachable at startup.
    Tables themselves are created by Alembic migrations, not here.
    """
    try:

        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))

        logger.info("Database connection verified.")

    except Exception as e:

        logger.error(f"Failed to reach the database: {e}")

        raise e


def get_db():
    """
    FastAPI dependency function to provide a database session per request.
    Yields a session and closes it after the HTTP request completes.
    """
    db = SessionLocal()
    try:

        yield db

    finally:

        db.close()
