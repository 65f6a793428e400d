import sys
from os import path
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

# 1. Add the backend directory to sys.path so Alembic can find the models
sys.path.append(path.dirname(path.dirname(path.abspath(__file__))))

from duplicate_detector.core.config import settings
from duplicate_detector.core.database import Base

from duplicate_detector.models.users import User
from duplicate_detector.models.sessions import UserSession
from duplicate_detector.models.projects import Project
from duplicate_detector.models.patterns import CodePattern
from duplicate_detector.models.duplicates import DuplicateGroup, PatternGroup

config = context.config

# 2. Setup logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# 3. Set the target metadata for autogenerate
target_metadata = Base.metadata

def run_migrations_online():
    """
    Run migrations in 'online' mode.
    Uses the DATABASE_URL defined in our settings.
    """
    configuration = config.get_section(config.config_ini_section)
    configuration["sqlalchemy.url"] = settings.DATABASE_URL

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True
        )

        with context.begin_transaction():
            context.run_migrations()

run_migrations_online()
