# alembic/env.py

import sys
from os.path import abspath, dirname
# Добавляем путь к проекту, чтобы импорты работали
sys.path.insert(0, abspath(dirname(dirname(__file__))))

from logging.config import fileConfig
from sqlalchemy import engine_from_config
from sqlalchemy.pool import NullPool
from alembic import context

# Объект настроек, который читает .env
from procredit.core.config import settings
# Базовый класс моделей и все модели
from procredit.db.session import Base
from procredit.models.shop_config import ShopConfig
from procredit.models.shop_session import ShopSession
from procredit.models.processed_event import ProcessedEvent

target_metadata = Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = settings.DATABASE_URL
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    # URL берем из settings, а не из alembic.ini
    connectable = engine_from_config(
        {"sqlalchemy.url": settings.DATABASE_URL},
        prefix="sqlalchemy.",
        poolclass=NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
