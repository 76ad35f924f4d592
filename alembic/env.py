from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
import os

from pedido_bot.repo.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# metadata de los modelos para --autogenerate
target_metadata = Base.metadata

def _url() -> str | None:
    return os.environ.get("PB_DATABASE_URL")

def run_migrations_offline():
    context.configure(
        url=_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    connectable = engine_from_config(
        {}, prefix="sqlalchemy.", poolclass=pool.NullPool, url=_url()
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
