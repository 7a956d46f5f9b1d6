"""Alembic environment. Migrations are hand-written raw SQL (op.execute).

The ORM mirrors are registered on Base.metadata so `alembic check` reports
drift between them and the migrated schema.

The database URL comes from settings.DATABASE_URL unless overridden with
`alembic -x db_url=postgresql+asyncpg://... upgrade head`.
"""
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from config.settings import settings
from src.pm_account.infrastructure import db_models as _account_models  # noqa: F401
from src.pm_common.database import Base
from src.pm_gateway.user import db_models as _user_models  # noqa: F401
from src.pm_market.infrastructure import db_models as _market_models  # noqa: F401
from src.pm_order.infrastructure import db_models as _order_models  # noqa: F401
from src.pm_payment.infrastructure import db_models as _payment_models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url", settings.DATABASE_URL)


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = create_async_engine(_database_url())
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
