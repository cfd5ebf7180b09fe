"""
Alembic environment. The URL always comes from app settings (DATABASE_URL), never alembic.ini.

Migrations target Postgres; SQLite URLs run in batch mode so ALTERs are emulated by table copy.
"""
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

load_dotenv()

from app.config import settings
from app.db.base import Base
from app.db.tables import ALL_TABLE_NAMES
import app.models  # noqa: F401  registers every model on Base.metadata

# Models and the table list must agree before autogenerate or upgrade runs.
_registered = set(Base.metadata.tables)
_expected = set(ALL_TABLE_NAMES)
if _registered != _expected:
    raise RuntimeError(
        f"Model tables {sorted(_registered)} do not match app.db.tables.ALL_TABLE_NAMES {sorted(_expected)}; "
        f"missing models: {sorted(_expected - _registered)}, unlisted models: {sorted(_registered - _expected)}"
    )

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", settings.database_url)


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(settings.database_url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
