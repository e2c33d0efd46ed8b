"""
Alembic environment for the SpaceSync schema.

Autogenerated revisions render SQLModel's AutoString as ``sa.String`` so they
carry no sqlmodel import. Batch mode is switched on for SQLite, where ALTER
TABLE support is limited.
"""
from logging.config import fileConfig

from alembic import context
from alembic.autogenerate import renderers
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel
from sqlmodel.sql.sqltypes import AutoString

from spacesync.core.config import settings
import spacesync.models  # noqa: F401  registers every table on SQLModel.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


@renderers.dispatch_for(AutoString)
def render_auto_string(type_, autogen_context) -> str:
    autogen_context.imports.add("import sqlalchemy as sa")
    if type_.length:
        return f"sa.String(length={type_.length})"
    return "sa.String()"


def database_url() -> str:
    # create_db_and_tables() passes the engine URL explicitly
    return config.get_main_option("sqlalchemy.url") or settings.effective_database_url


def configure_options(**overrides) -> dict:
    options = {"target_metadata": SQLModel.metadata, "compare_type": True}
    options.update(overrides)
    return options


def run_offline() -> None:
    context.configure(**configure_options(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    ))
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(**configure_options(
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
        ))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
