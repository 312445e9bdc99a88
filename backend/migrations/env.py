# backend/migrations/env.py
from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from flask import current_app

# Alembic Config object (reads alembic.ini beside this file)
config = context.config

if config.config_file_name:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        # alembic.ini without logging sections; proceed without it.
        pass

logger = logging.getLogger("alembic.env")


def get_engine():
    return current_app.extensions["migrate"].db.engine


def get_engine_url() -> str:
    try:
        return get_engine().url.render_as_string(hide_password=False).replace("%", "%%")
    except AttributeError:
        return str(get_engine().url).replace("%", "%%")


config.set_main_option("sqlalchemy.url", get_engine_url())
target_db = current_app.extensions["migrate"].db


def get_metadata():
    if hasattr(target_db, "metadatas"):
        return target_db.metadatas[None]
    return target_db.metadata


def process_revision_directives(ctx, revision, directives):
    """Skip writing an autogenerate revision that would be empty."""
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No changes in schema detected.")


def run_migrations_offline():
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=get_metadata(),
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode."""
    conf_args = current_app.extensions["migrate"].configure_args or {}
    conf_args.setdefault("process_revision_directives", process_revision_directives)
    conf_args.setdefault("compare_type", True)

    connectable = get_engine()
    with connectable.connect() as connection:
        # SQLite cannot ALTER most constraints in place
        conf_args.setdefault("render_as_batch", connection.dialect.name == "sqlite")
        context.configure(
            connection=connection,
            target_metadata=get_metadata(),
            **conf_args,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
