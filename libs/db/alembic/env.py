# ruff: noqa: I001
"""
Alembic environment for the ``backoffice_db`` library.

The URL is ``DATABASE_URL`` (a ``.env`` found from the working directory is
loaded first, without overriding the shell) or ``sqlalchemy.url`` from
``alembic.ini``. SQLite targets run in batch mode so ALTERs in later revisions
work there too.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

import backoffice_db

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = backoffice_db.metadata


def _database_url() -> str:
    # Works from the repo root and from libs/db alike.
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Provide it via environment or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
    }


def run_migrations_offline(url: str) -> None:
    context.configure(url=url, literal_binds=True, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


_url = _database_url()
logger.info(
    "alembic:env backend=%s tables=%d",
    make_url(_url).get_backend_name(),
    len(target_metadata.tables),
)

if context.is_offline_mode():
    run_migrations_offline(_url)
else:
    run_migrations_online(_url)
