"""
mkb.db.base

SQLAlchemy declarative base shared by all killboard tables.

Responsibilities:
- Deterministic constraint names shared by ORM metadata and Alembic revisions.
- A database-side UUID generator for primary key server defaults.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import MetaData, Uuid
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql.functions import FunctionElement

# Deterministic constraint names keep Alembic revisions and ORM metadata in sync.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class generated_uuid(FunctionElement):
    """
    Server-side UUID default, so rows inserted outside the ORM still get an id.

    Postgres uses `gen_random_uuid()`. SQLite has no UUID function; it gets 16
    random bytes as 32 lowercase hex chars, the layout SQLAlchemy's `Uuid`
    type stores there.
    """

    type = Uuid()
    inherit_cache = True


@compiles(generated_uuid)
def _generated_uuid_default(element: generated_uuid, compiler: Any, **kw: Any) -> str:
    return "gen_random_uuid()"


@compiles(generated_uuid, "sqlite")
def _generated_uuid_sqlite(element: generated_uuid, compiler: Any, **kw: Any) -> str:
    return "(lower(hex(randomblob(16))))"
