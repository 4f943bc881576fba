from __future__ import annotations

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Store-assigned surrogate keys: BIGINT identity on PostgreSQL, INTEGER rowid
# on SQLite (only INTEGER PRIMARY KEY autoincrements there).
SurrogateId = BigInteger().with_variant(Integer(), "sqlite")


__all__ = ["Base", "SurrogateId"]
