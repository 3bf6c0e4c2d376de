import os
from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from bazaar import config

_engine = None


def build_engine(url: str):
    if url.startswith("sqlite"):
        # in-memory sqlite must share a single connection across threads
        pool_args = {"poolclass": StaticPool} if ":memory:" in url else {}
        return create_engine(url, echo=False, connect_args={"check_same_thread": False}, **pool_args)

    return create_engine(url, echo=False, pool_pre_ping=True)


def get_engine():
    global _engine

    if _engine is None:
        _engine = build_engine(os.getenv("DATABASE_URL", config.DATABASE_URL))

    return _engine


def create_db_and_tables(engine=None):
    # models must be imported so their tables are registered on the metadata
    from bazaar.models import admin_log, listing, recently_viewed, report, saved_item, system_settings, user  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())
