# fintrack/database.py

import logging

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE clauses unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(db_url: str) -> Engine:
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(db_url, pool_pre_ping=True)


def make_session_factory(engine: Engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine, session_factory):
    """Create missing tables and the default global categories."""
    # models must be imported so their tables are registered on Base
    from . import models
    from .default_categories import DEFAULT_CATEGORIES

    Base.metadata.create_all(bind=engine)

    db = session_factory()
    try:
        existing = {
            (c.name, c.type)
            for c in db.query(models.Category).filter(models.Category.user_id.is_(None)).all()
        }
        added = 0
        for cat in DEFAULT_CATEGORIES:
            key = (cat["name"], models.EntryType(cat["type"]))
            if key in existing:
                continue
            db.add(models.Category(name=cat["name"], type=key[1], user_id=None))
            added += 1
        db.commit()
        if added:
            logger.info("Seeded %d default categories", added)
    finally:
        db.close()


# Dependency to get DB session
def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
