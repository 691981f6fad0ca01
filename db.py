# db.py

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool

from config import load_settings

# Importing the table models registers them on SQLModel.metadata
import models.records  # noqa: F401

settings = load_settings()
DATABASE_URL = settings.database_url


def make_engine(url: str, echo: bool = False):
    """
    Build an engine. In-memory SQLite gets a single shared connection
    so every session sees the same database.
    """
    if url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


engine = make_engine(DATABASE_URL, echo=settings.echo_sql)


def init_db(bind=None):
    """
    Create all tables in the database.
    Call this once at application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session(bind=None):
    """
    Return a new SQLModel Session.
    Use this to read/write patient and lab result records.
    """
    return Session(bind or engine)
