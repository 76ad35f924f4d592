"""Engine y SessionFactory de SQLAlchemy 2: Postgres (psycopg3) en producción, SQLite en tests."""
from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def create_db_engine(database_url: str) -> Engine:
    """Crea el engine según el backend de la URL.

    SQLite en memoria vive en una sola conexión: se comparte entre hilos con
    ``StaticPool`` (Flask atiende cada request en su propio hilo).
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def create_session_factory(database_url: str | Engine) -> sessionmaker:
    """:param database_url: URL completa de la base o un engine ya creado."""
    engine = database_url if isinstance(database_url, Engine) else create_db_engine(database_url)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
