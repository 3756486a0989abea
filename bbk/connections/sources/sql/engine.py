from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

from ..._engine_cache import get_or_create_engine
from ..._logging import get_logger

LOGGER = get_logger("sources.sql.engine")


def get_sql_engine(database_url: str, reuse: bool = True) -> Engine:
    """Create or reuse an engine for any SQLAlchemy URL (postgresql+psycopg, sqlite, ...)."""
    url = make_url(database_url)
    LOGGER.info("Resolving SQL engine for %s", url.render_as_string(hide_password=True))

    def factory() -> Engine:
        if url.get_backend_name() == "sqlite":
            return create_engine(url, pool_pre_ping=True)
        return create_engine(url, pool_pre_ping=True, pool_size=2, max_overflow=4, pool_timeout=30)

    return get_or_create_engine(database_url, factory, reuse=reuse)


def test_sql_connection(database_url: str, reuse: bool = True, raise_on_error: bool = False) -> bool:
    engine = None
    try:
        engine = get_sql_engine(database_url, reuse=reuse)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception:
        LOGGER.exception("SQL connection test failed")
        if raise_on_error:
            raise
        return False
    finally:
        if engine is not None and not reuse:
            engine.dispose()
