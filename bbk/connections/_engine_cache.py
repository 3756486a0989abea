"""SQLAlchemy engines shared by sync runs and webhook lookups, one per database URL."""

from threading import Lock
from typing import Callable

from sqlalchemy.engine import Engine, make_url

from ._logging import get_logger

_CACHE_LOCK = Lock()
_ENGINES: dict[str, Engine] = {}
LOGGER = get_logger("engine_cache")


def _url_key(database_url: str) -> str:
    # equivalent spellings of one URL share an engine
    return make_url(database_url).render_as_string(hide_password=False)


def get_or_create_engine(database_url: str, factory: Callable[[], Engine], *, reuse: bool) -> Engine:
    if not reuse:
        return factory()

    key = _url_key(database_url)
    with _CACHE_LOCK:
        engine = _ENGINES.get(key)
        if engine is None:
            engine = _ENGINES[key] = factory()
            LOGGER.info("Engine created for %s", make_url(key).render_as_string(hide_password=True))
        return engine


def dispose_all_engines() -> None:
    with _CACHE_LOCK:
        engines = list(_ENGINES.values())
        _ENGINES.clear()

    for engine in engines:
        engine.dispose()

    LOGGER.info("Disposed %s cached SQL engines", len(engines))
