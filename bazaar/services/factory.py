import logging

from bazaar import config
from bazaar.db.db import create_db_and_tables, get_engine
from bazaar.realtime.broker import ListingBroker
from bazaar.services.demo_store import DemoStore
from bazaar.services.sql_store import SQLStore
from bazaar.services.store import MarketStore

logger = logging.getLogger(__name__)

_broker = ListingBroker()
_store = None


def build_store(broker: ListingBroker) -> MarketStore:
    if config.is_backend_configured():
        engine = get_engine()
        create_db_and_tables(engine)
        logger.info("Using database backend")
        return SQLStore(engine, broker=broker)

    directory = config.get_demo_data_dir()
    logger.warning("DATABASE_URL not set, running in demo mode with storage in %s", directory)
    return DemoStore(directory, broker=broker)


def get_broker() -> ListingBroker:
    return _broker


def get_store() -> MarketStore:
    global _store

    if _store is None:
        _store = build_store(_broker)

    return _store


def set_store(store: MarketStore):
    global _store
    _store = store
