"""
Builds the configured TableStore backend.
"""

import logging

from shipflow.config import PipelineConfig
from shipflow.interfaces import TableStore
from shipflow.storage.memory_store import InMemoryTableStore
from shipflow.storage.sql_store import PostgresTableStore, SQLiteTableStore

logger = logging.getLogger(__name__)


def build_store(config: PipelineConfig, initialize: bool = True) -> TableStore:
    """Create the store for ``config.store.backend`` and its tables."""
    backend = config.store.backend
    table_names = config.sheets.all_names()

    if backend == 'memory':
        store = InMemoryTableStore()
        for name in table_names:
            store.create_table(name)
    elif backend == 'postgres':
        store = PostgresTableStore(config.store.database_url)
        if initialize:
            store.initialize(table_names)
    else:
        store = SQLiteTableStore(config.store.sqlite_path)
        if initialize:
            store.initialize(table_names)

    logger.info(f"Using {backend} table store")
    return store
