"""
Database facade tying credentials, pool, engine and schema synchronizer together.

    with entitydb.connect(hostname='db', database='app', username='app') as db:
        db.update_table(User)
        users = db.find(User, Query().where('name', 'alice'))
        future = db.find_async(User)
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Self, TypeVar

import pandas as pd

from entitydb.data import records_to_frame
from entitydb.engine import Engine, FindResult, Reporter
from entitydb.exceptions import ConnectivityError
from entitydb.metadata import MetadataRegistry
from entitydb.options import Credentials, load_credentials
from entitydb.pool import ConnectionPool
from entitydb.query import Query
from entitydb.schema import SchemaSynchronizer

__all__ = ['Database', 'connect']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Database:
    """Entity access to one database as the user named in `credentials`.

    Args:
        credentials: Connection settings
        registry: Metadata registry, a fresh one with the default codecs if omitted
        reporter: Receives recoverable failures, logged if omitted
        pool: Connection pool provider, built from `credentials` if omitted
    """

    def __init__(self, credentials: Credentials, registry: MetadataRegistry | None = None,
                 reporter: Reporter | None = None, pool: Any | None = None) -> None:
        if credentials is None:
            raise ValueError('Credentials cannot be None')
        self.credentials = credentials
        self.pool = pool if pool is not None else ConnectionPool(credentials)
        self.engine = Engine(self.pool, registry=registry, reporter=reporter)
        self.schema = SchemaSynchronizer(self.engine, credentials.database)
        self.executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if self.is_connected():
            self.disconnect()

    def is_connected(self) -> bool:
        return self.pool.is_connected()

    def connect(self) -> Self:
        """Open the connection pool and the worker threads for async finds.

        Raises
            ConnectivityError: If already connected
        """
        if self.is_connected():
            raise ConnectivityError('Already connected to the database')
        self.pool.connect()
        self.executor = ThreadPoolExecutor(max_workers=self.credentials.workers,
                                           thread_name_prefix='entitydb')
        logger.debug(f'Connected to {self.credentials}')
        return self

    def disconnect(self) -> None:
        """Close the pool and shut the worker threads down.

        Raises
            ConnectivityError: If already disconnected
        """
        if not self.is_connected():
            raise ConnectivityError('Database connection has already been disconnected')
        self.pool.close()
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None
        logger.debug(f'Disconnected from {self.credentials}')

    def find(self, cls: type[T], query: Query | None = None) -> list[T]:
        """Find all rows matching `query` as records of `cls`.

        An unreachable database yields an empty list; use `find_result`
        to tell "no rows" from "failed".
        """
        return self.engine.find(cls, query)

    def find_result(self, cls: type[T], query: Query | None = None) -> FindResult:
        return self.engine.find_result(cls, query)

    def find_frame(self, cls: type, query: Query | None = None) -> pd.DataFrame:
        """Find rows as a DataFrame with one column per mapped field.
        """
        return records_to_frame(self.engine.find(cls, query), self.engine.metadata_for(cls))

    def find_async(self, cls: type[T], query: Query | None = None) -> 'Future[list[T]]':
        """Run `find` on a worker thread.

        Raises
            ConnectivityError: If not connected
        """
        if self.executor is None:
            raise ConnectivityError("Connection hasn't been initialised")
        return self.executor.submit(self.engine.find, cls, query)

    def execute(self, sql: str, *args: Any) -> int:
        return self.engine.execute(sql, args)

    def table_exists(self, cls: type) -> bool:
        return self.schema.table_exists(cls)

    def update_table(self, cls: type) -> bool:
        """Create the table of `cls` if missing, see `SchemaSynchronizer.update_table`.
        """
        return self.schema.update_table(cls)


def connect(options: Credentials | dict[str, Any] | str | None = None,
            **kw: Any) -> Database:
    """Connect to a database and return the connected `Database`.

    Args:
        options: Can be:
                - Credentials object
                - String path to an env file
                - Dictionary of options
                - None, with options given as keyword arguments or
                  ENTITYDB_* environment variables
        **kw: Additional keyword arguments to override options
    """
    return Database(load_credentials(options, **kw)).connect()
