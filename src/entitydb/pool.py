"""
Connection pool provider backed by a SQLAlchemy engine.

SQLAlchemy is used only for connection management and pooling. The engine
hands out raw DBAPI connections (`engine.raw_connection()`); closing one
returns it to the pool.

    pool = ConnectionPool(credentials)
    pool.connect()
    connection = pool.acquire()
    try:
        ...
    finally:
        pool.release(connection)
    pool.close()
"""
import atexit
import logging
from collections.abc import Callable
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from entitydb.exceptions import ConnectivityError, DbConnectionError
from entitydb.options import Credentials, Driver

__all__ = ['ConnectionPool', 'create_url_from_options']

logger = logging.getLogger(__name__)


def create_url_from_options(credentials: Credentials,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert Credentials to a SQLAlchemy URL.

    Args:
        credentials: Credentials with connection parameters
        url_creator: Function used to create URL objects (default: sqlalchemy.URL.create)
    """
    if credentials.drivername is Driver.SQLITE:
        return url_creator(drivername='sqlite', database=credentials.database)

    if credentials.drivername is Driver.MYSQL:
        password = credentials.password.get_secret_value() if credentials.password else None
        return url_creator(
            drivername='mysql+pymysql',
            username=credentials.username,
            password=password,
            host=credentials.hostname,
            port=credentials.port,
            database=credentials.database,
            query={'connect_timeout': str(credentials.timeout), 'charset': 'utf8'},
        )

    raise ValueError(f'Unsupported database type: {credentials.drivername}')


class ConnectionPool:
    """Pool of DBAPI connections for one set of credentials.
    """

    def __init__(self, credentials: Credentials,
                 engine_factory: Callable[..., Engine] = sa.create_engine) -> None:
        self.credentials = credentials
        self.engine: Engine | None = None
        self._engine_factory = engine_factory

    @property
    def dialect(self) -> str:
        return self.credentials.drivername.value

    def is_connected(self) -> bool:
        return self.engine is not None

    def connect(self) -> None:
        """Create the pooled engine and register an exit hook closing it.

        Raises
            ConnectivityError: If the pool is already connected
        """
        if self.is_connected():
            raise ConnectivityError('Already connected to the database')

        url = create_url_from_options(self.credentials)
        engine_kwargs: dict[str, Any] = {'echo': False, 'pool_pre_ping': True}
        if self.credentials.drivername is Driver.MYSQL:
            engine_kwargs['pool_size'] = self.credentials.pool_size
            engine_kwargs['max_overflow'] = self.credentials.pool_max_overflow
            engine_kwargs['pool_recycle'] = self.credentials.pool_recycle
            engine_kwargs['pool_timeout'] = self.credentials.timeout

        self.engine = self._engine_factory(url, **engine_kwargs)
        atexit.register(self.close)
        logger.debug(f'Created connection pool for {self.credentials}')

    def acquire(self) -> Any:
        """Borrow a DBAPI connection from the pool.

        Raises
            ConnectivityError: If the pool is not initialised or no
            connection could be obtained
        """
        if not self.is_connected():
            raise ConnectivityError("Connection pool hasn't been initialised")
        try:
            return self.engine.raw_connection()
        except sa.exc.SQLAlchemyError as err:
            raise ConnectivityError(f'Could not acquire a connection: {err}') from err

    def release(self, connection: Any) -> None:
        """Return a borrowed connection to the pool.
        """
        try:
            connection.close()
        except (sa.exc.SQLAlchemyError, *DbConnectionError) as err:
            logger.warning(f'Error releasing connection: {err}')

    def close(self) -> None:
        """Dispose the engine and every pooled connection.
        """
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        atexit.unregister(self.close)
        logger.debug(f'Closed connection pool for {self.credentials}')
