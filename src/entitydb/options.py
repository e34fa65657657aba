"""
Connection credentials and pool settings.

Credentials can be given directly, as a dict, as keyword arguments, as the
path of an env file, or read from `ENTITYDB_*` environment variables:

    credentials = load_credentials({'hostname': 'db', 'database': 'app'})
    credentials = load_credentials('/etc/app/db.env', timeout=10)
    credentials = load_credentials()    # ENTITYDB_HOSTNAME, ENTITYDB_DATABASE, ...
"""
import logging
from enum import Enum
from typing import Any

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

__all__ = ['Driver', 'Credentials', 'load_credentials']


class Driver(str, Enum):
    MYSQL = 'mysql'
    SQLITE = 'sqlite'


class Credentials(BaseSettings):
    """Immutable connection settings consumed by `ConnectionPool`.

    supported driver names: `mysql`, `sqlite`

    Connection pooling options:
    - pool_size: Connections kept open in the pool (default: 5)
    - pool_max_overflow: Extra connections allowed under load (default: 10)
    - pool_recycle: Seconds before a pooled connection is replaced (default: 300)
    - timeout: Seconds to wait for a connection, both when connecting and
      when waiting on a full pool (default: 30)
    - workers: Threads used by `Database.find_async` (default: 4)

    Env files are only read when one is named, see `load_credentials`.
    """

    model_config = SettingsConfigDict(
        env_prefix='ENTITYDB_',
        env_file=None,
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        frozen=True,
    )

    drivername: Driver = Driver.MYSQL
    hostname: str = 'localhost'
    port: int = 3306
    database: str = ''
    username: str | None = None
    password: SecretStr | None = None
    timeout: int = 30
    pool_size: int = 5
    pool_max_overflow: int = 10
    pool_recycle: int = 300
    workers: int = 4

    @field_validator('port')
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f'port must be between 1 and 65535, got {value}')
        return value

    @field_validator('timeout', 'pool_size', 'workers')
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f'must be positive, got {value}')
        return value

    @model_validator(mode='after')
    def _check_database(self) -> 'Credentials':
        if not self.database:
            raise ValueError('database is required')
        return self

    def __str__(self) -> str:
        if self.drivername is Driver.SQLITE:
            return f'sqlite:{self.database}'
        return f'{self.drivername.value}://{self.username or ""}@{self.hostname}:{self.port}/{self.database}'


def load_credentials(options: 'Credentials | dict[str, Any] | str | None' = None,
                     **kw: Any) -> Credentials:
    """Build `Credentials` from any of the supported sources.

    Args:
        options: Can be:
                - Credentials object (keyword arguments override its fields)
                - Dictionary of options
                - String path to an env file
                - None to read the environment only
        **kw: Additional keyword arguments to override options
    """
    if isinstance(options, Credentials):
        if not kw:
            return options
        return Credentials(**(options.model_dump() | kw))
    if isinstance(options, dict):
        return Credentials(**(options | kw))
    if isinstance(options, str):
        logger.debug(f'Loading credentials from {options}')
        return Credentials(_env_file=options, **kw)
    if options is None:
        return Credentials(**kw)
    raise TypeError(f'Unsupported credentials source: {type(options).__name__}')
