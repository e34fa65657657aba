"""
Typed mapping between dataclass entities and rows of a MySQL-family database.

    from dataclasses import dataclass
    import entitydb as edb

    @edb.table(name='users')
    @dataclass
    class User:
        id: int = edb.primary(auto_increment=True)
        name: str = edb.column(max_length=32, default='')

    with edb.connect(hostname='localhost', database='app', username='app') as db:
        db.update_table(User)
        alice = db.find(User, edb.Query().where('name', 'alice').limit(1))
"""
__version__ = '0.1.0'

from entitydb.codecs import Codec, CodecRegistry, default_codecs
from entitydb.database import Database, connect
from entitydb.engine import Engine, FindResult, LoggingReporter, Reporter
from entitydb.entity import ModifyType, column, primary, table, transient
from entitydb.exceptions import ConfigurationError, ConnectivityError
from entitydb.exceptions import DatabaseError, DbConnectionError, DecodeError
from entitydb.exceptions import ValidationError
from entitydb.metadata import ColumnSpec, EntityMetadata, MetadataRegistry
from entitydb.options import Credentials, Driver, load_credentials
from entitydb.pool import ConnectionPool
from entitydb.query import Query
from entitydb.schema import InformationSchemaTable, SchemaSynchronizer
from entitydb.schema import build_create_table

__all__ = [
    'connect',
    'Database',
    'Engine',
    'FindResult',
    'Reporter',
    'LoggingReporter',
    'Query',
    'table',
    'column',
    'primary',
    'transient',
    'ModifyType',
    'Codec',
    'CodecRegistry',
    'default_codecs',
    'ColumnSpec',
    'EntityMetadata',
    'MetadataRegistry',
    'Credentials',
    'Driver',
    'load_credentials',
    'ConnectionPool',
    'InformationSchemaTable',
    'SchemaSynchronizer',
    'build_create_table',
    'DatabaseError',
    'ConfigurationError',
    'ConnectivityError',
    'DecodeError',
    'ValidationError',
    'DbConnectionError',
]
