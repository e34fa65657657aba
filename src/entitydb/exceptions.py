"""
Entity mapping exception classes.
"""
import sqlite3

import pymysql.err
import sqlalchemy.exc


class DatabaseError(Exception):
    """Base class for all entitydb errors.
    """


class ConfigurationError(DatabaseError):
    """Invalid or missing declarative metadata, or a forbidden schema operation.

    Always fatal: never caught and degraded by the engine.
    """


class ConnectivityError(DatabaseError):
    """Error acquiring a connection or executing a statement.
    """


class ValidationError(DatabaseError):
    """Error in caller-supplied input.
    """


class DecodeError(DatabaseError):
    """A single column value could not be converted to its field type.
    """

    def __init__(self, message: str, field: str | None = None,
                 column: str | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.column = column


DbConnectionError = (
    sqlalchemy.exc.DBAPIError,
    sqlalchemy.exc.TimeoutError,
    pymysql.err.MySQLError,
    sqlite3.Error,
    ConnectivityError,
    )
