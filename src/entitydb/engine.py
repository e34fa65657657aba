"""
Entity engine: runs queries on borrowed connections and maps rows to records.

Every call borrows its own connection from the pool and gives it back
before returning, so concurrent calls share nothing but the two read-only
registries (codecs and entity metadata).

Failure policy:
- ConfigurationError (bad entity declaration) always propagates.
- ConnectivityError (acquire or execute failed) is reported; `find_result`
  returns it in `FindResult.error`, `find` degrades to an empty list.
- DecodeError (one column value) is reported, the field keeps its default
  and the row is still returned; `find_result` lists them in
  `FindResult.decode_errors`.
"""
import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from entitydb.exceptions import ConnectivityError, DbConnectionError
from entitydb.exceptions import DecodeError, ValidationError
from entitydb.metadata import EntityMetadata, MetadataRegistry
from entitydb.query import Query
from entitydb.sql import build_select_sql, count_placeholders
from entitydb.sql import standardize_placeholders

__all__ = ['Engine', 'FindResult', 'LoggingReporter', 'Reporter', 'Statement']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Reporter(Protocol):
    """Receives recoverable failures. Fire and forget.
    """

    def report(self, error: BaseException, context: str) -> None: ...


class LoggingReporter:
    """Reports failures to the module logger, traceback included.
    """

    def report(self, error: BaseException, context: str) -> None:
        logger.error(f'{context}: {error}', exc_info=error)


class Statement:
    """SQL text with 1-based positional parameter slots.
    """

    def __init__(self, sql: str) -> None:
        self.sql = sql
        self.placeholders = count_placeholders(sql)
        self._params: dict[int, Any] = {}

    def bind(self, index: int, value: Any) -> None:
        if not 1 <= index <= self.placeholders:
            raise ValidationError(
                f'Parameter index {index} out of range (statement has {self.placeholders})')
        self._params[index] = value

    @property
    def params(self) -> tuple:
        """Bound values in placeholder order.

        Raises
            ValidationError: If any placeholder has no bound value
        """
        missing = [i for i in range(1, self.placeholders + 1) if i not in self._params]
        if missing:
            raise ValidationError(f'Unbound parameter(s) {missing} in: {self.sql}')
        return tuple(self._params[i] for i in range(1, self.placeholders + 1))

    def __repr__(self) -> str:
        return f'Statement({self.sql!r}, {self._params!r})'


@dataclass
class FindResult:
    """Outcome of a find: records plus what went wrong along the way.
    """
    records: list = field(default_factory=list)
    decode_errors: list[DecodeError] = field(default_factory=list)
    error: ConnectivityError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


def _as_connectivity_error(err: BaseException, message: str) -> ConnectivityError:
    if isinstance(err, ConnectivityError):
        return err
    error = ConnectivityError(f'{message}: {err}')
    error.__cause__ = err
    return error


class Engine:
    """Maps entity types onto tables of the database behind `pool`.

    Args:
        pool: Provider with `acquire()`, `release(connection)` and `dialect`
        registry: Entity metadata registry (its codecs are used for binding)
        reporter: Receives connectivity and decode failures
    """

    def __init__(self, pool: Any, registry: MetadataRegistry | None = None,
                 reporter: Reporter | None = None) -> None:
        self.pool = pool
        self.registry = registry if registry is not None else MetadataRegistry()
        self.codecs = self.registry.codecs
        self.reporter = reporter if reporter is not None else LoggingReporter()

    def metadata_for(self, cls: type) -> EntityMetadata:
        return self.registry.metadata_for(cls)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        """Borrow a connection, always giving it back.
        """
        connection = self.pool.acquire()
        try:
            yield connection
        finally:
            self.pool.release(connection)

    @contextmanager
    def _cursor(self, connection: Any, statement: Statement) -> Iterator[Any]:
        """Context manager for cursor lifecycle with SQL standardization.

        The parameter tuple is passed even when empty so `%s` drivers always
        format the statement and the doubled % signs collapse back.
        """
        sql = standardize_placeholders(statement.sql, self.pool.dialect)
        params = statement.params
        logger.debug(f'Executing: {sql} {params}')
        cursor = connection.cursor()
        try:
            cursor.execute(sql, params)
            yield cursor
        finally:
            cursor.close()

    def prepare(self, sql: str, values: Sequence[Any] = ()) -> Statement:
        """Bind `values` to the ? placeholders of `sql` in order.

        Each value is encoded by the codec of its exact type. Values without
        a codec (None included) are bound unchanged so the placeholders and
        values never drift apart.
        """
        statement = Statement(sql)
        for index, value in enumerate(values, 1):
            codec = self.codecs.lookup(type(value))
            if codec is None:
                statement.bind(index, value)
            else:
                codec.encode(statement, index, value)
        return statement

    def find(self, cls: type[T], query: Query | None = None) -> list[T]:
        """Return every row of the entity's table matching `query` as records.

        Degrades to an empty list when the database cannot be reached or
        the statement fails; the failure is sent to the reporter.

        Raises
            ConfigurationError: If `cls` is not a valid entity
        """
        return self.find_result(cls, query).records

    def find_result(self, cls: type[T], query: Query | None = None) -> FindResult:
        """Like `find` but keeps connectivity and decode failures visible.

        Raises
            ConfigurationError: If `cls` is not a valid entity
        """
        metadata = self.registry.metadata_for(cls)
        query = query if query is not None else Query()
        clause, values = query.render()
        statement = self.prepare(build_select_sql(metadata.table_name, clause), values)

        result = FindResult()
        try:
            with self._connection() as connection, self._cursor(connection, statement) as cursor:
                columns = [desc[0] for desc in cursor.description or ()]
                for values in cursor.fetchall():
                    instance = metadata.new_instance()
                    result.decode_errors.extend(
                        self._populate(metadata, instance, dict(zip(columns, values))))
                    result.records.append(instance)
        except DbConnectionError as err:
            error = _as_connectivity_error(err, f'Failed to find {cls.__name__}')
            self.reporter.report(error, f'find {cls.__name__} ({statement.sql})')
            return FindResult(error=error)

        logger.debug(f'Found {len(result)} {cls.__name__} record(s)')
        return result

    def populate(self, instance: Any, row: dict[str, Any]) -> list[DecodeError]:
        """Assign the columns of `row` to the matching fields of `instance`.

        Columns with no matching field or no codec are ignored. Returns the
        decode failures; the fields involved keep their current value.
        """
        metadata = self.registry.metadata_for(type(instance))
        return self._populate(metadata, instance, row)

    def _populate(self, metadata: EntityMetadata, instance: Any,
                  row: dict[str, Any]) -> list[DecodeError]:
        errors = []
        for column in row:
            spec = metadata.column_for(column)
            if spec is None or spec.codec is None:
                continue
            try:
                value = spec.codec.decode(row, metadata.entity, column)
            except DecodeError as err:
                err.field = spec.field_name
                self.reporter.report(
                    err, f'Error decoding {metadata.entity.__name__}.{spec.field_name}')
                errors.append(err)
                continue
            object.__setattr__(instance, spec.field_name, value)
        return errors

    def execute(self, sql: str, values: Sequence[Any] = ()) -> int:
        """Execute a single statement and commit it.

        Returns
            Affected row count as reported by the driver

        Raises
            ConnectivityError: If acquisition or execution fails
        """
        statement = self.prepare(sql, values)
        try:
            with self._connection() as connection:
                with self._cursor(connection, statement) as cursor:
                    rowcount = cursor.rowcount
                connection.commit()
        except ConnectivityError:
            raise
        except DbConnectionError as err:
            raise ConnectivityError(f'Statement failed: {err}') from err
        return rowcount
