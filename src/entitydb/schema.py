"""
Schema synchronization: create entity tables that do not exist yet.

Existence is checked through the engine's own `find`, against the
information schema table listing:

    SELECT * FROM information_schema.TABLES
    WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? LIMIT 1

then, per entity:

- absent, `create=True`   -> CREATE TABLE IF NOT EXISTS ..., True on success
- absent, `create=False`  -> ConfigurationError
- present, ModifyType.NONE    -> nothing modified, False
- present, ModifyType.COMPARE -> information schema rows are logged, True.
  No ALTER is ever issued; comparing and altering columns is left open.
"""
import datetime
import logging

from entitydb.engine import Engine, FindResult
from entitydb.entity import ModifyType, column, table
from entitydb.exceptions import ConfigurationError, ConnectivityError
from entitydb.exceptions import ValidationError
from entitydb.metadata import EntityMetadata
from entitydb.query import Query
from entitydb.sql import quote_identifier, validate_identifier

__all__ = [
    'InformationSchemaTable',
    'SchemaSynchronizer',
    'build_column_definitions',
    'build_create_table',
]

logger = logging.getLogger(__name__)


@table(name='information_schema.TABLES', create=False)
class InformationSchemaTable:
    """One row of the information schema table listing.
    """
    table_catalog: str | None = column('TABLE_CATALOG', default=None)
    table_schema: str | None = column('TABLE_SCHEMA', default=None)
    table_name: str | None = column('TABLE_NAME', default=None)
    table_type: str | None = column('TABLE_TYPE', default=None)
    engine: str | None = column('ENGINE', default=None)
    table_rows: int | None = column('TABLE_ROWS', default=None)
    create_time: datetime.datetime | None = column('CREATE_TIME', default=None)
    table_collation: str | None = column('TABLE_COLLATION', default=None)
    table_comment: str | None = column('TABLE_COMMENT', default=None)


def build_column_definitions(metadata: EntityMetadata) -> str:
    """Render the column list of CREATE TABLE for `metadata`.

    Columns without a codec are left out. The auto-increment key carries
    `AUTO_INCREMENT`, and a `PRIMARY KEY` clause closes the list when the
    entity has a mapped primary key:

        `id` INT(11) AUTO_INCREMENT, `name` VARCHAR(32), PRIMARY KEY (`id`)

    Raises
        ConfigurationError: If the entity has no mapped column at all
    """
    definitions = []
    primary_column = None
    for spec in metadata.mapped_columns():
        definition = f'{quote_identifier(spec.column_name)} {spec.codec.column_type(spec.max_length)}'
        if spec.is_primary:
            primary_column = spec.column_name
            if spec.auto_increment:
                definition += ' AUTO_INCREMENT'
        definitions.append(definition)

    if not definitions:
        raise ConfigurationError(f'{metadata.entity.__name__} has no mapped columns')

    if primary_column is not None:
        definitions.append(f'PRIMARY KEY ({quote_identifier(primary_column)})')
    return ', '.join(definitions)


def build_create_table(metadata: EntityMetadata, storage_engine: str = 'InnoDB',
                       charset: str = 'utf8') -> str:
    """Generate the CREATE TABLE statement for an entity.
    """
    return (f'CREATE TABLE IF NOT EXISTS {quote_identifier(metadata.table_name)} '
            f'({build_column_definitions(metadata)}) '
            f'ENGINE={storage_engine} DEFAULT CHARSET={charset}')


class SchemaSynchronizer:
    """Reconciles entity declarations with the live schema of `database`.

    Args:
        engine: Engine used for the existence check and the DDL
        database: Schema searched for unqualified table names
        storage_engine: Table engine written into CREATE TABLE
        charset: Default charset written into CREATE TABLE
    """

    def __init__(self, engine: Engine, database: str, storage_engine: str = 'InnoDB',
                 charset: str = 'utf8') -> None:
        try:
            validate_identifier(storage_engine)
            validate_identifier(charset)
        except ValidationError as err:
            raise ConfigurationError(f'Invalid table options: {err}') from err
        self.engine = engine
        self.database = database
        self.storage_engine = storage_engine
        self.charset = charset

    def _locate(self, metadata: EntityMetadata) -> tuple[str, str]:
        """Split the table name into (schema, table).
        """
        schema, _, name = metadata.table_name.rpartition('.')
        return schema or self.database, name

    def describe(self, cls: type) -> FindResult:
        """Look the entity's table up in the information schema.
        """
        schema, name = self._locate(self.engine.metadata_for(cls))
        query = Query().where('TABLE_SCHEMA', schema).where('TABLE_NAME', name).limit(1)
        return self.engine.find_result(InformationSchemaTable, query)

    def table_exists(self, cls: type) -> bool:
        """Whether the entity's table exists.

        Raises
            ConnectivityError: If the information schema could not be read
        """
        result = self.describe(cls)
        if result.error is not None:
            raise result.error
        return len(result) > 0

    def create_table(self, cls: type) -> bool:
        """Execute CREATE TABLE IF NOT EXISTS for the entity.

        Returns
            True once the statement ran, False if it failed (failure reported)
        """
        metadata = self.engine.metadata_for(cls)
        sql = build_create_table(metadata, self.storage_engine, self.charset)
        logger.debug(f'Creating table for {cls.__name__}: {sql}')
        try:
            self.engine.execute(sql)
        except ConnectivityError as err:
            self.engine.reporter.report(err, f'create table {metadata.table_name}')
            return False
        logger.info(f'Created table {metadata.table_name}')
        return True

    def update_table(self, cls: type) -> bool:
        """Create or reconcile the table of `cls`.

        Returns
            Whether anything was modified (or compared, for ModifyType.COMPARE)

        Raises
            ConfigurationError: If the table is absent and the entity forbids
            creating it, or the entity declaration is invalid
        """
        metadata = self.engine.metadata_for(cls)
        result = self.describe(cls)
        if result.error is not None:
            return False

        if not result.records:
            if not metadata.create:
                raise ConfigurationError(
                    f'Table {metadata.table_name} for {cls.__name__} does not exist '
                    'and its declaration forbids creating it')
            return self.create_table(cls)

        if metadata.modify is ModifyType.NONE:
            logger.debug(f'Table {metadata.table_name} exists, nothing modified')
            return False

        logger.info(f'Results: {len(result)}')
        for i, row in enumerate(result, 1):
            logger.info(f' {i} -> {row}')
        return True
