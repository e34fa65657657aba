"""
Declarative entity mapping.

An entity is a dataclass decorated with `@table`. Every dataclass field is a
mapped column unless it is declared with `transient()`; `column()` and
`primary()` attach the column name, width and key flags to a field.

    @table(name='users')
    @dataclass
    class User:
        id: int = primary(auto_increment=True)
        name: str = column(max_length=32, default='')
        nickname: str = column('nick', max_length=16, default='')
        cache: dict = transient(default_factory=dict)

The declarations are only recorded here; `entitydb.metadata` validates them
and builds the immutable `EntityMetadata` once per type.
"""
import dataclasses
from dataclasses import MISSING, dataclass
from enum import Enum
from typing import Any

__all__ = [
    'ModifyType',
    'TableOptions',
    'ColumnOptions',
    'table',
    'column',
    'primary',
    'transient',
    'table_options',
    'column_options',
]

TABLE_ATTRIBUTE = '__entitydb_table__'
METADATA_KEY = 'entitydb'


class ModifyType(Enum):
    """Reconciliation policy for a table that already exists.
    """
    NONE = 'none'
    COMPARE = 'compare'


@dataclass(frozen=True)
class TableOptions:
    name: str | None = None
    create: bool = True
    modify: ModifyType = ModifyType.NONE


@dataclass(frozen=True)
class ColumnOptions:
    name: str | None = None
    max_length: int = 0
    primary: bool = False
    auto_increment: bool = False
    mapped: bool = True


DEFAULT_COLUMN = ColumnOptions()


def table(cls: type | None = None, *, name: str | None = None,
          create: bool = True, modify: ModifyType = ModifyType.NONE) -> Any:
    """Mark a class as an entity mapped to `name` (default: the class name).

    Classes that are not dataclasses yet are turned into one.

    Args:
        name: Table name, optionally qualified as `schema.table`
        create: Whether the schema synchronizer may create the table
        modify: Reconciliation policy when the table already exists
    """
    options = TableOptions(name=name, create=create, modify=ModifyType(modify))

    def decorator(cls: type) -> type:
        if not dataclasses.is_dataclass(cls):
            cls = dataclass(cls)
        setattr(cls, TABLE_ATTRIBUTE, options)
        return cls

    if cls is not None:
        return decorator(cls)
    return decorator


def _field(options: ColumnOptions, default: Any, default_factory: Any,
           **kwargs: Any) -> Any:
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[METADATA_KEY] = options
    return dataclasses.field(default=default, default_factory=default_factory,
                             metadata=metadata, **kwargs)


def column(name: str | None = None, *, max_length: int = 0,
           default: Any = MISSING, default_factory: Any = MISSING,
           **kwargs: Any) -> Any:
    """Declare a mapped field with an explicit column name and/or width.

    Extra keyword arguments go to `dataclasses.field`.
    """
    options = ColumnOptions(name=name, max_length=max_length)
    return _field(options, default, default_factory, **kwargs)


def primary(name: str | None = None, *, auto_increment: bool = False,
            max_length: int = 0, default: Any = MISSING,
            default_factory: Any = MISSING, **kwargs: Any) -> Any:
    """Declare the primary key field.

    Auto-increment keys default to None so records can be built before
    the database assigns the key.
    """
    if auto_increment and default is MISSING and default_factory is MISSING:
        default = None
    options = ColumnOptions(name=name, max_length=max_length, primary=True,
                            auto_increment=auto_increment)
    return _field(options, default, default_factory, **kwargs)


def transient(*, default: Any = MISSING, default_factory: Any = MISSING,
              **kwargs: Any) -> Any:
    """Declare a dataclass field that is not mapped to any column.
    """
    options = ColumnOptions(mapped=False)
    return _field(options, default, default_factory, **kwargs)


def table_options(cls: type) -> TableOptions | None:
    """Return the `@table` options declared directly on `cls`, or None.
    """
    return vars(cls).get(TABLE_ATTRIBUTE)


def column_options(field: dataclasses.Field) -> ColumnOptions:
    """Return the column declaration of a dataclass field.
    """
    return field.metadata.get(METADATA_KEY, DEFAULT_COLUMN)
