"""
Entity metadata extraction and caching.

`MetadataRegistry.metadata_for(cls)` validates the declarations of an entity
class once and caches the resulting immutable `EntityMetadata` for the
lifetime of the registry. Concurrent first lookups may each build the
metadata, but only the first stored instance is ever returned.
"""
import dataclasses
import logging
import operator
import sys
import threading
import types
import typing
from collections.abc import Iterator, Mapping
from dataclasses import MISSING, dataclass, field
from typing import Any

from cachetools import cachedmethod

from entitydb.codecs import Codec, CodecRegistry, default_codecs
from entitydb.entity import ModifyType, column_options, table_options
from entitydb.exceptions import ConfigurationError, ValidationError
from entitydb.sql import validate_identifier

logger = logging.getLogger(__name__)

__all__ = ['ColumnSpec', 'EntityMetadata', 'MetadataRegistry']


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    """Mapping of one entity field to one table column.
    """
    field_name: str
    column_name: str
    python_type: Any
    max_length: int = 0
    is_primary: bool = False
    auto_increment: bool = False
    codec: Codec | None = field(default=None, compare=False, repr=False)

    @property
    def has_codec(self) -> bool:
        return self.codec is not None


@dataclass(frozen=True)
class EntityMetadata:
    """Table name and ordered field-to-column mapping of an entity type.

    `columns` is keyed by field name in declaration order.
    """
    entity: type
    table_name: str
    columns: Mapping[str, ColumnSpec]
    create: bool = True
    modify: ModifyType = ModifyType.NONE
    _by_column: Mapping[str, ColumnSpec] = field(init=False, repr=False, compare=False)
    _by_column_lower: Mapping[str, ColumnSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'columns', types.MappingProxyType(dict(self.columns)))
        by_column = {spec.column_name: spec for spec in self.columns.values()}
        object.__setattr__(self, '_by_column', types.MappingProxyType(by_column))
        object.__setattr__(self, '_by_column_lower', types.MappingProxyType(
            {name.lower(): spec for name, spec in by_column.items()}))

    @property
    def primary_key(self) -> ColumnSpec | None:
        return next((spec for spec in self.columns.values() if spec.is_primary), None)

    def mapped_columns(self) -> list[ColumnSpec]:
        """Columns that have a codec, in declaration order.
        """
        return [spec for spec in self.columns.values() if spec.has_codec]

    def column_for(self, column_name: str) -> ColumnSpec | None:
        """Find the column owning `column_name`.

        Exact match first, then case-insensitive since MySQL column names are.
        """
        spec = self._by_column.get(column_name)
        if spec is None:
            spec = self._by_column_lower.get(column_name.lower())
        return spec

    def new_instance(self) -> Any:
        """Create an instance without running `__init__`.

        Every dataclass field is set to its default, the result of its
        default factory, or None.
        """
        instance = self.entity.__new__(self.entity)
        for f in dataclasses.fields(self.entity):
            if f.default is not MISSING:
                value = f.default
            elif f.default_factory is not MISSING:
                value = f.default_factory()
            else:
                value = None
            object.__setattr__(instance, f.name, value)
        return instance

    def __iter__(self) -> Iterator[ColumnSpec]:
        return iter(self.columns.values())

    def __len__(self) -> int:
        return len(self.columns)


def _unwrap_optional(annotation: Any) -> Any:
    """Return X for `X | None` / `Optional[X]`, the annotation otherwise.
    """
    if typing.get_origin(annotation) in {typing.Union, types.UnionType}:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _type_hints(cls: type) -> dict[str, Any]:
    """Resolve field annotations, one field at a time when the class as a
    whole cannot be resolved.

    A field whose string annotation cannot be evaluated keeps the string,
    which no codec matches, so only that field ends up unmapped.
    """
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as err:
        logger.debug(f'Resolving annotations of {cls.__name__} per field: {err}')

    module = sys.modules.get(cls.__module__)
    namespace = dict(vars(module)) if module is not None else {}
    namespace.update(vars(cls))
    hints = {}
    for f in dataclasses.fields(cls):
        annotation = f.type
        if isinstance(annotation, str):
            try:
                annotation = eval(annotation, namespace)
            except (NameError, TypeError, AttributeError, SyntaxError) as err:
                logger.debug(f'Could not resolve {cls.__name__}.{f.name}: {err}')
        hints[f.name] = annotation
    return hints


class MetadataRegistry:
    """Write-once-per-type cache of `EntityMetadata`.

    Build one at startup and hand it to the engine. Field types are resolved
    against `codecs`; a field whose type has no codec stays in the metadata
    with `codec=None` and is skipped by DDL generation and row population.
    """

    def __init__(self, codecs: CodecRegistry | None = None) -> None:
        self.codecs = codecs if codecs is not None else default_codecs()
        self._cache: dict[Any, EntityMetadata] = {}
        self._lock = threading.RLock()

    @cachedmethod(operator.attrgetter('_cache'), lock=operator.attrgetter('_lock'))
    def metadata_for(self, cls: type) -> EntityMetadata:
        """Return the metadata of entity `cls`, building it on first access.

        Raises
            ConfigurationError: If the entity declaration is invalid
        """
        return self._build(cls)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, cls: type) -> bool:
        return any(metadata.entity is cls for metadata in list(self._cache.values()))

    def _build(self, cls: type) -> EntityMetadata:
        if not isinstance(cls, type) or not dataclasses.is_dataclass(cls):
            raise ConfigurationError(f'{cls!r} is not a dataclass entity')

        options = table_options(cls)
        if options is None:
            raise ConfigurationError(f'@table declaration not found for {cls.__name__}')

        table_name = options.name or cls.__name__
        try:
            validate_identifier(table_name, allow_qualified=True)
        except ValidationError as err:
            raise ConfigurationError(f'Invalid table name for {cls.__name__}: {err}') from err

        hints = _type_hints(cls)
        columns: dict[str, ColumnSpec] = {}
        seen: dict[str, str] = {}
        primary_field = None

        for f in dataclasses.fields(cls):
            declared = column_options(f)
            if not declared.mapped:
                continue

            column_name = declared.name or f.name
            try:
                validate_identifier(column_name)
            except ValidationError as err:
                raise ConfigurationError(
                    f'Invalid column name for {cls.__name__}.{f.name}: {err}') from err
            if column_name.lower() in seen:
                raise ConfigurationError(
                    f'Column {column_name!r} is mapped twice in {cls.__name__} '
                    f'({seen[column_name.lower()]!r} and {f.name!r})')
            seen[column_name.lower()] = f.name

            if declared.auto_increment and not declared.primary:
                raise ConfigurationError(
                    f'{cls.__name__}.{f.name} is auto-increment but not the primary key')
            if declared.primary:
                if primary_field is not None:
                    raise ConfigurationError(
                        f'Found 2 primary fields in {cls.__name__}: '
                        f'{primary_field!r} and {f.name!r}')
                primary_field = f.name

            python_type = _unwrap_optional(hints.get(f.name, f.type))
            codec = self.codecs.lookup(python_type)
            if codec is None:
                logger.debug(f'No codec for {cls.__name__}.{f.name} ({python_type!r}), field left unmapped')

            columns[f.name] = ColumnSpec(
                field_name=f.name,
                column_name=column_name,
                python_type=python_type,
                max_length=declared.max_length,
                is_primary=declared.primary,
                auto_increment=declared.auto_increment,
                codec=codec,
                )

        logger.debug(f'Built metadata for {cls.__name__}: table {table_name}, {len(columns)} columns')
        return EntityMetadata(
            entity=cls,
            table_name=table_name,
            columns=columns,
            create=options.create,
            modify=options.modify,
            )
