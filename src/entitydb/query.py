"""
Equality-filter query builder.

    query = Query().where('name', 'alice').where('active', True).limit(10)
    clause, values = query.render()
    # clause == 'WHERE name = ? AND active = ? LIMIT 10'
    # values == ['alice', True]

The i-th ? placeholder of the clause always pairs with the i-th value: both
are produced from a single pass over the same ordered filter mapping.
"""
import types
from collections.abc import Mapping
from typing import Any, Self

from entitydb.exceptions import ValidationError
from entitydb.sql import validate_identifier

__all__ = ['Query']


class Query:
    """Accumulator of equality predicates and an optional row limit.

    Repeating `where` for the same column replaces the value but keeps the
    column at the position of its first use.
    """

    def __init__(self) -> None:
        self._wheres: dict[str, Any] = {}
        self._limit: int | None = None

    def where(self, column: str, value: Any) -> Self:
        """Add (or replace) the predicate `column = value`.

        Raises
            ValidationError: If `column` is not a plain SQL identifier
        """
        self._wheres[validate_identifier(column)] = value
        return self

    def limit(self, n: int | None) -> Self:
        """Cap the number of rows returned, None removes the cap.

        Raises
            ValidationError: If `n` is not a non-negative integer
        """
        if n is not None and (isinstance(n, bool) or not isinstance(n, int) or n < 0):
            raise ValidationError(f'Limit must be a non-negative integer, got {n!r}')
        self._limit = n
        return self

    @property
    def wheres(self) -> Mapping[str, Any]:
        """Read-only view of the filters in binding order.
        """
        return types.MappingProxyType(self._wheres)

    @property
    def row_limit(self) -> int | None:
        return self._limit

    def render(self) -> tuple[str, list[Any]]:
        """Render the predicate clause and its ordered parameter values.

        Returns
            Tuple of clause text ('' for an unfiltered, unlimited scan) and
            the values to bind, in placeholder order
        """
        predicates, values = [], []
        for column, value in self._wheres.items():
            predicates.append(f'{column} = ?')
            values.append(value)

        parts = []
        if predicates:
            parts.append('WHERE ' + ' AND '.join(predicates))
        if self._limit is not None:
            parts.append(f'LIMIT {self._limit}')
        return ' '.join(parts), values

    def __str__(self) -> str:
        return self.render()[0]

    def __repr__(self) -> str:
        return f'Query(wheres={self._wheres!r}, limit={self._limit!r})'
