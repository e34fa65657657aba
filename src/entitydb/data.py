"""
Record to DataFrame conversion.
"""
from collections.abc import Sequence
from typing import Any

import pandas as pd

from entitydb.metadata import EntityMetadata

__all__ = ['records_to_frame']


def _empty_dataframe(metadata: EntityMetadata) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=[spec.column_name for spec in metadata.mapped_columns()])
    df.attrs['column_types'] = _column_types(metadata)
    return df


def _column_types(metadata: EntityMetadata) -> dict[str, Any]:
    return {spec.column_name: spec.python_type for spec in metadata.mapped_columns()}


def records_to_frame(records: Sequence[Any], metadata: EntityMetadata) -> pd.DataFrame:
    """Tabulate entity records, one column per mapped field.

    Always returns a DataFrame, with columns preserved for empty results.
    Column types are kept in `DataFrame.attrs['column_types']`.
    """
    if not records:
        return _empty_dataframe(metadata)

    specs = metadata.mapped_columns()
    df = pd.DataFrame.from_records(
        [tuple(getattr(record, spec.field_name) for spec in specs) for record in records],
        columns=[spec.column_name for spec in specs])
    df.attrs['column_types'] = _column_types(metadata)
    return df
