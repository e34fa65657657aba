"""
SQL text helpers shared by the query builder, engine and schema synchronizer.

Table and column names are concatenated into statement text rather than
bound as parameters, so every identifier passes `validate_identifier` before
it reaches any of the builders below.

- `validate_identifier()` - Check a table/column name against the safe pattern
- `quote_identifier()` - Quote table/column names for a dialect
- `standardize_placeholders()` - Convert ? placeholders to the driver paramstyle
- `count_placeholders()` - Count ? placeholders outside string literals
- `build_select_sql()` - SELECT * statement for a table and a rendered clause
"""
import re

from entitydb.exceptions import ValidationError

_IDENTIFIER = re.compile(r'[A-Za-z_][A-Za-z0-9_$]*')

_QUALIFIED_IDENTIFIER = re.compile(r'[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)?')

# String literals, a ? placeholder or a percent sign, scanned in one pass
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.|"")*")
    |(?P<qmark>\?)
    |(?P<percent>%%?)
""", re.VERBOSE)

_UNESCAPED_PERCENT = re.compile(r'(?<!%)%(?!%)')

PARAMSTYLES = {
    'mysql': '%s',
    'sqlite': '?',
    }


def validate_identifier(name: str, allow_qualified: bool = False) -> str:
    """Return `name` unchanged when it is a safe SQL identifier.

    Parameters
        name: Table or column name
        allow_qualified: Accept a single `schema.table` qualifier

    Raises
        ValidationError: If the name contains anything but letters, digits,
        underscores and dollar signs (plus one dot when qualified)
    """
    pattern = _QUALIFIED_IDENTIFIER if allow_qualified else _IDENTIFIER
    if not isinstance(name, str) or not pattern.fullmatch(name):
        raise ValidationError(f'Invalid SQL identifier: {name!r}')
    return name


def quote_identifier(identifier: str, dialect: str = 'mysql') -> str:
    """Safely quote database identifiers.

    Qualified names (`schema.table`) have each part quoted separately.

    Raises
        ValueError: If dialect is unsupported
    """
    if dialect == 'mysql':
        quote = '`'
    elif dialect == 'sqlite':
        quote = '"'
    else:
        raise ValueError(f'Unknown dialect: {dialect}')
    return '.'.join(quote + part.replace(quote, quote * 2) + quote
                    for part in identifier.split('.'))


def standardize_placeholders(sql: str, dialect: str = 'mysql') -> str:
    """Rewrite ? placeholders into the paramstyle of the dialect's driver.

    Placeholders inside string literals are left untouched. For the `%s`
    paramstyle every unescaped % (in literals and in expressions such as
    `id % 2`) is doubled, since the driver always %-formats the statement.
    """
    placeholder = PARAMSTYLES.get(dialect)
    if placeholder is None:
        raise ValueError(f'Unknown dialect: {dialect}')
    if placeholder == '?':
        return sql

    def replace(match):
        if match.group('qmark'):
            return placeholder
        if match.group('percent'):
            return '%%'
        return _UNESCAPED_PERCENT.sub('%%', match.group('string'))

    return _TOKENIZE.sub(replace, sql)


def count_placeholders(sql: str) -> int:
    """Count ? placeholders outside string literals.
    """
    return sum(1 for match in _TOKENIZE.finditer(sql) if match.group('qmark'))


def build_select_sql(table: str, clause: str = '') -> str:
    """Generate the SELECT statement used by `find`.

    Parameters
        table: Validated table name
        clause: Rendered predicate clause from a `Query` (may be empty)

    Returns
        SQL query string with ? placeholders
    """
    sql = f'SELECT * FROM {table}'
    if clause:
        sql += f' {clause}'
    return sql
