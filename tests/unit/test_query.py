"""
Tests for the equality-filter query builder.
"""
import random
import re

import pytest
from entitydb.exceptions import ValidationError
from entitydb.query import Query
from entitydb.sql import count_placeholders


def test_empty_query_renders_empty_clause():
    assert Query().render() == ('', [])
    assert str(Query()) == ''


def test_single_where():
    clause, values = Query().where('name', 'alice').render()
    assert clause == 'WHERE name = ?'
    assert values == ['alice']


def test_where_chain_and_limit():
    query = Query().where('TABLE_SCHEMA', 'app').where('TABLE_NAME', 'users').limit(1)
    clause, values = query.render()
    assert clause == 'WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? LIMIT 1'
    assert values == ['app', 'users']


def test_limit_only():
    assert Query().limit(10).render() == ('LIMIT 10', [])


def test_limit_none_removes_limit():
    query = Query().limit(5).limit(None)
    assert query.row_limit is None
    assert str(query) == ''


def test_last_write_wins():
    """A repeated column keeps one predicate bound to the latest value"""
    query = Query().where('a', 1).where('b', 2).where('a', 3)
    clause, values = query.render()
    assert clause == 'WHERE a = ? AND b = ?'
    assert clause.count('a = ?') == 1
    assert values == [3, 2]


def test_none_value_is_kept():
    clause, values = Query().where('deleted_at', None).render()
    assert clause == 'WHERE deleted_at = ?'
    assert values == [None]


def test_wheres_is_read_only():
    query = Query().where('a', 1)
    assert dict(query.wheres) == {'a': 1}
    with pytest.raises(TypeError):
        query.wheres['b'] = 2


@pytest.mark.parametrize('column', ['a b', 'name = 1 OR 1', "x'", '', 'a.b', None])
def test_where_rejects_unsafe_columns(column):
    with pytest.raises(ValidationError):
        Query().where(column, 1)


@pytest.mark.parametrize('limit', [-1, 1.5, '10', True])
def test_limit_rejects_invalid(limit):
    with pytest.raises(ValidationError):
        Query().limit(limit)


@pytest.mark.parametrize('seed', range(25))
def test_placeholders_pair_with_values(seed):
    """The i-th placeholder always binds the i-th value, for any where sequence"""
    rng = random.Random(seed)
    columns = [f'col{i}' for i in range(6)]
    query, expected = Query(), {}
    for _ in range(rng.randint(0, 15)):
        column, value = rng.choice(columns), rng.randint(-1000, 1000)
        query.where(column, value)
        expected[column] = value
    if rng.random() < 0.5:
        query.limit(rng.randint(0, 50))

    clause, values = query.render()
    assert count_placeholders(clause) == len(values)
    rendered_columns = re.findall(r'(\w+) = \?', clause)
    assert rendered_columns == list(expected)
    assert [expected[column] for column in rendered_columns] == values


def test_render_is_repeatable():
    query = Query().where('a', 1).limit(2)
    assert query.render() == query.render()
    assert repr(query) == "Query(wheres={'a': 1}, limit=2)"
