"""
Tests for URL creation and the connection pool lifecycle.
"""
import atexit
import sqlite3
from unittest import mock

import pymysql
import pytest
import sqlalchemy as sa
from entitydb.engine import Engine
from entitydb.exceptions import ConnectivityError
from entitydb.options import Credentials
from entitydb.pool import ConnectionPool, create_url_from_options
from tests.fixtures.entities import User


@pytest.fixture
def mysql_credentials():
    return Credentials(hostname='db', port=3307, database='app', username='app',
                       password='pw', timeout=7, pool_size=3)


def test_mysql_url(mysql_credentials):
    url = create_url_from_options(mysql_credentials)
    assert url.drivername == 'mysql+pymysql'
    assert url.host == 'db'
    assert url.port == 3307
    assert url.database == 'app'
    assert url.username == 'app'
    assert url.password == 'pw'
    assert url.query == {'connect_timeout': '7', 'charset': 'utf8'}


def test_sqlite_url(tmp_path):
    path = str(tmp_path / 'x.db')
    url = create_url_from_options(Credentials(drivername='sqlite', database=path))
    assert url.drivername == 'sqlite'
    assert url.database == path


def test_custom_url_creator(mysql_credentials):
    creator = mock.Mock(return_value='url')
    assert create_url_from_options(mysql_credentials, url_creator=creator) == 'url'
    assert creator.call_args.kwargs['drivername'] == 'mysql+pymysql'


class TestConnectionPool:

    def test_connect_passes_pool_settings(self, mysql_credentials):
        factory = mock.Mock()
        pool = ConnectionPool(mysql_credentials, engine_factory=factory)
        assert pool.dialect == 'mysql'
        assert not pool.is_connected()

        pool.connect()
        try:
            assert pool.is_connected()
            url = factory.call_args.args[0]
            kwargs = factory.call_args.kwargs
            assert url.drivername == 'mysql+pymysql'
            assert kwargs['pool_size'] == 3
            assert kwargs['pool_timeout'] == 7
            assert kwargs['pool_pre_ping'] is True
        finally:
            pool.close()

    def test_connect_twice(self, mysql_credentials):
        pool = ConnectionPool(mysql_credentials, engine_factory=mock.Mock())
        pool.connect()
        try:
            with pytest.raises(ConnectivityError):
                pool.connect()
        finally:
            pool.close()

    def test_acquire_returns_raw_connection(self, mysql_credentials):
        factory = mock.Mock()
        pool = ConnectionPool(mysql_credentials, engine_factory=factory)
        pool.connect()
        try:
            connection = pool.acquire()
            assert connection is factory.return_value.raw_connection.return_value
            pool.release(connection)
            connection.close.assert_called_once_with()
        finally:
            pool.close()

    @pytest.mark.parametrize('error', [
        pymysql.err.OperationalError(2013, 'Lost connection'),
        sqlite3.ProgrammingError('Cannot operate on a closed database.'),
        sa.exc.InvalidRequestError('connection already closed'),
    ])
    def test_release_tolerates_close_errors(self, mysql_credentials, error):
        connection = mock.Mock()
        connection.close.side_effect = error
        ConnectionPool(mysql_credentials).release(connection)
        connection.close.assert_called_once_with()

    def test_find_keeps_records_when_release_fails(self, mysql_credentials, reporter):
        connection = mock.Mock()
        connection.cursor.return_value.description = [('id',), ('name',)]
        connection.cursor.return_value.fetchall.return_value = [(1, 'alice')]
        connection.close.side_effect = pymysql.err.InterfaceError(0, 'already closed')
        factory = mock.Mock()
        factory.return_value.raw_connection.return_value = connection

        pool = ConnectionPool(mysql_credentials, engine_factory=factory)
        pool.connect()
        try:
            result = Engine(pool, reporter=reporter).find_result(User)
        finally:
            pool.close()

        assert result.ok
        assert result.records == [User(id=1, name='alice')]
        assert reporter.reports == []

    def test_acquire_before_connect(self, mysql_credentials):
        with pytest.raises(ConnectivityError, match='initialised'):
            ConnectionPool(mysql_credentials).acquire()

    def test_acquire_failure(self, mysql_credentials):
        factory = mock.Mock()
        factory.return_value.raw_connection.side_effect = sa.exc.TimeoutError('pool exhausted')
        pool = ConnectionPool(mysql_credentials, engine_factory=factory)
        pool.connect()
        try:
            with pytest.raises(ConnectivityError) as excinfo:
                pool.acquire()
            assert isinstance(excinfo.value.__cause__, sa.exc.TimeoutError)
        finally:
            pool.close()

    def test_close_disposes_engine(self, mysql_credentials, monkeypatch):
        registered = []
        monkeypatch.setattr(atexit, 'register', registered.append)
        monkeypatch.setattr(atexit, 'unregister', registered.remove)

        factory = mock.Mock()
        pool = ConnectionPool(mysql_credentials, engine_factory=factory)
        pool.connect()
        assert registered == [pool.close]

        pool.close()
        factory.return_value.dispose.assert_called_once_with()
        assert not pool.is_connected()
        assert registered == []
        pool.close()

    def test_sqlite_pool(self, tmp_path):
        credentials = Credentials(drivername='sqlite', database=str(tmp_path / 'x.db'))
        pool = ConnectionPool(credentials)
        pool.connect()
        try:
            assert pool.dialect == 'sqlite'
            connection = pool.acquire()
            cursor = connection.cursor()
            cursor.execute('SELECT 1')
            assert cursor.fetchall() == [(1,)]
            cursor.close()
            pool.release(connection)
        finally:
            pool.close()
