import pytest
from entitydb.database import Database
from entitydb.options import Credentials


@pytest.fixture
def sqlite_db(tmp_path):
    """File-based SQLite database with a populated users table."""
    credentials = Credentials(drivername='sqlite', database=str(tmp_path / 'entitydb.db'))
    db = Database(credentials).connect()

    db.execute("""
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        nickname TEXT
    )
    """)
    for name, nickname in [('alice', 'al'), ('bob', None), ('carol', 'cc')]:
        db.execute('INSERT INTO users (name, nickname) VALUES (?, ?)', name, nickname)

    yield db

    if db.is_connected():
        db.disconnect()
