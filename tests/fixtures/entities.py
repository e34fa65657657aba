"""
Entity declarations shared by the unit and integration tests.
"""
import datetime
import decimal
import uuid
from dataclasses import dataclass, field

from entitydb.entity import ModifyType, column, primary, table, transient


@table(name='users')
@dataclass
class User:
    id: int = primary(auto_increment=True)
    name: str = column(max_length=32, default='')


@table(name='accounts', create=False)
@dataclass
class Account:
    """Explicit column names and a table that may never be created."""
    account_id: int = primary('ACCOUNT_ID')
    owner: str = column('OWNER_NAME', max_length=64, default='')
    balance: decimal.Decimal = column('BALANCE', max_length=12, default=decimal.Decimal('0'))


@table(name='events', modify=ModifyType.COMPARE)
@dataclass
class Event:
    id: int = primary(auto_increment=True)
    title: str = column(max_length=100, default='')
    active: bool = False
    score: float | None = None
    happened_at: datetime.datetime | None = None
    day: datetime.date | None = None
    token: uuid.UUID | None = None
    payload: bytes = column(max_length=64, default=b'')


@table
@dataclass
class Note:
    """No table name: mapped to a table named after the class."""
    body: str = ''
    tags: list = field(default_factory=list)
    cache: dict = transient(default_factory=dict)


@table(name='reports')
@dataclass
class Report:
    """No defaults: records are still built zero-initialized."""
    title: str
    pages: int
