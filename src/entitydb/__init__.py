"""
Object-relational mapping over plain dataclasses for PostgreSQL and SQLite.

Records are mapped by convention, queries are configured by chaining calls
on a Session, and every operation runs eagerly.
"""
__version__ = '0.1.0'

from entitydb.condition import Condition
from entitydb.connection import connect, dispose_all_engines, get_pool_for_options
from entitydb.dialect import Dialect, get_dialect, register_dialect
from entitydb.exceptions import DatabaseError, DbConnectionError
from entitydb.exceptions import IntegrityError, NoRowsError
from entitydb.exceptions import OperationalError, ProgrammingError
from entitydb.exceptions import TypeConversionError, UsageError
from entitydb.exceptions import ValidationError
from entitydb.options import DatabaseOptions
from entitydb.pool import ConnectionPool
from entitydb.session import Session, Validator
from entitydb.statement import ExecResult, Statement
from entitydb.utils import to_camel, to_snake
