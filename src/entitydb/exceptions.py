"""
Database-specific exception classes.

Driver errors reach callers wrapped by SQLAlchemy; the tuples at the bottom
match both the wrapped and the raw driver forms.
"""
import sqlite3

import psycopg
import sqlalchemy.exc


class DatabaseError(Exception):
    """Base class for all entitydb errors.
    """


class UsageError(DatabaseError):
    """A precondition of the API was violated.

    Raised for programmer mistakes such as nested transactions, writes
    without a primary key, or update/delete without any condition. Callers
    are not expected to recover from it.
    """


class NoRowsError(DatabaseError):
    """A single-row lookup matched no rows.
    """


class ValidationError(DatabaseError):
    """Error in record validation.
    """


class TypeConversionError(DatabaseError):
    """Error converting types between Python and database.
    """


DbConnectionError = (
    sqlalchemy.exc.OperationalError,
    sqlalchemy.exc.InterfaceError,
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    sqlalchemy.exc.IntegrityError,
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    sqlalchemy.exc.ProgrammingError,
    sqlalchemy.exc.DatabaseError,
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )

OperationalError = (
    sqlalchemy.exc.OperationalError,
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )
