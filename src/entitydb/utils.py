"""Low-level helpers with no internal dependencies.

Identifier casing and connection introspection used across the package.
These have no imports from other entitydb modules, making them safe to
import without circular dependency concerns.
"""
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'([a-z0-9])([A-Z])|([A-Z]+)([A-Z][a-z])')


def to_snake(name: str) -> str:
    """Convert a CamelCase or camelCase identifier to snake_case.

    Acronyms stay together: `HTTPRequest` -> `http_request`,
    `UserId` -> `user_id`. Already snake_cased names are unchanged.
    """
    def _split(m: re.Match) -> str:
        if m.group(1):
            return f'{m.group(1)}_{m.group(2)}'
        return f'{m.group(3)}_{m.group(4)}'

    return _CAMEL_BOUNDARY.sub(_split, name).lower()


def to_camel(name: str, upper: bool = True) -> str:
    """Convert a snake_case identifier to UpperCamelCase (or lowerCamelCase).
    """
    parts = [p for p in name.split('_') if p]
    if not parts:
        return name
    head = parts[0].capitalize() if upper else parts[0].lower()
    return head + ''.join(p.capitalize() for p in parts[1:])


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection or engine.
    """
    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return dialect.lower()
        return str(dialect.name).lower()

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return str(obj.engine.dialect.name).lower()

    if hasattr(obj, 'dbapi_connection'):
        return get_dialect_name(obj.dbapi_connection)

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')


def end_implicit_transaction(connection: Any) -> None:
    """Commit the transaction SQLAlchemy begins implicitly on first use.

    Works safely on connections that are not inside any transaction.
    """
    in_transaction = getattr(connection, 'in_transaction', None)
    if callable(in_transaction) and not in_transaction():
        return
    if hasattr(connection, 'commit'):
        connection.commit()
