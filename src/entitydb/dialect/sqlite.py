"""
SQLite-specific dialect implementation.

SQLite takes `?` markers natively and reports generated keys through the
cursor's `lastrowid`. It has no native date/time storage, so temporal and
decimal values are written as ISO text and parsed back on scan.
"""
import datetime
import decimal
import logging
from typing import Any

from entitydb.dialect.base import Dialect, register_dialect

logger = logging.getLogger(__name__)


@register_dialect('sqlite')
class SQLiteDialect(Dialect):
    """SQLite rendering and value conversion.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def to_db_value(self, value: Any) -> Any:
        """Convert outbound values, rendering temporal types as ISO text.
        """
        value = super().to_db_value(value)
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=' ')
        if isinstance(value, datetime.date | datetime.time):
            return value.isoformat()
        if isinstance(value, decimal.Decimal):
            return str(value)
        return value
