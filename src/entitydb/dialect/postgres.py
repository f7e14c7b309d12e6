"""
PostgreSQL-specific dialect implementation.

psycopg uses `%s` markers, so `?` markers are rewritten outside string
literals and every literal `%` is doubled. Statements run without arguments
are sent as written, since psycopg leaves `%` alone when there is nothing
to bind. Generated keys are read back with `INSERT ... RETURNING`, since
the driver does not report a last row id.
"""
import logging
from typing import TYPE_CHECKING

from entitydb.dialect.base import Dialect, register_dialect
from entitydb.model import is_zero
from entitydb.sql import escape_percent, replace_placeholders

if TYPE_CHECKING:
    from entitydb.session import Session

logger = logging.getLogger(__name__)


@register_dialect('postgresql')
class PostgresDialect(Dialect):
    """PostgreSQL rendering.
    """

    reports_lastrowid = False

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def get_placeholder_style(self) -> str:
        """Return psycopg's placeholder marker.
        """
        return '%s'

    def substitute_markers(self, sql: str) -> str:
        """Escape literal `%` and rewrite `?` markers to `%s`.
        """
        return replace_placeholders(escape_percent(sql), self.get_placeholder_style())

    def insert(self, session: 'Session') -> int | None:
        """Insert the current model, returning the key through RETURNING.
        """
        model = session.criteria.model
        sql, args = self.insert_sql(session.criteria)
        if model.pk is None:
            session.run(sql, args)
            return None
        rows = session.fetch(f'{sql} RETURNING {self.quote(model.pk.column)}', args)
        if not rows or not is_zero(model.pk.value):
            return None
        return rows[0][model.pk.column]
