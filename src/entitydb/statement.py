"""
Prepared statement handle.

A Statement binds SQL text written with `?` markers to the session that
created it. The text is rewritten into the dialect's marker style once, and
the rewritten form is sent whenever arguments are bound. Without arguments
the text goes to the driver as written. Every execution runs on the
session's current route: the open transaction when there is one, the plain
handle otherwise. Driver results are closed on every exit path.
"""
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import TYPE_CHECKING, Any, Self

from libb import attrdict

from entitydb.exceptions import UsageError

if TYPE_CHECKING:
    from entitydb.session import Session

__all__ = ['Statement', 'ExecResult']

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Outcome of a data-modifying statement."""
    rowcount: int
    lastrowid: int | None = None


def dumpsql(func):
    """Decorator for logging SQL, parameters and timing.

    Failures are recorded as the session's transaction error before they
    propagate. Outside a transaction the statement is committed or rolled
    back right away.
    """
    @wraps(func)
    def wrapper(self, *args: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.sql}\nargs: {args}')
        try:
            result = func(self, *args)
        except Exception as err:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {args}')
            self.session.update_tx_error(err)
            self.session.end_statement(failed=True)
            raise
        finally:
            elapsed = time.time() - start
            self.session.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
        self.session.end_statement(failed=False)
        return result
    return wrapper


class Statement:
    """SQL bound to a session, executable any number of times until closed.
    """

    def __init__(self, session: 'Session', text: str) -> None:
        self.session = session
        self.text = text
        self.sql = session.dialect.substitute_markers(text)
        self.closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    def _run(self, args: tuple) -> Any:
        if self.closed:
            raise UsageError('Statement is closed')
        connection = self.session.connection
        params = tuple(self.session.dialect.to_db_value(a) for a in args)
        if not params:
            return connection.exec_driver_sql(self.text, execution_options={'no_parameters': True})
        return connection.exec_driver_sql(self.sql, params)

    @dumpsql
    def execute(self, *args: Any) -> ExecResult:
        """Execute and return the affected row count and generated row id.
        """
        result = self._run(args)
        try:
            lastrowid = result.lastrowid if self.session.dialect.reports_lastrowid else None
            return ExecResult(rowcount=result.rowcount, lastrowid=lastrowid)
        finally:
            result.close()

    @dumpsql
    def query(self, *args: Any) -> list[attrdict]:
        """Execute and return every row as an attribute dictionary.
        """
        result = self._run(args)
        try:
            return [attrdict(row._mapping) for row in result]
        finally:
            result.close()

    @dumpsql
    def query_row(self, *args: Any) -> attrdict | None:
        """Execute and return the first row, or None if there is none.
        """
        result = self._run(args)
        try:
            row = result.first()
            return attrdict(row._mapping) if row is not None else None
        finally:
            result.close()
