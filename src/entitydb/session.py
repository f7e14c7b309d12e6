"""
Session: the entry point for every mapped operation.

A Session owns one database handle (a SQLAlchemy Connection), at most one
open transaction and the Criteria for the next call. Chained calls such as
`where()` and `order_by()` configure the Criteria; the next executing call
consumes it and the Session starts over with a fresh one.

Outside a transaction every statement is committed as soon as it succeeds
and rolled back when it fails. Inside a transaction statements run on the
open transaction and the first error is remembered until `commit()`.

Examples
    with connect(options) as session:
        user = session.find(User(id=1))
        users = session.where('age > ?', 18).order_by('name').find_all(User)

        with session.transaction():
            session.save(User(name='alice'))
            session.where_equal('name', 'bob').delete(User())
"""
import contextlib
import datetime
import logging
from collections.abc import Iterator
from typing import Any, Protocol, Self, runtime_checkable

import sqlalchemy as sa
from entitydb.condition import Condition
from entitydb.criteria import Criteria, Order
from entitydb.dialect import Dialect, get_dialect, get_dialect_for
from entitydb.exceptions import NoRowsError, UsageError
from entitydb.model import JOIN_SEPARATOR, Model, blank, build_model, is_zero
from entitydb.model import table_name
from entitydb.pool import ConnectionPool
from entitydb.statement import ExecResult, Statement
from entitydb.utils import end_implicit_transaction

from libb import attrdict

__all__ = ['Session', 'Validator']

logger = logging.getLogger(__name__)


@runtime_checkable
class Validator(Protocol):
    """Record capability checked by `Session.save()` and `Session.update()`
    before any SQL.

    Raising from `validate` aborts the write.
    """

    def validate(self, session: 'Session') -> None:
        ...


class Session:
    """Mapped operations over a single database handle.

    Sessions are not thread-safe. Use one per thread and share handles
    through a ConnectionPool.
    """

    def __init__(self, handle: sa.engine.Connection, dialect: Dialect | str | None = None,
                 pool: ConnectionPool | None = None) -> None:
        if isinstance(dialect, str):
            dialect = get_dialect(dialect)
        self.db = handle
        self.dialect = dialect or get_dialect_for(handle)
        self.pool = pool
        self.tx = None
        self.criteria = Criteria()
        self.first_tx_error = None
        self.calls = 0
        self.time = 0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self.db is None else ('in transaction' if self.tx else 'idle')
        return f'<Session {self.dialect.dialect_name} {state}>'

    @property
    def connection(self) -> sa.engine.Connection:
        """The live handle.

        Raises
            UsageError: If the session has been closed
        """
        if self.db is None:
            raise UsageError('Session is closed')
        return self.db

    @property
    def in_transaction(self) -> bool:
        return self.tx is not None

    def addcall(self, elapsed: float) -> None:
        self.time += elapsed
        self.calls += 1

    # == criteria

    def reset(self) -> Self:
        """Discard the pending criteria."""
        self.criteria = Criteria()
        return self

    def where(self, expr: str, *args: Any) -> Self:
        """Set the condition from an expression with `?` markers.

        Replaces any condition set earlier in the chain.
        """
        self.criteria.condition = Condition(expr, *args)
        return self

    def where_equal(self, column: str, value: Any) -> Self:
        self.criteria.condition = Condition.equal(self.dialect.quote(column), value)
        return self

    def condition(self, cond: Condition) -> Self:
        self.criteria.condition = cond
        return self

    def order_by(self, path: str) -> Self:
        self.criteria.order_bys.append(Order(self.dialect.quote(path)))
        return self

    def order_by_desc(self, path: str) -> Self:
        self.criteria.order_bys.append(Order(self.dialect.quote(path), desc=True))
        return self

    def limit(self, n: int) -> Self:
        self.criteria.limit = n
        return self

    def offset(self, n: int) -> Self:
        self.criteria.offset = n
        return self

    def omit_fields(self, *names: str) -> Self:
        """Leave the named fields (or relations) out of the next call."""
        self.criteria.omit_fields.extend(names)
        return self

    def omit_join(self) -> Self:
        """Do not join relations in the next call."""
        self.criteria.omit_join = True
        return self

    # == statements

    def prepare(self, sql: str) -> Statement:
        """Prepare SQL written with `?` markers.

        Raises
            UsageError: If the session has been closed
        """
        if self.db is None:
            raise UsageError('Session is closed')
        return Statement(self, sql)

    def run(self, sql: str, args: list[Any] | tuple[Any, ...] = ()) -> ExecResult:
        """Execute without touching the pending criteria.
        """
        with self.prepare(sql) as stmt:
            return stmt.execute(*args)

    def fetch(self, sql: str, args: list[Any] | tuple[Any, ...] = ()) -> list[attrdict]:
        """Query without touching the pending criteria.
        """
        with self.prepare(sql) as stmt:
            return stmt.query(*args)

    def exec(self, sql: str, *args: Any) -> ExecResult:
        """Execute raw SQL and return its row count and generated row id.
        """
        try:
            return self.run(sql, args)
        finally:
            self.reset()

    def query(self, sql: str, *args: Any) -> list[attrdict]:
        """Run raw SQL and return all rows."""
        try:
            return self.fetch(sql, args)
        finally:
            self.reset()

    def query_row(self, sql: str, *args: Any) -> attrdict:
        """Run raw SQL and return the first row.

        Raises
            NoRowsError: If the query returned no rows
        """
        try:
            with self.prepare(sql) as stmt:
                row = stmt.query_row(*args)
        finally:
            self.reset()
        if row is None:
            raise NoRowsError(f'No rows returned by: {sql}')
        return row

    def contains_value(self, table: Any, column: str, value: Any) -> bool:
        """Check whether any row of `table` has `column` equal to `value`.

        `table` is a table name, a record type or a record.
        """
        sql = (f'SELECT 1 FROM {self.dialect.quote(table_name(table))}'
               f' WHERE {self.dialect.quote(column)} = ? LIMIT 1')
        try:
            return len(self.fetch(sql, (value,))) > 0
        finally:
            self.reset()

    def end_statement(self, failed: bool) -> None:
        """Close out the implicit driver transaction of an unscoped statement.
        """
        if self.tx is not None or self.db is None:
            return
        if failed:
            self.db.rollback()
        else:
            end_implicit_transaction(self.db)

    def update_tx_error(self, err: Exception) -> Exception:
        """Remember `err` as the transaction's first error, if one is open.
        """
        if self.tx is not None:
            logger.error(f'Transaction error: {err}')
            if self.first_tx_error is None:
                self.first_tx_error = err
        return err

    # == records

    def find(self, record: Any) -> Any:
        """Load one row into `record`.

        A non-zero primary key on `record` is ANDed ahead of the condition.

        Raises
            NoRowsError: If no row matched
        """
        try:
            criteria = self.criteria
            criteria.model = build_model(record, include_joins=not criteria.omit_join,
                                         omit_fields=criteria.omit_fields)
            criteria.merge_pk_condition(self.dialect)
            criteria.limit = 1
            sql, args = self.dialect.query_sql(criteria)
            rows = self.fetch(sql, args)
            if not rows:
                raise NoRowsError(f'No {criteria.model.table} row matched')
            self._scan(rows[0], record, criteria.model)
            return record
        finally:
            self.reset()

    def find_all(self, cls: type, into: list | None = None) -> list:
        """Load every matching row as a new `cls` record.

        Records are appended to `into` when given, which is also returned.
        """
        results = [] if into is None else into
        try:
            criteria = self.criteria
            criteria.model = build_model(blank(cls), include_joins=not criteria.omit_join,
                                         omit_fields=criteria.omit_fields)
            sql, args = self.dialect.query_sql(criteria)
            for row in self.fetch(sql, args):
                record = blank(cls)
                self._scan(row, record, criteria.model)
                results.append(record)
            return results
        finally:
            self.reset()

    def _scan(self, row: attrdict, record: Any, model: Model) -> None:
        joins = {join.alias: join for join in model.joins}
        nested = {}
        for key, value in row.items():
            if value is None:
                continue
            if JOIN_SEPARATOR in key:
                alias, column = key.split(JOIN_SEPARATOR, 1)
                join = joins.get(alias)
                field = join.target.by_column.get(column) if join else None
                if field is None:
                    continue
                target = nested.get(alias)
                if target is None:
                    target = getattr(record, join.relation.name, None)
                    if target is None:
                        target = blank(join.target.cls)
                        setattr(record, join.relation.name, target)
                    nested[alias] = target
                self.dialect.set_model_value(value, target, field)
            else:
                field = model.info.by_column.get(key)
                if field is not None:
                    self.dialect.set_model_value(value, record, field)

    def save(self, record: Any) -> int:
        """Insert or update `record` by its primary key.

        A zero key (None, 0 or '') always inserts. Otherwise the row is
        updated, and inserted with the given key when the update matches
        nothing. `created`/`updated` fields are stamped and generated keys
        are written back to `record`.

        Returns
            1 for an insert, the affected row count for an update

        Raises
            UsageError: If the record type has no primary key
            ValidationError: If the record rejects itself
        """
        try:
            self._validate(record)

            criteria = self.criteria
            model = build_model(record, include_joins=False, omit_fields=criteria.omit_fields)
            criteria.model = model
            if model.pk is None:
                raise UsageError('no primary key field')

            now = datetime.datetime.now()
            created = model.time_field('created')
            updated = model.time_field('updated')
            if updated is not None:
                updated.value = now

            inserting = model.pk_zero()
            affected = 0
            if not inserting:
                pristine = criteria.snapshot()
                criteria.merge_pk_condition(self.dialect)
                if self.dialect.update_fields(model):
                    affected = self.dialect.update(self)
                else:
                    # nothing to SET; an existing row counts as matched
                    affected = len(self.fetch(*self.dialect.exists_sql(criteria)))
                if affected == 0:
                    logger.debug(f'No {model.table} row with key {model.pk.value!r}, inserting')
                    self.criteria = pristine
                    inserting = True

            generated = None
            if inserting:
                if created is not None:
                    created.value = now
                generated = self.dialect.insert(self)
                affected = 1

            if (generated is not None and not is_zero(generated) and model.pk_zero()
                    and issubclass(model.pk.info.python_type, int)):
                setattr(record, model.pk.name, generated)
            if updated is not None:
                setattr(record, updated.name, now)
            if inserting and created is not None:
                setattr(record, created.name, now)
            return affected
        finally:
            self.reset()

    def _validate(self, record: Any) -> None:
        if isinstance(record, Validator):
            record.validate(self)

    def _write_model(self, record: Any, action: str) -> Model:
        criteria = self.criteria
        model = build_model(record, include_joins=False, omit_fields=criteria.omit_fields)
        criteria.model = model
        if model.pk is None:
            raise UsageError('no primary key field')
        criteria.merge_pk_condition(self.dialect)
        if criteria.condition is None:
            raise UsageError(f'cannot {action} without condition')
        return model

    def update(self, record: Any) -> int:
        """Write every non-key field of `record` to the matching rows.

        Rows are matched by the record's primary key and the condition.

        Returns
            Number of affected rows

        Raises
            UsageError: If neither a key value nor a condition is set
            ValidationError: If the record rejects itself
        """
        try:
            self._validate(record)
            self._write_model(record, 'update')
            return self.dialect.update(self)
        finally:
            self.reset()

    def delete(self, record: Any) -> int:
        """Delete the rows matching the record's primary key and the condition.

        Returns
            Number of affected rows

        Raises
            UsageError: If neither a key value nor a condition is set
        """
        try:
            self._write_model(record, 'delete')
            return self.dialect.delete(self)
        finally:
            self.reset()

    # == transactions

    def begin(self) -> Self:
        """Open a transaction.

        Raises
            UsageError: If a transaction is already open
        """
        if self.tx is not None:
            raise UsageError('cannot start nested transaction')
        db = self.connection
        end_implicit_transaction(db)
        self.first_tx_error = None
        self.tx = db.begin()
        logger.debug(f'Started transaction for session {id(self)}')
        return self

    def commit(self) -> Exception | None:
        """Commit the open transaction.

        Returns
            The first error recorded during the transaction (including a
            failed commit), or None
        """
        if self.tx is None:
            raise UsageError('no transaction in progress')
        tx, self.tx = self.tx, None
        try:
            tx.commit()
            logger.debug(f'Committed transaction for session {id(self)}')
        except Exception as err:
            logger.error(f'Commit failed: {err}')
            if self.first_tx_error is None:
                self.first_tx_error = err
            self.db.rollback()
        return self.first_tx_error

    def rollback(self) -> Exception | None:
        """Roll back the open transaction.

        A failed rollback is also recorded as the transaction error when
        none was recorded before.

        Returns
            The rollback error, or None
        """
        if self.tx is None:
            raise UsageError('no transaction in progress')
        tx, self.tx = self.tx, None
        logger.warning('Rolling back the current transaction')
        try:
            tx.rollback()
        except Exception as err:
            logger.error(f'Rollback failed: {err}')
            if self.first_tx_error is None:
                self.first_tx_error = err
            return err
        return None

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Self]:
        """Run the block in a transaction.

        Commits on success and raises the first recorded error, if any.
        Rolls back when the block raises.
        """
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        err = self.commit()
        if err is not None:
            raise err

    # == lifecycle

    def close(self) -> None:
        """Release the handle to the pool, or close it.

        An open transaction is rolled back first. Closing twice is a no-op.
        """
        if self.db is None:
            return
        if self.tx is not None:
            self.rollback()
        db, self.db = self.db, None
        if db.in_transaction():
            db.rollback()
        if self.pool is not None:
            self.pool.release(db)
        else:
            db.close()
        logger.debug(f'Session closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')
