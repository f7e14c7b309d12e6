"""
Composable WHERE clause conditions.

A Condition is an immutable expression tree. Leaves carry an SQL fragment
with `?` markers and the values bound to them; combining two conditions
produces a new node and never mutates either side.

Examples
    cond = Condition('age > ?', 18).and_equal('name', 'alice')
    sql, args = cond.merge()
    # sql  == '(age > ?) AND (name = ?)'
    # args == (18, 'alice')
"""
from collections.abc import Iterable
from typing import Any

from entitydb.exceptions import UsageError
from entitydb.sql import count_placeholders

__all__ = ['Condition']


class Condition:
    """WHERE clause fragment plus its ordered bound values.
    """

    __slots__ = ('_expr', '_args', '_op', '_left', '_right')

    def __init__(self, expr: str, *args: Any) -> None:
        expected = count_placeholders(expr)
        if expected != len(args):
            raise UsageError(
                f'Condition {expr!r} has {expected} placeholders '
                f'but {len(args)} values were bound')
        self._expr = expr
        self._args = tuple(args)
        self._op = None
        self._left = None
        self._right = None

    @classmethod
    def _combine(cls, op: str, left: 'Condition', right: 'Condition') -> 'Condition':
        node = cls.__new__(cls)
        node._expr = None
        node._args = left.args + right.args
        node._op = op
        node._left = left
        node._right = right
        return node

    @classmethod
    def equal(cls, column: str, value: Any) -> 'Condition':
        """Equality condition `column = ?`.
        """
        return cls(f'{column} = ?', value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> 'Condition':
        """Membership condition `column IN (?, ?, ...)`.
        """
        values = tuple(values)
        if not values:
            raise UsageError(f'IN condition on {column} needs at least one value')
        markers = ', '.join('?' * len(values))
        return cls(f'{column} IN ({markers})', *values)

    @property
    def args(self) -> tuple[Any, ...]:
        """Bound values in placeholder order."""
        return self._args

    def and_(self, expr: str, *args: Any) -> 'Condition':
        return self.and_condition(Condition(expr, *args))

    def or_(self, expr: str, *args: Any) -> 'Condition':
        return self.or_condition(Condition(expr, *args))

    def and_equal(self, column: str, value: Any) -> 'Condition':
        return self.and_condition(Condition.equal(column, value))

    def or_equal(self, column: str, value: Any) -> 'Condition':
        return self.or_condition(Condition.equal(column, value))

    def and_condition(self, other: 'Condition') -> 'Condition':
        return Condition._combine('AND', self, other)

    def or_condition(self, other: 'Condition') -> 'Condition':
        return Condition._combine('OR', self, other)

    def merge(self) -> tuple[str, tuple[Any, ...]]:
        """Flatten the tree into an SQL fragment and its values.
        """
        if self._op is None:
            return self._expr, self._args
        left, _ = self._left.merge()
        right, _ = self._right.merge()
        return f'({left}) {self._op} ({right})', self._args

    def __repr__(self) -> str:
        sql, args = self.merge()
        return f'Condition({sql!r}, args={args!r})'
