"""
Per-call query intent.

A Criteria collects everything the next statement needs besides the record
itself: the condition, ordering, pagination and omission settings. The
Session consumes it exactly once and then replaces it with a fresh one.
"""
import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from entitydb.condition import Condition
from entitydb.model import Model

if TYPE_CHECKING:
    from entitydb.dialect.base import Dialect

__all__ = ['Order', 'Criteria']


@dataclass(frozen=True, slots=True)
class Order:
    """One ORDER BY term. `path` is already quoted by the dialect."""
    path: str
    desc: bool = False


@dataclass
class Criteria:
    model: Model | None = None
    condition: Condition | None = None
    limit: int = 0
    offset: int = 0
    order_bys: list[Order] = field(default_factory=list)
    omit_fields: list[str] = field(default_factory=list)
    omit_join: bool = False

    def snapshot(self) -> 'Criteria':
        """Independent copy that later condition merges do not affect.
        """
        return copy.copy(self)

    def pk_condition(self, dialect: 'Dialect') -> Condition | None:
        """Equality condition on the model's primary key, if it is set.
        """
        model = self.model
        if model is None or model.pk_zero():
            return None
        path = dialect.quote(f'{model.table}.{model.pk.column}')
        return Condition(f'{path} = ?', model.pk.value)

    def merge_pk_condition(self, dialect: 'Dialect') -> None:
        """AND the primary key condition ahead of the current condition.
        """
        id_condition = self.pk_condition(dialect)
        if id_condition is None:
            return
        if self.condition is None:
            self.condition = id_condition
        else:
            self.condition = id_condition.and_condition(self.condition)
