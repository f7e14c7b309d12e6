"""
Base dialect interface for SQL rendering and value conversion.

Defines the abstract base class that all backend-specific dialects inherit
from. The session never writes backend syntax itself: it hands a Criteria to
the dialect and gets back SQL text plus the ordered argument list, and it
asks the dialect to convert every scanned value into a record field.

The base class renders portable SQL using `?` markers and double-quoted
identifiers; concrete dialects override the marker style, identifier
quoting, generated-id retrieval and value conversion.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from entitydb.exceptions import UsageError
from entitydb.model import JOIN_SEPARATOR, FieldInfo, Model, ModelField
from entitydb.model import is_zero
from entitydb.sql import quote_identifier, replace_placeholders
from entitydb.types import TypeConverter, to_python

if TYPE_CHECKING:
    from entitydb.criteria import Criteria
    from entitydb.options import DatabaseOptions
    from entitydb.session import Session

# Registry of dialect name -> dialect class
# Defined here to avoid circular imports (concrete dialects import from base)
_DIALECT_REGISTRY: dict[str, type['Dialect']] = {}


def register_dialect(name: str):
    """Decorator to register a dialect class under a driver name.

    Usage:
        @register_dialect('sqlite')
        class SQLiteDialect(Dialect):
            ...
    """
    def decorator(cls: type['Dialect']) -> type['Dialect']:
        _DIALECT_REGISTRY[name] = cls
        return cls
    return decorator


class Dialect(ABC):
    """Base class for backend-specific SQL rendering.
    """

    quote_char = '"'
    reports_lastrowid = True

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    def get_placeholder_style(self) -> str:
        """Return the positional marker used by the driver."""
        return '?'

    def quote(self, identifier: str) -> str:
        """Quote an identifier or a dotted `table.column` path."""
        return quote_identifier(identifier, self.quote_char)

    def substitute_markers(self, sql: str) -> str:
        """Rewrite `?` markers into this dialect's marker style."""
        return replace_placeholders(sql, self.get_placeholder_style())

    def to_db_value(self, value: Any) -> Any:
        """Convert an outbound value for the driver."""
        return TypeConverter.convert_value(value)

    def set_model_value(self, value: Any, record: Any, field: FieldInfo) -> None:
        """Convert a scanned value to the field's type and assign it.

        Raises
            TypeConversionError: If the value cannot be converted
        """
        setattr(record, field.name, to_python(value, field.python_type))

    def _where(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        if criteria.condition is None:
            return '', []
        expr, args = criteria.condition.merge()
        return f' WHERE {expr}', list(args)

    def query_sql(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        """Render the SELECT for the criteria's model.

        Joined relations are selected with `<relation>___<column>` aliases.
        """
        model = criteria.model
        table = model.table
        columns = [self.quote(f'{table}.{f.column}') for f in model.fields]
        joins = []
        for join in model.joins:
            alias = join.alias
            for target_field in join.target.fields:
                source = self.quote(f'{alias}.{target_field.column}')
                label = self.quote(f'{alias}{JOIN_SEPARATOR}{target_field.column}')
                columns.append(f'{source} AS {label}')
            joins.append(
                f' LEFT JOIN {self.quote(join.target.table)} AS {self.quote(alias)}'
                f' ON {self.quote(f"{table}.{join.fk_column}")}'
                f' = {self.quote(f"{alias}.{join.target.pk.column}")}')

        sql = f"SELECT {', '.join(columns)} FROM {self.quote(table)}{''.join(joins)}"
        where, args = self._where(criteria)
        sql += where
        if criteria.order_bys:
            terms = [f'{o.path} DESC' if o.desc else o.path for o in criteria.order_bys]
            sql += f" ORDER BY {', '.join(terms)}"
        if criteria.limit > 0:
            sql += f' LIMIT {int(criteria.limit)}'
        if criteria.offset > 0:
            sql += f' OFFSET {int(criteria.offset)}'
        return sql, args

    def insert_sql(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        """Render the INSERT for the criteria's model.

        A zero-valued primary key is left out so the backend generates it.
        """
        model = criteria.model
        fields = [f for f in model.fields if not (f.info.primary_key and is_zero(f.value))]
        table = self.quote(model.table)
        if not fields:
            return f'INSERT INTO {table} DEFAULT VALUES', []
        columns = ', '.join(self.quote(f.column) for f in fields)
        markers = ', '.join('?' for _ in fields)
        return f'INSERT INTO {table} ({columns}) VALUES ({markers})', [f.value for f in fields]

    def update_sql(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        """Render the UPDATE of every non-key column under the criteria's condition.

        An unset `created` timestamp is not written so the stored one survives.
        """
        model = criteria.model
        fields = self.update_fields(model)
        if not fields:
            raise UsageError(f'No columns to update on {model.table}')
        assignments = ', '.join(f'{self.quote(f.column)} = ?' for f in fields)
        where, args = self._where(criteria)
        return f'UPDATE {self.quote(model.table)} SET {assignments}{where}', [f.value for f in fields] + args

    def update_fields(self, model: Model) -> list[ModelField]:
        """Non-key fields an UPDATE writes.

        An unset `created` timestamp is left out so the stored one survives.
        """
        return [f for f in model.columns(include_pk=False)
                if not (f.info.kind == 'created' and f.value is None)]

    def exists_sql(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        """Render a one-row existence check for rows matching the criteria's condition.
        """
        where, args = self._where(criteria)
        return f'SELECT 1 FROM {self.quote(criteria.model.table)}{where} LIMIT 1', args

    def delete_sql(self, criteria: 'Criteria') -> tuple[str, list[Any]]:
        where, args = self._where(criteria)
        return f'DELETE FROM {self.quote(criteria.model.table)}{where}', args

    def insert(self, session: 'Session') -> int | None:
        """Insert the current model and return the generated id, if any.
        """
        sql, args = self.insert_sql(session.criteria)
        result = session.run(sql, args)
        return result.lastrowid

    def update(self, session: 'Session') -> int:
        """Update rows matching the current condition, return the affected count.
        """
        sql, args = self.update_sql(session.criteria)
        return session.run(sql, args).rowcount

    def delete(self, session: 'Session') -> int:
        """Delete rows matching the current condition, return the affected count.
        """
        sql, args = self.delete_sql(session.criteria)
        return session.run(sql, args).rowcount
