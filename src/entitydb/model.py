"""
Record introspection.

A record type is any dataclass. Its mapping is described once per class
into a `TableInfo` (cached), and every operation builds a fresh `Model`
from one record value on top of that description.

Mapping conventions:
1. The table name is the snake_cased class name unless `__tablename__` is set
2. Columns default to the snake_cased attribute name (`metadata['column']` overrides)
3. The primary key is `metadata['pk']=True` or the field named `id`
4. Fields named `created`/`updated` of datetime type are timestamp fields
5. A field typed as another dataclass is a relation joined through `<name>_id`
   (`metadata['fk']` overrides)
"""
import dataclasses
import datetime
import logging
import types
import typing
from dataclasses import dataclass, field
from typing import Any

from entitydb.cache import Cache
from entitydb.exceptions import UsageError
from entitydb.types import SUPPORTED_TYPES
from entitydb.utils import to_snake

__all__ = [
    'FieldInfo',
    'Relation',
    'TableInfo',
    'ModelField',
    'Join',
    'Model',
    'describe',
    'build_model',
    'blank',
    'table_name',
    'is_zero',
    'JOIN_SEPARATOR',
]

logger = logging.getLogger(__name__)

JOIN_SEPARATOR = '___'
TIMESTAMP_KINDS = ('created', 'updated')


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """Static description of one mapped attribute."""
    name: str
    column: str
    python_type: type
    kind: str | None = None
    primary_key: bool = False


@dataclass(frozen=True, slots=True)
class Relation:
    """A field referencing another record type through a foreign key field."""
    name: str
    target: type
    fk: str


@dataclass(frozen=True)
class TableInfo:
    """Static description of a record type, built once per class.
    """
    cls: type
    table: str
    fields: tuple[FieldInfo, ...]
    pk: FieldInfo | None
    relations: tuple[Relation, ...]
    by_column: dict[str, FieldInfo] = field(default_factory=dict, compare=False, repr=False)
    by_name: dict[str, FieldInfo] = field(default_factory=dict, compare=False, repr=False)

    def relation(self, name: str) -> Relation | None:
        for rel in self.relations:
            if rel.name == name:
                return rel
        return None


@dataclass(slots=True)
class ModelField:
    """A mapped attribute paired with its value in the current record."""
    info: FieldInfo
    value: Any

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def column(self) -> str:
        return self.info.column


@dataclass(slots=True)
class Join:
    """A relation selected into the current query."""
    relation: Relation
    alias: str
    fk_column: str
    target: TableInfo


@dataclass
class Model:
    """Per-call description of one record value.

    Only valid against the record it was built from.
    """
    info: TableInfo
    table: str
    fields: list[ModelField]
    pk: ModelField | None
    joins: list[Join]

    def pk_zero(self) -> bool:
        return self.pk is None or is_zero(self.pk.value)

    def time_field(self, kind: str) -> ModelField | None:
        for f in self.fields:
            if f.info.kind == kind:
                return f
        return None

    def columns(self, include_pk: bool = True) -> list[ModelField]:
        return [f for f in self.fields if include_pk or not f.info.primary_key]


def is_zero(value: Any) -> bool:
    """Zero value test used for primary keys."""
    return value is None or value == 0 or value == ''


def _unwrap_optional(tp: Any) -> Any:
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _resolve_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as err:
        logger.debug(f'Could not resolve type hints for {cls.__name__}: {err}')
        return {f.name: f.type for f in dataclasses.fields(cls)}


def _build_table_info(cls: type) -> TableInfo:
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise UsageError(f'{cls!r} is not a dataclass record type')

    hints = _resolve_hints(cls)
    names = {f.name for f in dataclasses.fields(cls)}
    fields: list[FieldInfo] = []
    relations: list[Relation] = []
    pk = None

    for f in dataclasses.fields(cls):
        if f.name.startswith('_'):
            continue
        tp = _unwrap_optional(hints.get(f.name, f.type))

        if isinstance(tp, type) and dataclasses.is_dataclass(tp):
            fk = f.metadata.get('fk', f'{f.name}_id')
            if fk not in names:
                raise UsageError(
                    f'{cls.__name__}.{f.name} references {tp.__name__} '
                    f'but has no foreign key field {fk!r}')
            relations.append(Relation(name=f.name, target=tp, fk=fk))
            continue

        if not (isinstance(tp, type) and issubclass(tp, SUPPORTED_TYPES)):
            logger.debug(f'Skipping unsupported field {cls.__name__}.{f.name}: {tp!r}')
            continue

        is_pk = bool(f.metadata.get('pk', False))
        kind = None
        if f.name in TIMESTAMP_KINDS and issubclass(tp, datetime.datetime):
            kind = f.name
        info = FieldInfo(
            name=f.name,
            column=f.metadata.get('column', to_snake(f.name)),
            python_type=tp,
            kind=kind,
            primary_key=is_pk,
        )
        if is_pk:
            if pk is not None:
                raise UsageError(f'{cls.__name__} declares more than one primary key')
            pk = info
        fields.append(info)

    if pk is None:
        for i, info in enumerate(fields):
            if info.name == 'id':
                pk = dataclasses.replace(info, primary_key=True)
                fields[i] = pk
                break

    table = cls.__dict__.get('__tablename__') or to_snake(cls.__name__)
    return TableInfo(
        cls=cls,
        table=table,
        fields=tuple(fields),
        pk=pk,
        relations=tuple(relations),
        by_column={info.column: info for info in fields},
        by_name={info.name: info for info in fields},
    )


def describe(cls: type) -> TableInfo:
    """Return the cached mapping description of a record type.
    """
    return Cache.get_instance().get_or_build('table_info', cls, lambda: _build_table_info(cls))


def table_name(table: Any) -> str:
    """Resolve a table name from a string, a record type or a record.
    """
    if isinstance(table, str):
        return table
    if isinstance(table, type):
        return describe(table).table
    return describe(type(table)).table


def blank(cls: type) -> Any:
    """Create a record without calling its constructor.

    Declared defaults and default factories are honoured, other fields
    start as None.
    """
    obj = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(obj, f.name, value)
    return obj


def build_model(record: Any, include_joins: bool = True,
                omit_fields: list[str] | tuple[str, ...] = ()) -> Model:
    """Build the per-call Model for `record`.

    Omitted fields are left out of the column set, except the primary key
    which is always kept. A relation is joined when `include_joins` is set,
    its name is not omitted and both its foreign key field and its target's
    primary key are mapped.
    """
    info = describe(type(record))
    omitted = set(omit_fields or ())

    fields = [
        ModelField(f, getattr(record, f.name))
        for f in info.fields
        if f.primary_key or f.name not in omitted
    ]
    pk = next((f for f in fields if f.info.primary_key), None)

    joins: list[Join] = []
    if include_joins:
        for rel in info.relations:
            if rel.name in omitted:
                continue
            fk_field = info.by_name.get(rel.fk)
            target = describe(rel.target)
            if fk_field is None or target.pk is None:
                logger.debug(f'Cannot join {info.table}.{rel.name}: missing key field')
                continue
            joins.append(Join(relation=rel, alias=rel.name,
                              fk_column=fk_field.column, target=target))

    return Model(info=info, table=info.table, fields=fields, pk=pk, joins=joins)
