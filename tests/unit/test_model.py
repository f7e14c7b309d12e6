"""
Unit tests for record introspection and per-call models.
"""
import datetime
import decimal
from dataclasses import dataclass, field

import pytest
from entitydb.cache import Cache
from entitydb.exceptions import UsageError
from entitydb.model import blank, build_model, describe, is_zero, table_name
from tests.fixtures.records import Account, Author, LogLine, Post, Setting


def test_describe_maps_supported_fields_in_order():
    info = describe(Post)
    assert info.table == 'post'
    assert [f.name for f in info.fields] == [
        'id', 'title', 'body', 'score', 'price', 'published',
        'author_id', 'created', 'updated']
    assert info.by_name['price'].python_type is decimal.Decimal
    assert info.by_name['created'].kind == 'created'
    assert info.by_name['updated'].kind == 'updated'
    assert info.by_name['title'].kind is None


def test_describe_conventional_primary_key():
    info = describe(Author)
    assert info.pk.name == 'id'
    assert info.pk.primary_key
    assert info.by_name['id'].primary_key


def test_describe_tagged_primary_key():
    info = describe(Setting)
    assert info.pk.name == 'name'


def test_describe_without_primary_key():
    assert describe(LogLine).pk is None


def test_describe_relations():
    info = describe(Post)
    rel = info.relation('author')
    assert rel.target is Author
    assert rel.fk == 'author_id'
    assert info.relation('missing') is None


def test_describe_overrides_and_skips():
    info = describe(Account)
    assert info.table == 'accounts'
    assert info.by_name['display_name'].column == 'label'
    assert 'label' in info.by_column
    assert 'tags' not in info.by_name
    assert '_cache' not in info.by_name


def test_describe_is_cached_per_class():
    first = describe(Author)
    assert describe(Author) is first
    Cache.get_instance().clear_all()
    assert describe(Author) is not first


def test_describe_rejects_non_dataclass():
    class Plain:
        id = 1

    with pytest.raises(UsageError):
        describe(Plain)


def test_describe_rejects_two_primary_keys():
    @dataclass
    class Twice:
        a: int = field(default=None, metadata={'pk': True})
        b: int = field(default=None, metadata={'pk': True})

    with pytest.raises(UsageError, match='more than one primary key'):
        describe(Twice)


def test_describe_rejects_relation_without_foreign_key():
    @dataclass
    class Orphan:
        id: int = None
        author: Author = None

    with pytest.raises(UsageError, match='author_id'):
        describe(Orphan)


def test_relation_with_custom_foreign_key_and_optional_type():
    @dataclass
    class Review:
        id: int = None
        writer: Author | None = field(default=None, metadata={'fk': 'writer_ref'})
        writer_ref: int = None

    rel = describe(Review).relation('writer')
    assert rel.fk == 'writer_ref'
    model = build_model(Review())
    assert model.joins[0].fk_column == 'writer_ref'


def test_created_requires_datetime_type():
    @dataclass
    class Event:
        id: int = None
        created: str = None
        updated: datetime.datetime = None

    info = describe(Event)
    assert info.by_name['created'].kind is None
    assert info.by_name['updated'].kind == 'updated'


def test_build_model_captures_values():
    post = Post(id=3, title='hello', author_id=9)
    model = build_model(post)
    assert model.table == 'post'
    assert model.pk.value == 3
    values = {f.name: f.value for f in model.fields}
    assert values['title'] == 'hello'
    assert values['author_id'] == 9
    assert not model.pk_zero()


def test_build_model_joins():
    model = build_model(Post())
    assert len(model.joins) == 1
    join = model.joins[0]
    assert join.alias == 'author'
    assert join.fk_column == 'author_id'
    assert join.target.table == 'author'

    assert build_model(Post(), include_joins=False).joins == []


def test_build_model_omits_fields_but_keeps_primary_key():
    model = build_model(Post(id=1), omit_fields=['id', 'body', 'author'])
    names = [f.name for f in model.fields]
    assert 'id' in names
    assert 'body' not in names
    assert model.joins == []


def test_build_model_skips_join_to_target_without_primary_key():
    @dataclass
    class Entry:
        id: int = None
        line_id: int = None
        line: LogLine = None

    assert build_model(Entry()).joins == []


def test_model_time_field_and_columns():
    model = build_model(Post())
    assert model.time_field('created').name == 'created'
    assert model.time_field('deleted') is None
    assert 'id' not in [f.name for f in model.columns(include_pk=False)]
    assert model.pk_zero()


@pytest.mark.parametrize(('value', 'zero'), [
    (None, True), (0, True), ('', True), (1, False), ('a', False), (-1, False)])
def test_is_zero(value, zero):
    assert is_zero(value) is zero


def test_table_name_resolution():
    assert table_name('custom') == 'custom'
    assert table_name(Author) == 'author'
    assert table_name(Author(id=1)) == 'author'
    assert table_name(Account) == 'accounts'


def test_blank_honours_defaults_and_skips_post_init():
    calls = []

    @dataclass
    class Thing:
        id: int
        label: str = 'none'
        items: list = field(default_factory=list)

        def __post_init__(self):
            calls.append(self)

    thing = blank(Thing)
    assert thing.id is None
    assert thing.label == 'none'
    assert thing.items == []
    assert calls == []


if __name__ == '__main__':
    __import__('pytest').main([__file__])
