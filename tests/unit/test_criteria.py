"""
Unit tests for per-call criteria.
"""
from entitydb.condition import Condition
from entitydb.criteria import Criteria, Order
from entitydb.dialect import get_dialect
from entitydb.model import build_model
from tests.fixtures.records import Author


def test_defaults():
    criteria = Criteria()
    assert criteria.model is None
    assert criteria.condition is None
    assert criteria.limit == 0
    assert criteria.offset == 0
    assert criteria.order_bys == []
    assert criteria.omit_fields == []
    assert not criteria.omit_join


def test_pk_condition():
    dialect = get_dialect('sqlite')
    criteria = Criteria(model=build_model(Author(id=4)))
    assert criteria.pk_condition(dialect).merge() == ('"author"."id" = ?', (4,))

    criteria = Criteria(model=build_model(Author()))
    assert criteria.pk_condition(dialect) is None


def test_merge_pk_condition_goes_first():
    dialect = get_dialect('sqlite')
    criteria = Criteria(model=build_model(Author(id=4)), condition=Condition('name = ?', 'x'))
    criteria.merge_pk_condition(dialect)
    assert criteria.condition.merge() == ('("author"."id" = ?) AND (name = ?)', (4, 'x'))


def test_merge_pk_condition_without_user_condition():
    dialect = get_dialect('sqlite')
    criteria = Criteria(model=build_model(Author(id=4)))
    criteria.merge_pk_condition(dialect)
    assert criteria.condition.merge() == ('"author"."id" = ?', (4,))


def test_merge_pk_condition_with_zero_key_keeps_condition():
    dialect = get_dialect('sqlite')
    cond = Condition('name = ?', 'x')
    criteria = Criteria(model=build_model(Author(id=0)), condition=cond)
    criteria.merge_pk_condition(dialect)
    assert criteria.condition is cond


def test_snapshot_is_unaffected_by_merge():
    dialect = get_dialect('sqlite')
    criteria = Criteria(model=build_model(Author(id=4)), order_bys=[Order('"name"')])
    pristine = criteria.snapshot()
    criteria.merge_pk_condition(dialect)
    assert pristine.condition is None
    assert pristine.model is criteria.model
    assert pristine.order_bys == [Order('"name"')]


if __name__ == '__main__':
    __import__('pytest').main([__file__])
