"""
Unit tests for options, URL construction and the engine registry.
"""
import pytest
from entitydb import connection
from entitydb.connection import create_url_from_options, dispose_all_engines
from entitydb.connection import get_engine_for_options
from entitydb.options import DatabaseOptions


@pytest.fixture(autouse=True)
def empty_engine_registry():
    dispose_all_engines()
    yield
    dispose_all_engines()


def test_sqlite_options():
    options = DatabaseOptions(drivername='sqlite', database=':memory:')
    assert options.pool_size == 10
    url = create_url_from_options(options)
    assert url.drivername == 'sqlite'
    assert url.database == ':memory:'


def test_postgres_options_url():
    options = DatabaseOptions(drivername='postgresql', hostname='db', username='u',
                              password='p', database='app', port=5432, timeout=5)
    url = create_url_from_options(options)
    assert url.drivername == 'postgresql+psycopg'
    assert url.host == 'db'
    assert url.port == 5432
    assert url.database == 'app'
    assert url.query['connect_timeout'] == '5'


def test_unsupported_driver_rejected():
    with pytest.raises(ValueError, match='drivername must be one of'):
        DatabaseOptions(drivername='oracle', database='x')


def test_missing_required_field_rejected():
    with pytest.raises(ValueError, match='field hostname cannot be None or 0'):
        DatabaseOptions(drivername='postgresql', username='u', password='p',
                        database='app', port=5432)
    with pytest.raises(ValueError, match='field database'):
        DatabaseOptions(drivername='sqlite')


def test_negative_pool_size_rejected():
    with pytest.raises(ValueError, match='pool_size'):
        DatabaseOptions(drivername='sqlite', database=':memory:', pool_size=-1)


def test_engine_registry_reuses_engines(mocker):
    factory = mocker.MagicMock(side_effect=lambda url, **kw: mocker.MagicMock())
    options = DatabaseOptions(drivername='sqlite', database='a.db')

    first = get_engine_for_options(options, engine_factory=factory)
    second = get_engine_for_options(options, engine_factory=factory)
    assert first is second
    assert factory.call_count == 1
    assert factory.call_args.kwargs['poolclass'].__name__ == 'NullPool'

    other = get_engine_for_options(DatabaseOptions(drivername='sqlite', database='b.db'),
                                   engine_factory=factory)
    assert other is not first
    assert factory.call_count == 2


def test_dispose_all_engines(mocker):
    engine = mocker.MagicMock()
    options = DatabaseOptions(drivername='sqlite', database='a.db')
    get_engine_for_options(options, engine_factory=lambda url, **kw: engine)
    dispose_all_engines()
    engine.dispose.assert_called_once()
    assert connection._engine_registry == {}


if __name__ == '__main__':
    __import__('pytest').main([__file__])
