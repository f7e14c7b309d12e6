import entitydb
import pytest
from entitydb.pool import ConnectionPool
from tests.fixtures.records import SCHEMA


def _create_schema(session):
    for ddl in SCHEMA:
        session.exec(ddl)


@pytest.fixture
def sqlite_session():
    """Session on a fresh in-memory SQLite database with the shared schema."""
    session = entitydb.connect({
        'drivername': 'sqlite',
        'database': ':memory:'
    })
    _create_schema(session)

    yield session
    session.close()


@pytest.fixture
def sqlite_file_options(tmp_path):
    """Options for a file-based SQLite database that outlives a single handle."""
    path = tmp_path / 'entitydb_test.db'
    options = {'drivername': 'sqlite', 'database': str(path)}
    with entitydb.connect(options) as session:
        _create_schema(session)
    return options


@pytest.fixture
def sqlite_pool():
    """Pool of two handles, disposed after the test."""
    pool = ConnectionPool(size=2)
    yield pool
    pool.dispose()
