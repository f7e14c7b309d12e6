"""
Database connection handling with SQLAlchemy.

This module provides:
1. SQLAlchemy URL generation from DatabaseOptions
2. Engine creation and management through a thread-safe registry
3. A registry of shared ConnectionPools sized by `pool_size`
4. The `connect()` function returning a ready Session

SQLAlchemy engines are created with NullPool: handle reuse is the job of
a ConnectionPool, either passed to `connect()` or, with `pool=True`, the
shared pool registered for the options.
"""
import atexit
import logging
import threading
from dataclasses import fields
from typing import Any

import sqlalchemy as sa
from entitydb.options import DatabaseOptions
from entitydb.pool import ConnectionPool
from entitydb.session import Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

__all__ = [
    'connect',
    'create_url_from_options',
    'get_engine_for_options',
    'get_pool_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

# Thread-safe engine and pool registries
_engine_registry: dict[str, Engine] = {}
_pool_registry: dict[str, ConnectionPool] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions, url_creator=sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.

    Args:
        options: DatabaseOptions object with connection parameters
        url_creator: Function used to create URL objects (default: sqlalchemy.URL.create)

    Returns
        sqlalchemy.URL: SQLAlchemy URL object for database connection
    """
    if options.drivername == 'sqlite':
        return url_creator(drivername='sqlite', database=options.database)

    if options.drivername == 'postgresql':
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query
        )

    raise ValueError(f'Unsupported database type: {options.drivername}')


def get_engine_for_options(options: DatabaseOptions, engine_factory=sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.

    Args:
        options: DatabaseOptions object
        engine_factory: Function to create engines (defaults to sqlalchemy.create_engine)
        **kwargs: Additional arguments passed to engine factory

    Returns
        sqlalchemy.engine.Engine: SQLAlchemy engine
    """
    key = str(create_url_from_options(options))

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        engine_kwargs = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(kwargs)
        engine = engine_factory(create_url_from_options(options), **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')
        return engine


def get_pool_for_options(options: DatabaseOptions) -> ConnectionPool:
    """Get or create the shared ConnectionPool for the given options.

    The pool is bounded by `options.pool_size`; an existing pool is resized
    when the size differs.

    Returns
        ConnectionPool shared by every `connect(options, pool=True)`
    """
    key = str(create_url_from_options(options))

    with _engine_registry_lock:
        pool = _pool_registry.get(key)
        if pool is None:
            pool = _pool_registry[key] = ConnectionPool(size=options.pool_size)
            logger.debug(f'Created pool of {options.pool_size} for {options.drivername}')
        elif pool.size != options.pool_size:
            pool.resize(options.pool_size)
        return pool


def dispose_all_engines() -> None:
    """Dispose all shared pools and engines in the registries."""
    with _engine_registry_lock:
        for pool in _pool_registry.values():
            pool.dispose()
        _pool_registry.clear()
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Session:
    """Open a Session on the database described by `options`.

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        pool: ConnectionPool to take a free handle from and to return the
              handle to when the session closes, or True for the shared
              pool of `pool_size` handles registered for the options
        **kw: Additional keyword arguments to override options

    Returns
        Session bound to a pooled handle or a freshly opened one
    """
    pool: ConnectionPool | bool | None = kw.pop('pool', None)

    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    if pool is True:
        pool = get_pool_for_options(options)
    elif pool is False:
        pool = None

    handle = pool.get() if pool is not None else None
    if handle is None:
        handle = get_engine_for_options(options).connect()
        logger.debug(f'Opened new {options.drivername} connection')

    return Session(handle, dialect=options.drivername, pool=pool)
