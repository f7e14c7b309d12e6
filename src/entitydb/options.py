from dataclasses import dataclass

from entitydb.dialect import get_available_dialects, get_dialect_class
from entitydb.dialect import is_supported_dialect

from libb import ConfigOptions

__all__ = ['DatabaseOptions']


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    pool_size bounds the shared ConnectionPool used by
    `connect(options, pool=True)` (default: 10).
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    pool_size: int = 10

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        if self.pool_size < 0:
            raise ValueError(f'pool_size must be >= 0, got {self.pool_size}')
        dialect_cls = get_dialect_class(self.drivername)
        dialect_cls.validate_options(self)
