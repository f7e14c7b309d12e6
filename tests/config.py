from libb import Setting

Setting.unlock()

sqlite = Setting()
sqlite.drivername='sqlite'
sqlite.database=':memory:'
sqlite.pool_size=2

Setting.lock()
