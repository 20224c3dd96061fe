from functools import lru_cache

from ..engine import Engine


@lru_cache
def get_engine() -> Engine:
    return Engine()
