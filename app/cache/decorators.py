from functools import wraps
from typing import Any, Callable

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

import logging

logger = logging.getLogger(__name__)


def read_through(key_builder: Callable[..., str], schema: Any):
    """
    Decorator for async service loaders. key_builder receives the same
    args/kwargs as the method, minus ``self``. The owning service must
    expose ``cache`` (a CacheLayer) and ``cache_ttl``.

    Hits are validated into ``schema`` so callers get the same type whether
    the value came from Redis or from the store. Exceptions raised by the
    loader propagate and nothing is cached.

    Example:
      @read_through(lambda task_id: f"task:{task_id}", TaskRead)
      async def get_task(self, task_id): ...
    """
    adapter = TypeAdapter(schema)

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)

            cached = await self.cache.get(key)
            if cached is not None:
                try:
                    return adapter.validate_python(cached)
                except SchemaError as e:
                    logger.warning(f"Ignoring unreadable cache entry {key}: {e}")

            value = adapter.validate_python(
                await fn(self, *args, **kwargs), from_attributes=True
            )
            await self.cache.set(
                key, adapter.dump_python(value, mode="json"), ttl=self.cache_ttl
            )
            return value

        return wrapper

    return decorator
