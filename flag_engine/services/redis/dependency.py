from redis.asyncio import ConnectionPool
from starlette.requests import Request


def get_redis_pool(request: Request) -> ConnectionPool:  # pragma: no cover
    """
    Returns redis connection pool.

    You can use it like this:

    >>> from redis.asyncio import ConnectionPool, Redis
    >>>
    >>> async def handler(redis_pool: ConnectionPool = Depends(get_redis_pool)):
    >>>     async with Redis(connection_pool=redis_pool) as redis:
    >>>         await redis.get('key')

    :param request: current request.
    :returns: redis connection pool.
    """
    return request.app.state.redis_pool
