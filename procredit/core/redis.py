# procredit/core/redis.py
import redis.asyncio as redis
from procredit.core.config import settings

# Асинхронный клиент Redis, используется для блокировок начисления по про
redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

async def get_redis_client():
    """
    Зависимость для получения клиента Redis в эндпоинтах.
    """
    return redis_client
