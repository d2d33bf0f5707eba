import redis
from datetime import datetime
from typing import Optional
from loguru import logger

from linkshortener.config import settings
from linkshortener.json_utils import dumps, loads

redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    decode_responses=True,
    socket_connect_timeout=1,
    socket_timeout=1
)

URL_CACHE_PREFIX = "url:"  # short_code -> {"id", "original_url", "expires_at"}

def get_url_cache_key(short_code: str) -> str:
    """Формирует ключ кеша для короткого кода"""
    return f"{URL_CACHE_PREFIX}{short_code}"

def get_cached_link(short_code: str) -> Optional[dict]:
    """Получает закешированные данные ссылки по короткому коду"""
    try:
        raw = redis_client.get(get_url_cache_key(short_code))
    except redis.RedisError as e:
        logger.warning(f"Кеш недоступен при чтении {short_code}: {e}")
        return None

    if not raw:
        return None

    try:
        data = loads(raw)
    except ValueError:
        logger.warning(f"Некорректная запись кеша для {short_code}, удаляем")
        invalidate_url_cache(short_code)
        return None

    expires_at = data.get("expires_at")
    if expires_at:
        data["expires_at"] = datetime.fromisoformat(expires_at)
    return data

def get_cached_url(short_code: str) -> Optional[str]:
    """Получает оригинальный URL из кеша по короткому коду"""
    data = get_cached_link(short_code)
    return data["original_url"] if data else None

def cache_link(
    short_code: str,
    link_id: int,
    original_url: str,
    expires_at: Optional[datetime] = None,
    expire: Optional[int] = None
) -> None:
    """Кеширует данные ссылки с опциональным TTL; TTL <= 0 означает не кешировать"""
    if expire is None:
        expire = settings.CACHE_EXPIRY
    if expire <= 0:
        return

    payload = dumps({
        "id": link_id,
        "original_url": original_url,
        "expires_at": expires_at.isoformat() if expires_at else None,
    })
    try:
        redis_client.set(
            get_url_cache_key(short_code),
            payload,
            ex=expire
        )
    except redis.RedisError as e:
        logger.warning(f"Не удалось закешировать {short_code}: {e}")

def invalidate_url_cache(short_code: str) -> None:
    """Инвалидирует кеш URL при обновлении или удалении"""
    try:
        redis_client.delete(get_url_cache_key(short_code))
    except redis.RedisError as e:
        logger.warning(f"Не удалось инвалидировать кеш {short_code}: {e}")
