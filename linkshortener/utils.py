import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from passlib.context import CryptContext
import validators
from linkshortener.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SHORT_CODE_ALPHABET = string.ascii_letters + string.digits
SHORT_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Коды, совпадающие с маршрутами приложения
RESERVED_SHORT_CODES = frozenset({
    "auth", "dashboard", "docs", "favicon.ico", "health", "links",
    "openapi.json", "redoc", "robots.txt", "sign-in", "sign-out",
    "sign-up", "static",
})

def generate_short_code(length: int = settings.DEFAULT_SHORT_CODE_LENGTH) -> str:
    """Генерирует случайный короткий код указанной длины"""
    return ''.join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))

def is_valid_url(url: Optional[str]) -> bool:
    """Проверяет, что строка является абсолютным http(s) URL"""
    if not url or not validators.url(url):
        return False
    return url.lower().startswith(("http://", "https://"))

def validate_custom_code(code: str) -> Optional[str]:
    """Возвращает описание проблемы с пользовательским кодом или None"""
    if not settings.MIN_CUSTOM_ALIAS_LENGTH <= len(code) <= settings.MAX_CUSTOM_ALIAS_LENGTH:
        return (
            f"Short code must be {settings.MIN_CUSTOM_ALIAS_LENGTH}-"
            f"{settings.MAX_CUSTOM_ALIAS_LENGTH} characters long"
        )
    if not SHORT_CODE_PATTERN.match(code):
        return "Short code may contain only letters, digits, '-' and '_'"
    if code.lower() in RESERVED_SHORT_CODES:
        return "This short code is reserved"
    return None

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет соответствие пароля хешу"""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Хеширует пароль"""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Создает JWT токен доступа"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def build_short_url(short_code: str) -> str:
    """Создает полный короткий URL с базовым URL приложения"""
    return f"{settings.BASE_URL.rstrip('/')}/{short_code}"

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Приводит datetime к UTC, наивные значения считаются UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def is_expired(expires_at: Optional[datetime]) -> bool:
    """Проверяет, истек ли срок действия ссылки"""
    if not expires_at:
        return False

    return datetime.now(timezone.utc) > as_utc(expires_at)

def seconds_until(expires_at: Optional[datetime]) -> Optional[int]:
    """Возвращает число секунд до истечения срока или None"""
    if not expires_at:
        return None
    remaining = int((as_utc(expires_at) - datetime.now(timezone.utc)).total_seconds())
    return max(remaining, 0)

def extract_client_info(request) -> dict:
    """Извлекает информацию о клиенте из запроса"""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "referer": request.headers.get("referer"),
        "timestamp": datetime.now(timezone.utc)
    }
