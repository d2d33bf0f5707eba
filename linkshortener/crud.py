"""Операции над пользователями и ссылками.

Функции принимают сессию SQLAlchemy и выбрасывают доменные исключения
из linkshortener.exceptions; перевод в HTTP-ответы делают роутеры.
"""

from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from linkshortener.cache import cache_link, get_cached_link, invalidate_url_cache
from linkshortener.config import settings
from linkshortener.exceptions import (
    InvalidCredentialsError, InvalidShortCodeError, InvalidURLError,
    LinkAccessDeniedError, LinkExpiredError, LinkNotFoundError,
    ShortCodeGenerationError, ShortCodeTakenError, UserAlreadyExistsError
)
from linkshortener.models import Click, Link, User
from linkshortener.utils import (
    as_utc, generate_short_code, get_password_hash, is_expired, is_valid_url,
    seconds_until, validate_custom_code, verify_password
)


# Пользователи

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def create_user(db: Session, username: str, email: str, password: str) -> User:
    """Регистрирует нового пользователя"""
    existing = db.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise UserAlreadyExistsError("Пользователь с таким именем или email уже существует")

    user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password)
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UserAlreadyExistsError("Пользователь с таким именем или email уже существует")
    db.refresh(user)

    logger.info(f"Зарегистрирован пользователь {user.username} (id={user.id})")
    return user

def authenticate_user(db: Session, username: str, password: str) -> User:
    """Проверяет учетные данные и возвращает пользователя"""
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError("Неверное имя пользователя или пароль")
    if not user.is_active:
        raise InvalidCredentialsError("Аккаунт неактивен")
    return user


# Ссылки

def get_link(db: Session, short_code: str) -> Link:
    """Возвращает ссылку по короткому коду"""
    link = db.query(Link).filter(Link.short_code == short_code).first()
    if not link:
        raise LinkNotFoundError(short_code)
    return link

def get_owned_link(db: Session, short_code: str, owner: User) -> Link:
    """Возвращает ссылку, если текущий пользователь ее владелец"""
    link = get_link(db, short_code)
    if link.owner_id != owner.id:
        raise LinkAccessDeniedError(short_code)
    return link

def list_links_for_owner(db: Session, owner: User) -> List[Link]:
    """Ссылки пользователя, новые сначала"""
    return db.query(Link).filter(
        Link.owner_id == owner.id
    ).order_by(Link.created_at.desc(), Link.id.desc()).all()

def _insert_link(db: Session, link: Link) -> bool:
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    db.refresh(link)
    return True

def create_link(
    db: Session,
    owner: User,
    original_url: str,
    custom_alias: Optional[str] = None,
    expires_at: Optional[datetime] = None
) -> Link:
    """Создает короткую ссылку от имени владельца"""
    original_url = (original_url or "").strip()
    if not is_valid_url(original_url):
        raise InvalidURLError("Недействительный URL")
    expires_at = as_utc(expires_at)

    if custom_alias:
        problem = validate_custom_code(custom_alias)
        if problem:
            raise InvalidShortCodeError(problem)

        if db.query(Link).filter(Link.short_code == custom_alias).first():
            raise ShortCodeTakenError("Пользовательский алиас уже занят")

        link = Link(
            short_code=custom_alias,
            original_url=original_url,
            expires_at=expires_at,
            owner_id=owner.id
        )
        # Уникальность окончательно гарантирует ограничение в БД
        if not _insert_link(db, link):
            raise ShortCodeTakenError("Пользовательский алиас уже занят")
    else:
        link = None
        for _ in range(settings.SHORT_CODE_MAX_ATTEMPTS):
            short_code = generate_short_code()
            if db.query(Link).filter(Link.short_code == short_code).first():
                continue

            candidate = Link(
                short_code=short_code,
                original_url=original_url,
                expires_at=expires_at,
                owner_id=owner.id
            )
            if _insert_link(db, candidate):
                link = candidate
                break

        if link is None:
            logger.error(
                f"Не удалось подобрать свободный код за {settings.SHORT_CODE_MAX_ATTEMPTS} попыток"
            )
            raise ShortCodeGenerationError("Не удалось сгенерировать короткий код")

    logger.info(f"Создана ссылка {link.short_code} -> {link.original_url} (owner={owner.id})")
    return link

def update_link(
    db: Session,
    link: Link,
    original_url: Optional[str] = None,
    expires_at: Optional[datetime] = None
) -> Link:
    """Обновляет URL и/или срок действия ссылки"""
    if original_url is not None:
        original_url = original_url.strip()
        if not is_valid_url(original_url):
            raise InvalidURLError("Недействительный URL")
        link.original_url = original_url
    if expires_at is not None:
        link.expires_at = as_utc(expires_at)

    db.commit()
    db.refresh(link)
    invalidate_url_cache(link.short_code)

    logger.info(f"Обновлена ссылка {link.short_code}")
    return link

def delete_link(db: Session, link: Link) -> None:
    """Удаляет ссылку вместе с историей переходов"""
    short_code = link.short_code
    db.delete(link)
    db.commit()
    invalidate_url_cache(short_code)

    logger.info(f"Удалена ссылка {short_code}")

def get_recent_clicks(db: Session, link: Link, limit: int = 10) -> List[Click]:
    return db.query(Click).filter(
        Click.link_id == link.id
    ).order_by(Click.timestamp.desc(), Click.id.desc()).limit(limit).all()

def resolve_link(db: Session, short_code: str, client_info: dict) -> str:
    """Возвращает URL назначения и засчитывает ровно один переход"""
    cached = get_cached_link(short_code)

    if cached:
        if is_expired(cached.get("expires_at")):
            invalidate_url_cache(short_code)
            raise LinkExpiredError(short_code)
        link_id = cached["id"]
        original_url = cached["original_url"]
        click_count = None
    else:
        link = get_link(db, short_code)
        if is_expired(link.expires_at):
            raise LinkExpiredError(short_code)
        link_id = link.id
        original_url = link.original_url
        expires_at = link.expires_at
        click_count = (link.click_count or 0) + 1

    now = datetime.now(timezone.utc)

    # Атомарный инкремент на стороне БД
    result = db.execute(
        update(Link)
        .where(Link.id == link_id)
        .values(click_count=Link.click_count + 1, last_accessed=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        invalidate_url_cache(short_code)
        raise LinkNotFoundError(short_code)

    db.add(Click(
        link_id=link_id,
        timestamp=now,
        ip_address=client_info.get("ip_address"),
        user_agent=client_info.get("user_agent"),
        referer=client_info.get("referer")
    ))
    db.commit()

    if click_count is not None and click_count >= settings.POPULAR_URL_THRESHOLD:
        # TTL не дольше CACHE_EXPIRY и не дольше жизни самой ссылки
        ttl = settings.CACHE_EXPIRY
        remaining = seconds_until(expires_at)
        if remaining is not None:
            ttl = min(ttl, remaining)
        if ttl > 0:
            cache_link(short_code, link_id, original_url, expires_at, ttl)

    return original_url

def cleanup_expired_links(db: Session) -> int:
    """Удаляет ссылки с истекшим сроком действия"""
    expired_links = db.query(Link).filter(
        Link.expires_at.isnot(None),
        Link.expires_at < datetime.now(timezone.utc)
    ).all()

    for link in expired_links:
        invalidate_url_cache(link.short_code)
        db.delete(link)

    db.commit()
    return len(expired_links)
