from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from linkshortener import crud
from linkshortener.database import get_db
from linkshortener.exceptions import LinkAccessDeniedError, LinkNotFoundError
from linkshortener.models import User, Link
from linkshortener.schemas import TokenData
from linkshortener.config import settings
from linkshortener.utils import extract_client_info

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)

def decode_access_token(token: str) -> TokenData:
    """Декодирует JWT и возвращает данные сессии"""
    payload = jwt.decode(
        token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
    )
    username = payload.get("sub")
    user_id = payload.get("user_id")

    if username is None or user_id is None:
        raise JWTError("В токене нет идентификатора пользователя")

    return TokenData(username=username, user_id=user_id)

def user_from_token(db: Session, token: str) -> Optional[User]:
    """Активный пользователь по токену; недействительный токен дает None"""
    try:
        token_data = decode_access_token(token)
    except JWTError:
        return None

    user = crud.get_user(db, token_data.user_id)
    if user is None or not user.is_active:
        return None
    return user

def get_session_user(request: Request, db: Session) -> Optional[User]:
    """Пользователь из cookie сессии HTML-страниц; битая cookie = гость"""
    cookie_token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not cookie_token:
        return None
    return user_from_token(db, cookie_token)

async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Возвращает текущего пользователя или None, если сессии нет"""
    if token is not None:
        user = user_from_token(db, token)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Недействительные учетные данные",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user

    return get_session_user(request, db)

async def get_page_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Пользователь HTML-страницы: недействительный Bearer-токен не мешает показу"""
    if token is not None:
        user = user_from_token(db, token)
        if user is not None:
            return user
    return get_session_user(request, db)

async def require_user(current_user: Optional[User] = Depends(get_current_user)) -> User:
    """Требует аутентифицированного пользователя"""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Требуется аутентификация",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user

async def get_owned_link(
    short_code: str,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_db)
) -> Link:
    """Проверяет, что текущий пользователь является владельцем ссылки"""
    try:
        return crud.get_owned_link(db, short_code, current_user)
    except LinkNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ссылка не найдена"
        )
    except LinkAccessDeniedError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Нет доступа к этой ссылке"
        )

async def get_client_info(request: Request):
    """Получает информацию о клиенте из запроса"""
    return extract_client_info(request)
