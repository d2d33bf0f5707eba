from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from linkshortener import crud
from linkshortener.database import get_db
from linkshortener.exceptions import (
    InvalidShortCodeError, InvalidURLError, LinkExpiredError, LinkNotFoundError,
    ShortCodeGenerationError, ShortCodeTakenError
)
from linkshortener.models import Link, User
from linkshortener.schemas import LinkCreate, LinkResponse, LinkUpdate, LinkStatsDetailed, LinkListResponse
from linkshortener.templating import templates
from linkshortener.utils import build_short_url, is_expired
from linkshortener.dependencies import require_user, get_owned_link, get_client_info, get_session_user

router = APIRouter(tags=["links"])


def to_response(link: Link) -> LinkResponse:
    return LinkResponse(
        short_code=link.short_code,
        original_url=link.original_url,
        short_url=build_short_url(link.short_code),
        created_at=link.created_at,
        expires_at=link.expires_at,
        click_count=link.click_count
    )

# Создание короткой ссылки
@router.post("/links/shorten", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_short_link(
    link_data: LinkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Создает короткую ссылку"""
    try:
        new_link = crud.create_link(
            db,
            owner=current_user,
            original_url=link_data.original_url,
            custom_alias=link_data.custom_alias,
            expires_at=link_data.expires_at
        )
    except ShortCodeTakenError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Пользовательский алиас уже занят"
        )
    except (InvalidURLError, InvalidShortCodeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ShortCodeGenerationError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Не удалось сгенерировать короткий код, попробуйте позже"
        )

    return to_response(new_link)

# Ссылки текущего пользователя
@router.get("/links", response_model=LinkListResponse)
async def list_my_links(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Возвращает ссылки текущего пользователя, новые сначала"""
    links = [to_response(link) for link in crud.list_links_for_owner(db, current_user)]
    return LinkListResponse(links=links, count=len(links))

# Получение информации о ссылке
@router.get("/links/{short_code}", response_model=LinkResponse)
async def get_link_info(
    short_code: str,
    db: Session = Depends(get_db)
):
    """Получает информацию о короткой ссылке"""
    try:
        link = crud.get_link(db, short_code)
    except LinkNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ссылка не найдена"
        )

    if is_expired(link.expires_at):
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Срок действия ссылки истек"
        )

    return to_response(link)

# Получение статистики по ссылке
@router.get("/links/{short_code}/stats", response_model=LinkStatsDetailed)
async def get_link_stats(
    link: Link = Depends(get_owned_link),
    db: Session = Depends(get_db)
):
    """Получает статистику использования короткой ссылки"""
    return LinkStatsDetailed(
        short_code=link.short_code,
        original_url=link.original_url,
        created_at=link.created_at,
        expires_at=link.expires_at,
        click_count=link.click_count,
        last_accessed=link.last_accessed,
        recent_clicks=crud.get_recent_clicks(db, link)
    )

# Обновление ссылки
@router.put("/links/{short_code}", response_model=LinkResponse)
async def update_link(
    link_data: LinkUpdate,
    link: Link = Depends(get_owned_link),
    db: Session = Depends(get_db)
):
    """Обновляет URL и срок действия короткой ссылки"""
    try:
        link = crud.update_link(
            db, link,
            original_url=link_data.original_url,
            expires_at=link_data.expires_at
        )
    except InvalidURLError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return to_response(link)

# Удаление ссылки
@router.delete("/links/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link: Link = Depends(get_owned_link),
    db: Session = Depends(get_db)
):
    """Удаляет короткую ссылку"""
    crud.delete_link(db, link)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Перенаправление по короткой ссылке; маршрут регистрируется последним
@router.get("/{short_code}", include_in_schema=False)
async def redirect_to_url(
    short_code: str,
    request: Request,
    db: Session = Depends(get_db),
    client_info: dict = Depends(get_client_info)
):
    """Перенаправляет по короткой ссылке и засчитывает переход"""
    try:
        original_url = crud.resolve_link(db, short_code, client_info)
    except LinkNotFoundError:
        return templates.TemplateResponse(
            request,
            "not_found.html",
            {
                "short_code": short_code,
                "title": "Link not found",
                "current_user": get_session_user(request, db)
            },
            status_code=status.HTTP_404_NOT_FOUND
        )
    except LinkExpiredError:
        return templates.TemplateResponse(
            request,
            "not_found.html",
            {
                "short_code": short_code,
                "title": "Link expired",
                "expired": True,
                "current_user": get_session_user(request, db)
            },
            status_code=status.HTTP_410_GONE
        )

    return RedirectResponse(url=original_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
