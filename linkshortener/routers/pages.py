"""Серверные HTML-страницы: лендинг и кабинет со ссылками."""

from typing import Optional
from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from linkshortener import crud
from linkshortener.database import get_db
from linkshortener.dependencies import get_page_user
from linkshortener.exceptions import (
    InvalidShortCodeError, InvalidURLError, LinkAccessDeniedError,
    LinkNotFoundError, ShortCodeGenerationError, ShortCodeTakenError
)
from linkshortener.models import User
from linkshortener.templating import templates

router = APIRouter(tags=["pages"], include_in_schema=False)


def to_sign_in() -> RedirectResponse:
    return RedirectResponse("/sign-in", status_code=status.HTTP_303_SEE_OTHER)

def render_dashboard(
    request: Request,
    db: Session,
    user: User,
    status_code: int = status.HTTP_200_OK,
    **extra
):
    context = {
        "current_user": user,
        "links": crud.list_links_for_owner(db, user),
    }
    context.update(extra)
    return templates.TemplateResponse(request, "dashboard.html", context, status_code=status_code)


@router.get("/")
async def home(
    request: Request,
    current_user: Optional[User] = Depends(get_page_user)
):
    """Лендинг; вошедших пользователей сразу отправляет в кабинет"""
    if current_user:
        return RedirectResponse("/dashboard", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    return templates.TemplateResponse(request, "home.html", {"current_user": None})

@router.get("/dashboard")
async def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_page_user)
):
    if current_user is None:
        return to_sign_in()
    return render_dashboard(request, db, current_user)

@router.post("/dashboard/links")
async def dashboard_create_link(
    request: Request,
    original_url: str = Form(...),
    custom_alias: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_page_user)
):
    """Создание ссылки из формы кабинета"""
    if current_user is None:
        return to_sign_in()

    custom_alias = (custom_alias or "").strip() or None
    form = {"original_url": original_url, "custom_alias": custom_alias or ""}

    try:
        crud.create_link(db, current_user, original_url, custom_alias=custom_alias)
    except InvalidURLError:
        error = "Please enter a valid absolute URL, e.g. https://example.com/page"
    except InvalidShortCodeError as e:
        error = str(e)
    except ShortCodeTakenError:
        error = f"Short code '{custom_alias}' is already taken"
    except ShortCodeGenerationError:
        error = "Could not generate a short code, please try again"
    else:
        return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)

    return render_dashboard(
        request, db, current_user,
        status_code=status.HTTP_400_BAD_REQUEST,
        error=error,
        form=form
    )

@router.post("/dashboard/links/{short_code}/delete")
async def dashboard_delete_link(
    request: Request,
    short_code: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_page_user)
):
    if current_user is None:
        return to_sign_in()

    try:
        link = crud.get_owned_link(db, short_code, current_user)
    except LinkNotFoundError:
        return render_dashboard(
            request, db, current_user,
            status_code=status.HTTP_404_NOT_FOUND,
            error="Link not found"
        )
    except LinkAccessDeniedError:
        return render_dashboard(
            request, db, current_user,
            status_code=status.HTTP_403_FORBIDDEN,
            error="You can only delete your own links"
        )

    crud.delete_link(db, link)
    return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
