from typing import Optional
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import ValidationError
from sqlalchemy.orm import Session

from linkshortener import crud
from linkshortener.config import settings
from linkshortener.database import get_db
from linkshortener.dependencies import get_page_user
from linkshortener.exceptions import InvalidCredentialsError, UserAlreadyExistsError
from linkshortener.models import User
from linkshortener.schemas import Token, UserCreate, UserResponse
from linkshortener.templating import templates
from linkshortener.utils import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])
pages_router = APIRouter(tags=["pages"], include_in_schema=False)


def issue_token(user: User) -> str:
    return create_access_token({"sub": user.username, "user_id": user.id})

def start_session(user: User) -> RedirectResponse:
    """Выставляет cookie сессии и отправляет пользователя в кабинет"""
    response = RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        issue_token(user),
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE
    )
    return response

def first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value").removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


# JSON API

@router.post("/register", response_model=UserResponse)
async def register_user(user_data: UserCreate, db: Session = Depends(get_db)):
    """Регистрирует нового пользователя"""
    try:
        return crud.create_user(db, user_data.username, user_data.email, user_data.password)
    except UserAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Пользователь с таким именем или email уже существует"
        )

@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Выдает JWT токен по имени пользователя и паролю"""
    try:
        user = crud.authenticate_user(db, form_data.username, form_data.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверное имя пользователя или пароль",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Token(access_token=issue_token(user), token_type="bearer")


# HTML

@pages_router.get("/sign-in")
async def sign_in_page(
    request: Request,
    current_user: Optional[User] = Depends(get_page_user)
):
    if current_user:
        return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(request, "sign_in.html", {"current_user": None})

@pages_router.post("/sign-in")
async def sign_in(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db)
):
    """Вход через форму: выставляет cookie сессии"""
    try:
        user = crud.authenticate_user(db, username, password)
    except InvalidCredentialsError:
        return templates.TemplateResponse(
            request,
            "sign_in.html",
            {"current_user": None, "error": "Invalid username or password", "username": username},
            status_code=status.HTTP_401_UNAUTHORIZED
        )
    return start_session(user)

@pages_router.get("/sign-up")
async def sign_up_page(
    request: Request,
    current_user: Optional[User] = Depends(get_page_user)
):
    if current_user:
        return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    return templates.TemplateResponse(request, "sign_up.html", {"current_user": None})

@pages_router.post("/sign-up")
async def sign_up(
    request: Request,
    username: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db)
):
    """Регистрация через форму"""
    context = {"current_user": None, "username": username, "email": email}
    try:
        user_data = UserCreate(username=username, email=email, password=password)
        user = crud.create_user(db, user_data.username, user_data.email, user_data.password)
    except ValidationError as e:
        context["error"] = first_error(e)
        return templates.TemplateResponse(
            request, "sign_up.html", context, status_code=status.HTTP_400_BAD_REQUEST
        )
    except UserAlreadyExistsError:
        context["error"] = "Username or email is already registered"
        return templates.TemplateResponse(
            request, "sign_up.html", context, status_code=status.HTTP_400_BAD_REQUEST
        )
    return start_session(user)

@pages_router.post("/sign-out")
async def sign_out():
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response
