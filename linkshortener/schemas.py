from pydantic import BaseModel, Field, field_validator, ConfigDict, EmailStr
from typing import Optional, List
from datetime import datetime

from linkshortener.config import settings
from linkshortener.utils import is_valid_url, validate_custom_code

class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr

class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)

class UserResponse(UserBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    username: Optional[str] = None
    user_id: Optional[int] = None

class LinkBase(BaseModel):
    original_url: str = Field(..., description="Оригинальный URL для сокращения")

    @field_validator('original_url')
    @classmethod
    def validate_url(cls, v):
        v = v.strip()
        if not is_valid_url(v):
            raise ValueError("Недействительный URL")
        return v

class LinkCreate(LinkBase):
    custom_alias: Optional[str] = Field(
        None,
        min_length=settings.MIN_CUSTOM_ALIAS_LENGTH,
        max_length=settings.MAX_CUSTOM_ALIAS_LENGTH,
        description="Пользовательский алиас для короткой ссылки"
    )
    expires_at: Optional[datetime] = Field(None, description="Время истечения срока действия ссылки")

    @field_validator('custom_alias')
    @classmethod
    def validate_alias(cls, v):
        if v is None:
            return v
        problem = validate_custom_code(v)
        if problem:
            raise ValueError(problem)
        return v

class LinkUpdate(BaseModel):
    original_url: Optional[str] = Field(None, description="Новый оригинальный URL")
    expires_at: Optional[datetime] = Field(None, description="Новое время истечения срока действия")

    @field_validator('original_url')
    @classmethod
    def validate_url(cls, v):
        if v is not None and not is_valid_url(v.strip()):
            raise ValueError("Недействительный URL")
        return v.strip() if v is not None else v

class ClickInfo(BaseModel):
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class LinkStats(BaseModel):
    short_code: str
    original_url: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    click_count: int
    last_accessed: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LinkStatsDetailed(LinkStats):
    recent_clicks: List[ClickInfo] = []

class LinkResponse(BaseModel):
    short_code: str
    original_url: str
    short_url: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    click_count: int = 0

    model_config = ConfigDict(from_attributes=True)

class LinkListResponse(BaseModel):
    links: List[LinkResponse]
    count: int
