from typing import Optional

from pydantic import BaseModel


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class Pagination(BaseModel):
    page: int
    size: int
    total: int


class MessageResponse(BaseModel):
    message: str
    detail: Optional[str] = None
