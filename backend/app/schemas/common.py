"""Shared response envelopes."""

from typing import Any

from pydantic import BaseModel


class PageInfo(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next_page: bool
    has_prev_page: bool
    next_page: int | None = None
    prev_page: int | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: dict[str, Any] | None = None
