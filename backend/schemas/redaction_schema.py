"""
Pydantic schemas for redaction rectangles.

Coordinates are normalized to [0, 1] relative to the page, origin top-left.
"""
import math
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


def check_rect(x: float, y: float, width: float, height: float) -> None:
    if not all(math.isfinite(v) for v in (x, y, width, height)):
        raise ValueError("Coordinates must be finite numbers")
    if x < 0 or y < 0:
        raise ValueError("x and y must be >= 0")
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be > 0")
    if x + width > 1 + 1e-9 or y + height > 1 + 1e-9:
        raise ValueError("Redaction must lie inside the page (x + width <= 1, y + height <= 1)")


class RedactionCreate(BaseModel):
    document_id: str
    page_number: int = Field(..., ge=1)
    x: float
    y: float
    width: float
    height: float
    reason_code: str
    polygon: Optional[List[Any]] = None

    @field_validator("reason_code")
    @classmethod
    def reason_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("reason_code must not be empty")
        return v.strip()

    @model_validator(mode="after")
    def rect_inside_page(self):
        check_rect(self.x, self.y, self.width, self.height)
        return self


class RedactionUpdate(BaseModel):
    page_number: Optional[int] = Field(None, ge=1)
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    reason_code: Optional[str] = None
    polygon: Optional[List[Any]] = None

    @field_validator("reason_code")
    @classmethod
    def reason_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("reason_code must not be empty")
        return v.strip() if v is not None else v


class RedactionOut(BaseModel):
    id: str
    document_id: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    reason_code: str
    polygon: Optional[List[Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
