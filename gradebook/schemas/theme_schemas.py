# gradebook/schemas/theme_schemas.py
from typing import Optional

from pydantic import Field

from .common import CamelModel

HEX_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


class ThemeCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str = Field(..., min_length=5, max_length=200)
    primary_color: str = Field(..., pattern=HEX_PATTERN)
    secondary_color: str = Field(..., pattern=HEX_PATTERN)
    is_default: bool = False


class ThemeUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, min_length=5, max_length=200)
    primary_color: Optional[str] = Field(default=None, pattern=HEX_PATTERN)
    secondary_color: Optional[str] = Field(default=None, pattern=HEX_PATTERN)
    is_default: Optional[bool] = None
