# gradebook/services/theme_service.py
"""UI colour themes managed by superadmins."""
import colorsys
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BadRequest, NotFound
from ..models.theme import Theme
from ..models.user import User
from ..schemas.common import iso
from ..schemas.theme_schemas import ThemeCreate, ThemeUpdate
from .base_service import BaseService

logger = logging.getLogger(__name__)

FALLBACK_THEME = {
    "name": "Default Theme",
    "description": "Classic blue theme",
    "primary_color": "#475569",
    "secondary_color": "#F8FAFC",
}


def hex_to_hsl(color: str) -> str:
    """``#RRGGBB`` (or ``#RGB``) as the ``"H S% L%"`` triple used by the frontend CSS variables."""
    digits = color.lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    r, g, b = (int(digits[i:i + 2], 16) / 255 for i in (0, 2, 4))
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return f"{round(h * 360)} {round(s * 100)}% {round(l * 100)}%"


def css_variables(theme: Theme) -> dict:
    primary = hex_to_hsl(theme.primary_color)
    secondary = hex_to_hsl(theme.secondary_color)
    return {
        "colors": {
            "primary": primary,
            "secondary": secondary,
            "accent": primary,
            "background": "#FEFEFE",
            "foreground": "#1F2937",
            "card": secondary,
            "card-foreground": "#1F2937",
            "muted": secondary,
            "muted-foreground": "#6B7280",
            "border": secondary,
            "input": secondary,
            "ring": primary,
        },
        "darkColors": {
            "primary": primary,
            "secondary": "#1F2937",
            "accent": primary,
            "background": "#111827",
            "foreground": secondary,
            "card": "#1F2937",
            "card-foreground": secondary,
            "muted": "#374151",
            "muted-foreground": primary,
            "border": "#374151",
            "input": "#1F2937",
            "ring": primary,
        },
    }


class ThemeService(BaseService[Theme]):
    resource_name = "Theme"

    def __init__(self, db: AsyncSession):
        super().__init__(Theme, db)

    async def _creators(self, themes: List[Theme]) -> Dict[UUID, dict]:
        ids = {t.created_by for t in themes if t.created_by}
        if not ids:
            return {}
        rows = await self.db.execute(select(User.id, User.name, User.email, User.role).where(User.id.in_(ids)))
        return {
            user_id: {"_id": str(user_id), "name": name, "email": email, "role": role}
            for user_id, name, email, role in rows.all()
        }

    async def to_dicts(self, themes: List[Theme]) -> List[dict]:
        creators = await self._creators(themes)
        return [
            {
                "_id": str(t.id),
                "name": t.name,
                "description": t.description,
                "primaryColor": t.primary_color,
                "secondaryColor": t.secondary_color,
                "isDefault": t.is_default,
                "isActive": t.is_active,
                "createdBy": creators.get(t.created_by),
                "createdAt": iso(t.created_at),
                "updatedAt": iso(t.updated_at),
                "cssVariables": css_variables(t),
            }
            for t in themes
        ]

    async def to_dict(self, theme: Theme) -> dict:
        return (await self.to_dicts([theme]))[0]

    async def _ensure_name_free(self, name: str, exclude_id: Optional[UUID] = None):
        stmt = select(Theme.id).where(func.lower(Theme.name) == name.lower(), Theme.is_active.is_(True))
        if exclude_id:
            stmt = stmt.where(Theme.id != exclude_id)
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise BadRequest("Theme name already exists")

    async def _clear_default(self, except_id: UUID):
        await self.db.execute(update(Theme).where(Theme.id != except_id).values(is_default=False))

    async def list_themes(self) -> dict:
        stmt = (
            select(Theme)
            .where(Theme.is_active.is_(True))
            .order_by(Theme.is_default.desc(), Theme.created_at.desc())
        )
        themes = list((await self.db.execute(stmt)).scalars().all())
        return {"success": True, "message": "Themes fetched successfully", "themes": await self.to_dicts(themes)}

    async def get_theme(self, theme_id: UUID) -> dict:
        theme = await self.get(theme_id)
        if not theme:
            raise NotFound("Theme")
        return {"success": True, "message": "Theme fetched successfully", "theme": await self.to_dict(theme)}

    async def default_theme(self) -> dict:
        result = await self.db.execute(
            select(Theme).where(Theme.is_default.is_(True), Theme.is_active.is_(True)).limit(1)
        )
        theme = result.scalar_one_or_none()
        if theme is None:
            theme = Theme(is_default=True, is_active=True, **FALLBACK_THEME)
            self.db.add(theme)
            await self.db.flush()
            await self._clear_default(theme.id)
            await self.db.commit()
            await self.db.refresh(theme)
            logger.info("Created fallback default theme")
        return {"success": True, "message": "Default theme fetched successfully", "theme": await self.to_dict(theme)}

    async def create_theme(self, data: ThemeCreate, actor: User) -> dict:
        name = data.name.strip()
        await self._ensure_name_free(name)
        theme = Theme(
            name=name,
            description=data.description.strip(),
            primary_color=data.primary_color,
            secondary_color=data.secondary_color,
            is_default=data.is_default,
            is_active=True,
            created_by=actor.id,
        )
        self.db.add(theme)
        await self.db.flush()
        if theme.is_default:
            await self._clear_default(theme.id)
        await self.db.commit()
        await self.db.refresh(theme)
        logger.info(f"Theme {theme.name} created by {actor.id}")
        return {"success": True, "message": "Theme created successfully", "theme": await self.to_dict(theme)}

    async def update_theme(self, theme_id: UUID, data: ThemeUpdate, actor: User) -> dict:
        theme = await self.get(theme_id)
        if not theme:
            raise NotFound("Theme")
        if data.name and data.name.strip() != theme.name:
            await self._ensure_name_free(data.name.strip(), exclude_id=theme.id)
            theme.name = data.name.strip()
        if data.description is not None:
            theme.description = data.description.strip()
        if data.primary_color:
            theme.primary_color = data.primary_color
        if data.secondary_color:
            theme.secondary_color = data.secondary_color
        if data.is_default is not None:
            theme.is_default = data.is_default
            if data.is_default:
                await self._clear_default(theme.id)
        await self.db.commit()
        await self.db.refresh(theme)
        logger.info(f"Theme {theme.id} updated by {actor.id}")
        return {"success": True, "message": "Theme updated successfully", "theme": await self.to_dict(theme)}

    async def delete_theme(self, theme_id: UUID, actor: User) -> dict:
        theme = await self.get(theme_id)
        if not theme:
            raise NotFound("Theme")
        if theme.is_default:
            raise BadRequest("Cannot delete the default theme")
        theme.is_active = False
        await self.db.commit()
        logger.info(f"Theme {theme.name} deleted by {actor.id}")
        return {"success": True, "message": "Theme deleted successfully"}

    async def set_default(self, theme_id: UUID, actor: User) -> dict:
        theme = await self.get(theme_id)
        if not theme or not theme.is_active:
            raise NotFound("Theme")
        theme.is_default = True
        await self._clear_default(theme.id)
        await self.db.commit()
        await self.db.refresh(theme)
        logger.info(f"Theme {theme.name} set as default by {actor.id}")
        return {"success": True, "message": "Default theme set successfully", "theme": await self.to_dict(theme)}
