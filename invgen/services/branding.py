from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BrandTheme:
    id: str
    name: str
    primary: str
    secondary: str


THEMES = (
    BrandTheme("professional-blue", "Professional Blue", "#2563eb", "#1e40af"),
    BrandTheme("modern-orange", "Modern Orange", "#f97316", "#ea580c"),
    BrandTheme("elegant-purple", "Elegant Purple", "#7c3aed", "#6d28d9"),
    BrandTheme("nature-green", "Nature Green", "#16a34a", "#15803d"),
    BrandTheme("bold-red", "Bold Red", "#dc2626", "#b91c1c"),
    BrandTheme("minimal-gray", "Minimal Gray", "#6b7280", "#4b5563"),
)

THEMES_BY_ID = {theme.id: theme for theme in THEMES}

DEFAULT_THEME = THEMES_BY_ID["modern-orange"]


def is_known_theme(theme_id: str) -> bool:
    return theme_id in THEMES_BY_ID


def resolve_theme(theme_id: Optional[str]) -> BrandTheme:
    """Theme for a user's stored preference; unknown or unset falls back to the default."""
    return THEMES_BY_ID.get(theme_id or "", DEFAULT_THEME)
