from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from media_service.exceptions import ValidationError
from media_service.settings import Settings, DEFAULT_BUCKETS

class Category(str, Enum):
    RESTAURANTS = "restaurants"
    MENU_ITEMS = "menuItems"
    OFFERS = "offers"
    CATEGORIES = "categories"
    GENERAL = "general"

@dataclass(frozen=True)
class CategoryConfig:
    bucket: str
    width: int
    height: int

# Output size per UI surface
DIMENSIONS: Dict[Category, Tuple[int, int]] = {
    Category.RESTAURANTS: (800, 400),
    Category.MENU_ITEMS: (400, 300),
    Category.OFFERS: (600, 300),
    Category.CATEGORIES: (500, 400),
    Category.GENERAL: (500, 400),
}

def parse_category(value: Optional[str], default: Optional[Category] = Category.GENERAL) -> Category:
    """Resolves a request value to a Category; blank means ``default``."""
    if value is None or value == "":
        if default is None:
            raise ValidationError("Category is required")
        return default
    try:
        return Category(value)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationError(f"Invalid category '{value}'. Allowed: {allowed}")

def category_config(category: Category, settings: Settings) -> CategoryConfig:
    """Looks up bucket and default dimensions for a category."""
    bucket = settings.bucket_names.get(category.value, DEFAULT_BUCKETS[category.value])
    width, height = DIMENSIONS[category]
    return CategoryConfig(bucket=bucket, width=width, height=height)
