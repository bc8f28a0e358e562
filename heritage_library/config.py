import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv


# Display metadata for the built-in categories served by /api/categories.
CATEGORIES: Dict[str, Dict[str, str]] = {
    "traditionalFoods": {"name": "传统美食", "icon": "fa-utensils", "color": "#DC143C"},
    "traditionalCrafts": {"name": "传统工艺", "icon": "fa-gem", "color": "#FFD700"},
    "traditionalOpera": {"name": "传统戏曲", "icon": "fa-mask", "color": "#8B4513"},
    "traditionalFestivals": {"name": "传统节日", "icon": "fa-calendar", "color": "#FF6B35"},
    "traditionalMedicine": {"name": "传统医药", "icon": "fa-leaf", "color": "#228B22"},
    "traditionalArchitecture": {"name": "传统建筑", "icon": "fa-building", "color": "#696969"},
}

FILE_TYPE_MAPPING: Dict[str, List[str]] = {
    "image": ["jpg", "jpeg", "png", "gif", "webp", "bmp", "svg"],
    "video": ["mp4", "avi", "mov", "wmv", "flv", "mkv", "webm"],
    "audio": ["mp3", "wav", "ogg", "aac", "flac", "m4a"],
    "document": ["pdf", "doc", "docx", "txt", "rtf", "odt"],
}


@dataclass(frozen=True)
class Settings:

    resources_dir: Path
    knowledge_dir: Path
    base_url: str
    log_level: str
    page_size: int


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def load_settings() -> Settings:
    load_dotenv()

    resources_dir = Path(_get_env("HERITAGE_RESOURCES_DIR", "resources") or "resources")
    knowledge_raw = _get_env("HERITAGE_KNOWLEDGE_DIR")
    knowledge_dir = Path(knowledge_raw) if knowledge_raw else resources_dir / "knowledge"

    base_url = (_get_env("HERITAGE_BASE_URL", "http://localhost:3001") or "").rstrip("/")
    log_level = _get_env("LOG_LEVEL", "INFO") or "INFO"

    try:
        page_size = int(_get_env("HERITAGE_PAGE_SIZE", "12") or "12")
    except ValueError:
        raise RuntimeError("HERITAGE_PAGE_SIZE must be an integer.") from None
    if page_size < 1:
        raise RuntimeError("HERITAGE_PAGE_SIZE must be at least 1.")

    return Settings(
        resources_dir=resources_dir,
        knowledge_dir=knowledge_dir,
        base_url=base_url,
        log_level=log_level,
        page_size=page_size,
    )
