"""Locate and read the CSS themes bundled under ``deckbuilder/themes``."""
import re
from pathlib import Path
from typing import List

THEMES_DIR = Path(__file__).parent / "themes"

# Bare names only, so a theme can never point outside THEMES_DIR
THEME_NAME_RE = re.compile(r'[A-Za-z0-9_-]+')


def theme_path(theme: str) -> Path:
    if not THEME_NAME_RE.fullmatch(theme or ''):
        raise ValueError(f"Invalid theme name: {theme!r}")
    return THEMES_DIR / f"{theme}.css"


def get_css(theme: str = "default") -> str:
    """
    Return the CSS text of ``theme``.

    Raises:
        ValueError: the name is not a bare theme name
        FileNotFoundError: no such theme is bundled
    """
    path = theme_path(theme)
    if not path.is_file():
        raise FileNotFoundError(
            f"Theme '{theme}' not found. Available themes: {list_available_themes()}"
        )
    return path.read_text(encoding='utf-8')


def list_available_themes() -> List[str]:
    return sorted(p.stem for p in THEMES_DIR.glob("*.css") if p.is_file())


def validate_theme(theme: str) -> bool:
    """True when ``theme`` names a bundled theme."""
    try:
        return theme_path(theme).is_file()
    except ValueError:
        return False
