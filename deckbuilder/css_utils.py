"""
CSS utilities for deck themes.

Theme files are the configuration surface for slide geometry and typography:
canvas size, padding and the minimum block gap are ``:root`` custom
properties; font sizes, line height and colours are read from ordinary rules.
Only flat ``selector { prop: value; }`` rules are understood, which is all a
theme needs.
"""
import re
from typing import Any, Dict, Optional, Tuple

from .theme_loader import get_css

COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
RULE_RE = re.compile(r'([^{}]+)\{([^{}]*)\}')
PX_RE = re.compile(r'(-?\d+(?:\.\d+)?)px')
HEX_COLOR_RE = re.compile(r'#[0-9a-fA-F]{3,6}\b')

# Font-size key -> selector that must define it
FONT_SIZE_SELECTORS = {
    'h1': 'h1',
    'h2': 'h2',
    'h3': 'h3',
    'p': 'p',
    'li': 'ul',
    'code': 'pre',
    'td': 'td',
}

# Colour key -> (selector, property) lookups, first hit wins
COLOR_LOOKUPS = {
    'text': [('body', 'color'), ('p', 'color')],
    'background': [('body', 'background-color'), ('.slide', 'background-color'), ('body', 'background')],
    'code_text': [('pre', 'color'), ('code', 'color')],
    'heading_text': [('h1', 'color'), ('h2', 'color')],
    'table_border': [('td', 'border'), ('th', 'border')],
}


def parse_rules(css: str) -> Dict[str, Dict[str, str]]:
    """Map every selector to its declarations; grouped selectors share them."""
    rules: Dict[str, Dict[str, str]] = {}
    for selector_group, body in RULE_RE.findall(COMMENT_RE.sub('', css)):
        declarations = {}
        for declaration in body.split(';'):
            if ':' not in declaration:
                continue
            prop, value = declaration.split(':', 1)
            declarations[prop.strip().lower()] = value.strip()
        for selector in selector_group.split(','):
            rules.setdefault(selector.strip(), {}).update(declarations)
    return rules


class CSSParser:
    """
    Read geometry, font sizes and colours out of a theme's CSS.
    """

    def __init__(self, theme: str = "default"):
        self.theme = theme
        self.css_content = get_css(theme)
        self.rules = parse_rules(self.css_content)

    def _declaration(self, selector: str, prop: str) -> Optional[str]:
        return self.rules.get(selector, {}).get(prop)

    def get_css_variables(self) -> Dict[str, str]:
        """Custom properties from the ``:root`` rule, without the leading dashes."""
        if ':root' not in self.rules:
            raise ValueError(f"No :root section found in theme '{self.theme}'")
        return {
            prop[2:]: value for prop, value in self.rules[':root'].items() if prop.startswith('--')
        }

    def get_raw_value(self, variable_name: str) -> str:
        value = self.get_css_variables().get(variable_name)
        if not value:
            raise ValueError(f"CSS variable '--{variable_name}' not found in theme '{self.theme}'")
        return value

    def get_px_value(self, variable_name: str) -> int:
        value = self.get_raw_value(variable_name)
        match = PX_RE.fullmatch(value)
        if not match:
            raise ValueError(f"CSS variable '--{variable_name}' is not a pixel value: {value}")
        return int(float(match.group(1)))

    def get_font_sizes(self) -> Dict[str, float]:
        """
        Font sizes per element kind, in points.

        PowerPoint points are used 1:1 with CSS pixels, rounded to half a point.

        Raises:
            ValueError: a required rule has no ``font-size`` in px
        """
        font_sizes = {}
        for key, selector in FONT_SIZE_SELECTORS.items():
            value = self._declaration(selector, 'font-size') or ''
            match = PX_RE.fullmatch(value)
            if not match:
                raise ValueError(f"❌ CSS theme '{self.theme}' missing required font-size for {selector}. "
                                 f"Add 'font-size: XXpx' to the {selector} rule")
            font_sizes[key] = round(float(match.group(1)) * 2) / 2
        return font_sizes

    def get_line_height(self) -> float:
        value = self._declaration('body', 'line-height')
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"❌ CSS theme '{self.theme}' missing a unitless body line-height") from None

    def get_colors(self) -> Dict[str, str]:
        """Hex colours for text, background, code, headings and table borders."""
        colors = {}
        for key, lookups in COLOR_LOOKUPS.items():
            for selector, prop in lookups:
                value = self._declaration(selector, prop)
                match = HEX_COLOR_RE.search(value) if value else None
                if match:
                    colors[key] = match.group(0)
                    break
        return colors

    def get_slide_dimensions(self) -> Dict[str, Any]:
        """Canvas size, padding, block gap and font family from ``:root``."""
        width_px = self.get_px_value('slide-width')
        height_px = self.get_px_value('slide-height')
        return {
            'width_px': width_px,
            'height_px': height_px,
            'padding_px': self.get_px_value('slide-padding'),
            'gap_px': self.get_px_value('block-gap'),
            'width_inches': width_px / 96,  # 96 DPI
            'height_inches': height_px / 96,
            'font_family': self.get_raw_value('slide-font-family').strip('\'"'),
        }


def hex_to_rgb(hex_color: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """Convert ``#rgb`` / ``#rrggbb`` to an RGB tuple, ``None`` if unparseable."""
    if not hex_color or not hex_color.startswith('#'):
        return None
    hexval = hex_color[1:]
    if len(hexval) == 3:
        hexval = ''.join(c * 2 for c in hexval)
    if len(hexval) != 6:
        return None
    try:
        return tuple(int(hexval[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return None
