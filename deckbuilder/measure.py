#!/usr/bin/env python3
"""Measurers turn one slide's HTML into positioned :class:`Element` objects.

Both measurers stack top-level blocks with the spacing formula
``y[n+1] = y[n] + h[n] + min_gap`` starting at the slide padding. Neither
clips nor shrinks content: whatever does not fit is left for the layout
validator to report.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from PIL import Image

from .config import PipelineConfig
from .css_utils import CSSParser
from .models import Element

logger = logging.getLogger(__name__)

# Average glyph advance as a fraction of the em size (sans-serif body text)
AVG_GLYPH_EM = 0.5
MONO_GLYPH_EM = 0.6
LIST_INDENT_PX = 20
TABLE_CELL_PADDING_PX = 4
TEXT_TAGS = ('h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'p', 'blockquote')


class ImageDimensionCache:
    """Cache for image dimensions to avoid repeated PIL Image.open calls."""

    def __init__(self, debug: bool = False):
        self.cache: Dict[str, Tuple[int, int]] = {}
        self.debug = debug

    def get_dimensions(self, image_path: str) -> Tuple[int, int]:
        """
        Get image dimensions, using cache if available.

        Raises:
            OSError: if the file is missing or not an image Pillow can read
        """
        if image_path in self.cache:
            if self.debug:
                logger.debug(f"📦 Using cached dimensions for {image_path}: {self.cache[image_path]}")
            return self.cache[image_path]

        with Image.open(image_path) as img:
            dimensions = img.size
        self.cache[image_path] = dimensions
        if self.debug:
            logger.debug(f"📷 Cached new image dimensions for {image_path}: {dimensions}")
        return dimensions


def _inline_html(node: Tag) -> str:
    """Inner HTML of a block with paragraph wrappers (loose lists) removed."""
    parts = []
    for child in node.children:
        if isinstance(child, Tag) and child.name in ('ul', 'ol'):
            continue
        if isinstance(child, Tag) and child.name == 'p':
            parts.append(child.decode_contents())
        else:
            parts.append(str(child))
    return ''.join(parts).strip()


def _list_items(node: Tag, level: int = 0) -> List[Tuple[str, int]]:
    """Flatten a (possibly nested) list into (inner html, level) pairs."""
    items = []
    for li in node.find_all('li', recursive=False):
        items.append((_inline_html(li), level))
        for nested in li.find_all(['ul', 'ol'], recursive=False):
            items.extend(_list_items(nested, level + 1))
    return items


def _only_image(node: Tag) -> Optional[Tag]:
    """Return the <img> if a paragraph holds nothing but one image."""
    if node.name == 'img':
        return node
    if node.name != 'p':
        return None
    children = [c for c in node.children if not (isinstance(c, NavigableString) and not c.strip())]
    if len(children) == 1 and isinstance(children[0], Tag) and children[0].name == 'img':
        return children[0]
    return None


def top_level_blocks(html: str) -> List[Tag]:
    """Top-level block tags of a slide fragment, in document order."""
    soup = BeautifulSoup(html, 'html.parser')
    return [node for node in soup.children if isinstance(node, Tag) and node.name != 'hr']


class Measurer(ABC):
    """Abstract base: shared block description logic for concrete measurers."""

    def __init__(self, config: PipelineConfig, css_parser: Optional[CSSParser] = None, debug: bool = False):
        self.config = config
        self.debug = debug
        self.css_parser = css_parser or CSSParser(config.theme)
        self.font_sizes = self.css_parser.get_font_sizes()
        self.line_height = self.css_parser.get_line_height()
        self.image_cache = ImageDimensionCache(debug)

    @property
    def content_width(self) -> float:
        return self.config.canvas_width - 2 * self.config.padding

    def describe(self, node: Tag) -> Dict:
        """Tag, content, style and src for one top-level block."""
        image = _only_image(node)
        if image is not None:
            return {
                'tag': 'img',
                'content': image.get('alt', ''),
                'src': image.get('data-path') or image.get('src'),
                'style': {},
            }
        if node.name in ('ul', 'ol'):
            items = _list_items(node)
            return {
                'tag': node.name,
                'content': '\n'.join(text for text, _ in items),
                'style': {'levels': [level for _, level in items]},
            }
        if node.name == 'pre':
            return {'tag': 'pre', 'content': node.get_text().rstrip('\n'), 'style': {}}
        if node.name == 'table':
            rows = []
            for tr in node.find_all('tr'):
                rows.append('\t'.join(cell.get_text(strip=True) for cell in tr.find_all(['th', 'td'])))
            return {
                'tag': 'table',
                'content': '\n'.join(rows),
                'style': {'header': node.find('th') is not None},
            }
        tag = node.name if node.name in TEXT_TAGS else 'p'
        return {'tag': tag, 'content': _inline_html(node), 'style': {}}

    @abstractmethod
    async def measure(self, html: str) -> List[Element]:
        """Positioned elements for every top-level block of ``html``."""


class EstimatingMeasurer(Measurer):
    """
    Measure blocks without a browser.

    Text height is estimated from the theme font size, line height and an
    average glyph width; image height comes from the file's pixel size scaled
    down (never up) to the content width.
    """

    def _wrapped_lines(self, text: str, font_px: float, width: float, glyph_em: float = AVG_GLYPH_EM) -> int:
        chars_per_line = max(1, int(width / (font_px * glyph_em)))
        lines = 0
        for raw_line in text.split('\n'):
            lines += max(1, math.ceil(len(raw_line) / chars_per_line))
        return lines

    def _text_height(self, text: str, font_px: float, width: float, glyph_em: float = AVG_GLYPH_EM) -> float:
        return self._wrapped_lines(text, font_px, width, glyph_em) * font_px * self.line_height

    def _plain(self, html: str) -> str:
        return BeautifulSoup(html, 'html.parser').get_text()

    def _block_size(self, desc: Dict) -> Tuple[float, float]:
        width = self.content_width
        tag = desc['tag']

        if tag == 'img':
            img_w, img_h = self.image_cache.get_dimensions(desc['src'])
            scale = min(1.0, width / img_w) if img_w else 1.0
            return img_w * scale, img_h * scale

        if tag in ('ul', 'ol'):
            font_px = self.font_sizes['li']
            height = 0.0
            texts = desc['content'].split('\n') if desc['content'] else []
            for text, level in zip(texts, desc['style']['levels']):
                item_width = width - LIST_INDENT_PX * (level + 1)
                height += self._text_height(self._plain(text), font_px, item_width)
            return width, height

        if tag == 'pre':
            font_px = self.font_sizes['code']
            return width, self._text_height(desc['content'], font_px, width - 2 * TABLE_CELL_PADDING_PX, MONO_GLYPH_EM)

        if tag == 'table':
            font_px = self.font_sizes['td']
            rows = desc['content'].split('\n') if desc['content'] else []
            row_height = font_px * self.line_height + 2 * TABLE_CELL_PADDING_PX + 1
            return width, max(1, len(rows)) * row_height + 1

        font_px = self.font_sizes.get(tag, self.font_sizes['p'])
        text_width = width - (LIST_INDENT_PX if tag == 'blockquote' else 0)
        return width, self._text_height(self._plain(desc['content']), font_px, text_width)

    async def measure(self, html: str) -> List[Element]:
        x = self.config.padding
        y = float(self.config.padding)
        elements = []
        for node in top_level_blocks(html):
            desc = self.describe(node)
            w, h = self._block_size(desc)
            elements.append(Element(
                tag=desc['tag'],
                x=x,
                y=y,
                w=round(w, 2),
                h=round(h, 2),
                content=desc['content'],
                style=desc['style'],
                src=desc.get('src'),
            ))
            if self.debug:
                logger.debug(f"    {desc['tag']} at y={y:.1f} h={h:.1f}")
            y += round(h, 2) + self.config.min_gap
        return elements


# Reads the box of every top-level child of the slide container
MEASURE_SCRIPT = """
() => Array.from(document.querySelector('.slide').children)
    .filter(el => el.tagName.toLowerCase() !== 'hr')
    .map(el => {
        const r = el.getBoundingClientRect();
        return {x: r.left, y: r.top, width: r.width, height: r.height};
    })
"""


class BrowserMeasurer(Measurer):
    """
    Measure blocks with headless Chromium (pyppeteer).

    Blocks are laid out in a container the size of the canvas, padded by the
    slide padding, with every block's bottom margin set to ``min_gap`` so the
    browser realises the same spacing formula as the estimator.
    """

    def _document(self, html: str) -> str:
        cfg = self.config
        layout_css = f"""
body {{ margin: 0; padding: 0; }}
.slide {{ box-sizing: border-box; width: {cfg.canvas_width}px; padding: {cfg.padding}px; }}
.slide > * {{ margin: 0 0 {cfg.min_gap}px 0; }}
.slide > p > img, .slide > img {{ max-width: 100%; display: block; }}
"""
        return (
            '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
            f'<style>{self.css_parser.css_content}\n{layout_css}</style></head>'
            f'<body><div class="slide">{html}</div></body></html>'
        )

    async def measure(self, html: str) -> List[Element]:
        from pyppeteer import launch

        browser = await launch(args=[
            '--allow-file-access-from-files',
            '--disable-web-security',
            '--allow-file-access'
        ])
        try:
            page = await browser.newPage()
            await page.setViewport({'width': self.config.canvas_width, 'height': self.config.canvas_height})
            await page.setContent(self._document(html))
            boxes = await page.evaluate(MEASURE_SCRIPT)
        finally:
            await browser.close()

        nodes = top_level_blocks(html)
        if len(boxes) != len(nodes):
            raise RuntimeError(f"browser laid out {len(boxes)} blocks, parser found {len(nodes)}")

        elements = []
        for node, box in zip(nodes, boxes):
            desc = self.describe(node)
            elements.append(Element(
                tag=desc['tag'],
                x=round(box['x'], 2),
                y=round(box['y'], 2),
                w=round(box['width'], 2),
                h=round(box['height'], 2),
                content=desc['content'],
                style=desc['style'],
                src=desc.get('src'),
            ))
        return elements
