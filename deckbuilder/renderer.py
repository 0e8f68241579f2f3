"""Slide renderer: one content unit in, one positioned :class:`SlideUnit` out."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from .config import PipelineConfig
from .errors import RenderFailure
from .markdown_parser import MarkdownParser
from .measure import EstimatingMeasurer, Measurer
from .models import ContentUnit, Element, SlideUnit
from .paths import resolve_asset

logger = logging.getLogger(__name__)


class SlideRenderer:
    """
    Convert content units into slides.

    ``render`` has no side effects, so the pipeline may run it for many units
    concurrently. Any exception from the parser or measurer surfaces as
    :class:`RenderFailure` carrying the unit's index.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        base_dir: Optional[Path] = None,
        measurer: Optional[Measurer] = None,
        parser: Optional[MarkdownParser] = None,
        debug: bool = False,
    ):
        self.config = config
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.measurer = measurer or EstimatingMeasurer(config, debug=debug)
        self.parser = parser or MarkdownParser()
        self.debug = debug

    def _local_image(self, src: str, slide_index: int) -> Tuple[str, str]:
        """Resolve an image ``src`` to ``(file URL, absolute path)``; the file must exist."""
        if not src:
            raise RenderFailure("image without a src", slide_index)
        browser_src, abs_path = resolve_asset(src, base_dir=self.base_dir)
        if not browser_src.startswith('file://'):
            raise RenderFailure(f"remote image is not fetched: {src}", slide_index)
        if not Path(abs_path).is_file():
            raise RenderFailure(f"image not found: {src} (resolved to {abs_path})", slide_index)
        return browser_src, abs_path

    def _resolve_images(self, html: str, slide_index: int) -> str:
        """Point every <img> at an absolute location."""
        soup = BeautifulSoup(html, 'html.parser')
        images = soup.find_all('img')
        if not images:
            return html
        for img in images:
            img['src'], img['data-path'] = self._local_image(img.get('src', ''), slide_index)
        return str(soup)

    def _premeasured(self, unit: ContentUnit) -> List[Element]:
        elements = []
        for raw in unit.elements:
            element = Element.from_element(raw)
            if element.is_image():
                _, abs_path = self._local_image(element.src or '', unit.index)
                element = replace(element, src=abs_path)
            elements.append(element)
        return elements

    async def render(self, unit: ContentUnit) -> SlideUnit:
        """Render one content unit."""
        try:
            if unit.elements is not None:
                elements = self._premeasured(unit)
            else:
                html = self.parser.parse(unit.markdown)
                html = self._resolve_images(html, unit.index)
                elements = await self.measurer.measure(html)
        except RenderFailure:
            raise
        except Exception as exc:
            raise RenderFailure(f"{type(exc).__name__}: {exc}", unit.index) from exc

        if self.debug:
            logger.debug(f"🖼️ Rendered slide {unit.index} ({unit.title or 'untitled'}): {len(elements)} elements")
        return SlideUnit(index=unit.index, elements=elements, source=unit)
