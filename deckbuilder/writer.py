#!/usr/bin/env python3
"""
PowerPoint writer: serializes a finished :class:`Deck` to one ``.pptx`` file.

The file is built in a scratch location, verified, and only then moved into
place with ``os.replace``, so the target path either holds a complete deck or
nothing at all.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Comment
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.text import MSO_AUTO_SIZE
from pptx.exc import PythonPptxError
from pptx.util import Inches, Pt

from .config import PipelineConfig
from .css_utils import CSSParser, hex_to_rgb
from .errors import ArtifactVerificationError, ArtifactWriteError, SuspiciouslySmallArtifact
from .models import Deck, Element, SlideUnit

logger = logging.getLogger(__name__)

BLANK_LAYOUT = 6
MONO_FONT = "Courier New"


# Helper function to convert pixels to inches
def px(pixels):
    return Inches(pixels / 96)


@dataclass
class WriteResult:
    path: str
    size: int
    slide_count: int


class DeckWriter:
    """
    Write decks with python-pptx using the theme's fonts and colours.
    """

    def __init__(self, config: PipelineConfig, *, tmp_dir: Optional[Path] = None, debug: bool = False):
        self.config = config
        self.tmp_dir = Path(tmp_dir) if tmp_dir else None
        self.debug = debug
        css_parser = CSSParser(config.theme)
        self.font_sizes = css_parser.get_font_sizes()
        self.colors = css_parser.get_colors()
        self.font_family = css_parser.get_slide_dimensions()['font_family']

    def _rgb(self, key: str) -> Optional[RGBColor]:
        rgb = hex_to_rgb(self.colors.get(key))
        return RGBColor(*rgb) if rgb else None

    # ------------------------------------------------------------------
    # Presentation building
    # ------------------------------------------------------------------
    def build_presentation(self, deck: Deck) -> Presentation:
        prs = Presentation()
        prs.slide_width = px(deck.canvas_width)
        prs.slide_height = px(deck.canvas_height)

        background = self._rgb('background')
        for slide_unit in deck:
            slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
            if background is not None:
                fill = slide.background.fill
                fill.solid()
                fill.fore_color.rgb = background

            for element in slide_unit.elements:
                self._add_element_to_slide(slide, element)

            # Notes go in while the slide is being built, never after the save
            if slide_unit.notes is not None:
                slide.notes_slide.notes_text_frame.text = slide_unit.notes.text

        return prs

    def _add_element_to_slide(self, slide, element: Element):
        left, top, width, height = px(element.x), px(element.y), px(element.w), px(element.h)

        if element.is_image():
            slide.shapes.add_picture(element.src, left, top, width, height)
            return

        if element.is_table():
            self._add_table(slide, element, left, top, width, height)
            return

        textbox = slide.shapes.add_textbox(left, top, width, height)
        text_frame = textbox.text_frame
        text_frame.word_wrap = True
        text_frame.auto_size = MSO_AUTO_SIZE.NONE
        text_frame.margin_left = text_frame.margin_right = 0
        text_frame.margin_top = text_frame.margin_bottom = 0

        if element.is_list():
            self._add_list_paragraphs(text_frame, element)
        elif element.is_code_block():
            for i, line in enumerate(element.content.split('\n')):
                paragraph = text_frame.paragraphs[0] if i == 0 else text_frame.add_paragraph()
                run = paragraph.add_run()
                run.text = line
                run.font.name = MONO_FONT
                run.font.size = Pt(self.font_sizes['code'])
                color = self._rgb('code_text')
                if color is not None:
                    run.font.color.rgb = color
        else:
            heading = element.is_heading()
            size = self.font_sizes.get(element.tag, self.font_sizes['p'])
            color = self._rgb('heading_text' if heading else 'text')
            self._add_runs(text_frame.paragraphs[0], element.content, size, color, bold=heading)

    def _add_list_paragraphs(self, text_frame, element: Element):
        levels: List[int] = element.style.get('levels', []) if element.style else []
        items = element.content.split('\n') if element.content else []
        counters = {}
        color = self._rgb('text')
        for i, (item, level) in enumerate(zip(items, levels)):
            paragraph = text_frame.paragraphs[0] if i == 0 else text_frame.add_paragraph()
            paragraph.level = min(level, 8)
            if element.tag == 'ol':
                counters[level] = counters.get(level, 0) + 1
                for deeper in [k for k in counters if k > level]:
                    del counters[deeper]
                marker = f"{counters[level]}. "
            else:
                marker = "• "
            self._add_runs(paragraph, marker + item, self.font_sizes['li'], color)

    def _add_runs(self, paragraph, html: str, size: float, color: Optional[RGBColor], bold: bool = False):
        """Add inline-formatted runs (strong/em/code/br) for an HTML fragment."""
        soup = BeautifulSoup(html, 'html.parser')
        for node in soup.descendants:
            if getattr(node, 'name', None) == 'br':
                paragraph.add_line_break()
                continue
            if not isinstance(node, str) or isinstance(node, Comment):
                continue
            text = str(node).replace('\n', ' ')
            if not text:
                continue
            parents = {p.name for p in node.parents}
            run = paragraph.add_run()
            run.text = text
            font = run.font
            font.size = Pt(size)
            font.name = MONO_FONT if 'code' in parents else self.font_family
            font.bold = bold or bool(parents & {'strong', 'b'})
            if parents & {'em', 'i'}:
                font.italic = True
            if parents & {'u'}:
                font.underline = True
            if color is not None:
                font.color.rgb = color

    def _add_table(self, slide, element: Element, left, top, width, height):
        rows = [row.split('\t') for row in element.content.split('\n')] if element.content else [['']]
        cols = max(len(r) for r in rows)
        table = slide.shapes.add_table(len(rows), cols, left, top, width, height).table
        has_header = bool(element.style and element.style.get('header'))
        table.first_row = has_header
        for r, row in enumerate(rows):
            for c in range(cols):
                cell = table.cell(r, c)
                cell.text = row[c] if c < len(row) else ''
                for paragraph in cell.text_frame.paragraphs:
                    for run in paragraph.runs:
                        run.font.size = Pt(self.font_sizes['td'])
                        run.font.bold = has_header and r == 0

    # ------------------------------------------------------------------
    # Atomic persistence
    # ------------------------------------------------------------------
    def _verify(self, path: str, deck: Deck) -> None:
        """Re-open the saved file and check it is the deck we meant to write."""
        prs = Presentation(path)
        if len(prs.slides) != len(deck):
            raise ArtifactVerificationError(
                f"saved file holds {len(prs.slides)} slides, deck has {len(deck)}"
            )
        for slide, slide_unit in zip(prs.slides, deck):
            if slide_unit.notes is None:
                continue
            if not slide.has_notes_slide or not slide.notes_slide.notes_text_frame.text.strip():
                raise ArtifactVerificationError("speaker notes missing from saved file", slide_unit.index)

    def _same_filesystem(self, a: Path, b: Path) -> bool:
        return os.stat(a).st_dev == os.stat(b).st_dev

    def _stage_copy(self, tmp_name: str, output_path: Path) -> str:
        """Copy the verified file next to the target and fsync it there."""
        staged = str(output_path.parent / f".{output_path.name}.partial")
        shutil.copyfile(tmp_name, staged)
        with open(staged, 'rb+') as fh:
            os.fsync(fh.fileno())
        return staged

    def write(self, deck: Deck, output_path: Union[str, Path]) -> WriteResult:
        """
        Serialize ``deck`` to ``output_path`` in one atomic step.

        Raises:
            DeckAlreadyWritten: the deck was written before
            SuspiciouslySmallArtifact: the file is not larger than ``min_artifact_bytes``
            ArtifactVerificationError: the file does not read back as ``deck``
            ArtifactWriteError: python-pptx or the filesystem failed
        """
        deck.claim_for_write()

        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            scratch_dir = self.tmp_dir or output_path.parent
            scratch_dir.mkdir(parents=True, exist_ok=True)
            prs = self.build_presentation(deck)
            fd, tmp_name = tempfile.mkstemp(prefix=".deck-", suffix=".pptx", dir=str(scratch_dir))
        except (OSError, PythonPptxError) as exc:
            raise ArtifactWriteError(f"could not build the presentation: {type(exc).__name__}: {exc}") from exc

        staged = None
        try:
            with os.fdopen(fd, 'wb') as fh:
                prs.save(fh)
                fh.flush()
                os.fsync(fh.fileno())

            size = os.path.getsize(tmp_name)
            if size <= self.config.min_artifact_bytes:
                raise SuspiciouslySmallArtifact(size, self.config.min_artifact_bytes)
            self._verify(tmp_name, deck)

            if self._same_filesystem(scratch_dir, output_path.parent):
                os.replace(tmp_name, output_path)
            else:
                # os.replace is only atomic within one filesystem
                logger.info(f"Scratch dir {scratch_dir} is on another filesystem; staging next to the target")
                staged = self._stage_copy(tmp_name, output_path)
                os.replace(staged, output_path)
        except BaseException as exc:
            if staged and os.path.exists(staged):
                os.unlink(staged)
            if isinstance(exc, (OSError, PythonPptxError)):
                raise ArtifactWriteError(f"could not save the presentation: {type(exc).__name__}: {exc}") from exc
            raise
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

        if self.debug:
            logger.debug(f"💾 Wrote {len(deck)} slides ({size} bytes) to {output_path}")
        return WriteResult(path=str(output_path), size=size, slide_count=len(deck))
