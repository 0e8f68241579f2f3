"""
Markdown front end: splits a course document into content units and pulls
speaker notes out of each unit.
"""
import logging
import re
from html import unescape
from typing import List, Optional, Tuple

from markdown_it import MarkdownIt
from mdit_py_plugins.attrs import attrs_plugin

from .markdown_plugins import NOTE_COMMENT_RE, speaker_notes_plugin
from .models import ContentUnit

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r'^\s{0,3}(`{3,}|~{3,})(.*)$')


def _track_fence(open_fence: Optional[str], line: str) -> Tuple[Optional[str], bool]:
    """Advance code-fence state by one line. Returns (open fence, line is a fence)."""
    match = FENCE_RE.match(line)
    if not match:
        return open_fence, False
    marker, rest = match.group(1), match.group(2)
    if open_fence is None:
        return marker, True
    if marker[0] == open_fence[0] and len(marker) >= len(open_fence) and not rest.strip():
        return None, True
    return open_fence, True


def _fenced_spans(text: str) -> List[Tuple[int, int]]:
    """Character ranges covered by fenced code blocks, fence lines included."""
    spans = []
    open_fence = None
    start = offset = 0
    for line in text.split('\n'):
        was_open = open_fence is not None
        open_fence, _ = _track_fence(open_fence, line)
        if not was_open and open_fence is not None:
            start = offset
        elif was_open and open_fence is None:
            spans.append((start, offset + len(line)))
        offset += len(line) + 1
    if open_fence is not None:
        spans.append((start, len(text)))
    return spans


def _is_page_break(line_stripped: str) -> bool:
    """
    Supported page break formats:
    - Horizontal rule: ``---`` (also ``***`` and ``___`` runs)
    - HTML comment: ``<!-- slide -->`` in any case, with or without spaces
    - Slide directive: ``<!-- NewSlide: ... -->``
    - Explicit directive: ``[slide]``
    """
    if line_stripped == '---' or line_stripped == '[slide]':
        return True
    if re.fullmatch(r'<!--\s*slide\s*-->', line_stripped, re.IGNORECASE):
        return True
    if re.match(r'<!--\s*NewSlide:', line_stripped):
        return True
    if len(line_stripped) >= 3 and (set(line_stripped) == {'*'} or set(line_stripped) == {'_'}):
        return True
    return False


class MarkdownParser:
    """
    Markdown parser with page break and speaker note support using markdown-it-py.
    """

    def __init__(self):
        self.markdown_processor = MarkdownIt('commonmark', {
            'html': True,          # Enable HTML tags (NOTE comments travel as html blocks)
            'typographer': True,   # Smart quotes and other typographic replacements
        })
        self.markdown_processor.enable(['table', 'strikethrough'])
        self.markdown_processor = (
            self.markdown_processor
                .use(attrs_plugin)           # {.class #id key=val}
                .use(speaker_notes_plugin)   # ??? note lines
        )

    def parse(self, markdown_text: str) -> str:
        """
        Parse markdown text for one slide to HTML.
        """
        self._validate_fenced_blocks(markdown_text)
        return self.markdown_processor.render(self._preprocess_custom_syntax(markdown_text))

    def _preprocess_custom_syntax(self, markdown_text: str) -> str:
        """Convert ``==highlight==`` and ``++underline++`` which markdown-it lacks."""
        processed = re.sub(r'==(.*?)==', r'<mark>\1</mark>', markdown_text)
        processed = re.sub(r'\+\+(.*?)\+\+', r'<u>\1</u>', processed)
        return processed

    def _validate_fenced_blocks(self, markdown_text: str) -> None:
        """Raise ``ValueError`` naming the line of an unterminated code fence."""
        open_fence = None
        open_line = 0
        for lineno, line in enumerate(markdown_text.splitlines(), 1):
            was_open = open_fence is not None
            open_fence, _ = _track_fence(open_fence, line)
            if not was_open and open_fence is not None:
                open_line = lineno
        if open_fence is not None:
            raise ValueError(f"Unterminated code fence '{open_fence}' opened at line {open_line}")

    def split_slides(self, markdown_text: str) -> List[str]:
        """
        Split a document into per-slide markdown chunks.

        Page breaks inside fenced code are ignored. Blank chunks are dropped.
        """
        if not markdown_text or not markdown_text.strip():
            return []

        self._validate_fenced_blocks(markdown_text)

        slides_md = []
        current_slide = []
        open_fence = None

        for line in markdown_text.strip().split('\n'):
            open_fence, is_fence = _track_fence(open_fence, line)
            if not is_fence and open_fence is None and _is_page_break(line.strip()):
                if current_slide:
                    slides_md.append('\n'.join(current_slide))
                current_slide = []
            else:
                current_slide.append(line)

        if current_slide:
            slides_md.append('\n'.join(current_slide))

        return [chunk for chunk in slides_md if chunk.strip()]

    def split_units(self, markdown_text: str) -> List[ContentUnit]:
        """
        Split a document into numbered :class:`ContentUnit` objects with notes.
        """
        units = []
        for chunk in self.split_slides(markdown_text):
            body, notes = self.extract_notes(chunk)
            if not body.strip():
                if notes:
                    logger.warning(f"⚠️ Dropping notes on a slide without content: '{notes[:40]}...'")
                continue
            units.append(ContentUnit(
                index=len(units) + 1,
                markdown=body,
                notes=notes,
                title=self._first_heading(body),
            ))
        logger.debug(f"📄 Split document into {len(units)} content units")
        return units

    def extract_notes(self, markdown_text: str) -> Tuple[str, Optional[str]]:
        """
        Remove speaker notes from one slide's markdown.

        Notes have the syntax ``<!-- NOTE: content -->`` (may span lines) or a
        line starting with ``???``. Several notes on one slide are joined with a
        blank line in document order.

        Returns:
            (markdown without notes, plain-text notes or None)
        """
        found = []  # (line, raw note)
        fenced = _fenced_spans(markdown_text)

        # Blank out comment notes but keep their newlines so token line maps stay valid
        def _blank(match):
            if any(start <= match.start() < end for start, end in fenced):
                return match.group(0)
            found.append((markdown_text.count('\n', 0, match.start()), match.group(1)))
            return '\n' * match.group(0).count('\n')

        clean_text = NOTE_COMMENT_RE.sub(_blank, markdown_text)

        dropped_lines = set()
        for token in self.markdown_processor.parse(clean_text):
            if token.type == 'html_block' and 'speaker_note' in (token.meta or {}):
                found.append((token.map[0], token.meta['speaker_note']))
                dropped_lines.update(range(*token.map))

        if dropped_lines:
            clean_text = '\n'.join(
                line for i, line in enumerate(clean_text.split('\n')) if i not in dropped_lines
            )

        found.sort(key=lambda item: item[0])
        notes = [self._process_note_content(raw) for _, raw in found]
        notes = [n for n in notes if n]

        return clean_text.strip('\n'), ('\n\n'.join(notes) if notes else None)

    def _first_heading(self, markdown_text: str) -> Optional[str]:
        tokens = self.markdown_processor.parse(markdown_text)
        for i, token in enumerate(tokens):
            if token.type == 'heading_open' and i + 1 < len(tokens):
                return tokens[i + 1].content.strip() or None
        return None

    def _process_note_content(self, note_content: str) -> str:
        """
        Render note markdown and flatten it to plain text with formatting indicators.
        """
        processed = self._preprocess_custom_syntax(note_content)
        html_content = self.markdown_processor.render(processed)

        plain_text = html_content
        plain_text = re.sub(r'<strong[^>]*>(.*?)</strong>', r'**\1**', plain_text, flags=re.DOTALL)
        plain_text = re.sub(r'<em[^>]*>(.*?)</em>', r'*\1*', plain_text, flags=re.DOTALL)
        plain_text = re.sub(r'<code[^>]*>(.*?)</code>', r'`\1`', plain_text, flags=re.DOTALL)
        plain_text = re.sub(r'<mark[^>]*>(.*?)</mark>', r'==\1==', plain_text, flags=re.DOTALL)
        plain_text = re.sub(r'<(del|s)>(.*?)</\1>', r'~~\2~~', plain_text, flags=re.DOTALL)
        plain_text = re.sub(r'<li[^>]*>', '- ', plain_text)

        # Links read as "text (url)"
        plain_text = re.sub(r'<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>', r'\2 (\1)', plain_text, flags=re.DOTALL)

        plain_text = re.sub(r'<[^>]+>', '', plain_text)
        plain_text = unescape(plain_text)

        plain_text = re.sub(r'\n\s*\n', '\n\n', plain_text)
        return plain_text.strip()

    def count_page_breaks(self, markdown_text: str) -> int:
        """
        Number of page breaks outside fenced code.
        """
        if not markdown_text or not markdown_text.strip():
            return 0

        page_breaks = 0
        open_fence = None
        for line in markdown_text.strip().split('\n'):
            open_fence, is_fence = _track_fence(open_fence, line)
            if not is_fence and open_fence is None and _is_page_break(line.strip()):
                page_breaks += 1
        return page_breaks

    def estimate_slide_count(self, markdown_text: str) -> int:
        """
        Number of non-empty slides the document will produce.
        """
        return len(self.split_units(markdown_text))
