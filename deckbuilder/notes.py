"""Binding speaker notes to slides."""

import logging
from typing import Optional

from .config import PipelineConfig
from .errors import MissingNotes, NotesAfterAssembly, NotesTooLong
from .models import NotesBlock, SlideUnit

logger = logging.getLogger(__name__)


class NotesAttacher:
    """
    Attach notes to a slide before it is handed to the assembler.

    Notes are never truncated. Missing notes are an error when
    ``require_notes`` is set and a logged warning otherwise.
    """

    def __init__(self, config: PipelineConfig):
        self.char_limit = config.notes_char_limit
        self.require_notes = config.require_notes

    def attach(self, slide: SlideUnit, notes: Optional[str]) -> Optional[MissingNotes]:
        """
        Bind ``notes`` to ``slide``.

        Returns:
            The :class:`MissingNotes` warning when notes are absent and not
            required, otherwise ``None``.

        Raises:
            NotesAfterAssembly: the slide is already part of a deck
            MissingNotes: notes are absent and required
            NotesTooLong: notes exceed the character ceiling
        """
        if slide.sealed:
            raise NotesAfterAssembly(slide.index)

        if notes is None or not notes.strip():
            missing = MissingNotes(slide.index)
            if self.require_notes:
                raise missing
            logger.warning(f"⚠️ {missing}")
            return missing

        if len(notes) > self.char_limit:
            raise NotesTooLong(slide.index, len(notes), self.char_limit)

        slide.notes = NotesBlock(slide_index=slide.index, text=notes)
        return None
