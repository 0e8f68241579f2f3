"""Ordered aggregation of validated slides into a :class:`Deck`."""

import logging
from typing import List

from .config import ErrorPolicy, PipelineConfig
from .errors import AssemblyFailed, DeckError, DeckFinalized, SlideCountMismatch, SlideOrderError
from .models import Deck, SlideUnit

logger = logging.getLogger(__name__)


class DeckAssembler:
    """
    Collect slides in strictly increasing position order.

    Appending seals the slide, so nothing (notes included) can change it
    afterwards. ``fail`` applies the error policy: fail-fast re-raises,
    collect records the error and lets assembly continue. ``finalize``
    checks the declared slide count and produces the immutable deck.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.expected_count = config.expected_count
        self.policy = config.strict_mode
        self.errors: List[DeckError] = []
        self._slides: List[SlideUnit] = []
        self._last_index = 0
        self._finalized = False

    @property
    def count(self) -> int:
        return len(self._slides)

    def _ensure_open(self) -> None:
        if self._finalized:
            raise DeckFinalized("the deck is already finalized; regenerate it to make changes")

    def append(self, slide: SlideUnit) -> None:
        self._ensure_open()
        if slide.index <= self._last_index:
            raise SlideOrderError(
                f"position {slide.index} arrived after position {self._last_index}",
                slide.index,
            )
        slide.seal()
        self._slides.append(slide)
        self._last_index = slide.index

    def fail(self, index: int, error: DeckError) -> None:
        """Apply the error policy to a failure on slide ``index``."""
        self._ensure_open()
        if error.slide_index is None:
            error.slide_index = index
        if self.policy is ErrorPolicy.FAIL_FAST:
            raise error
        logger.error(f"❌ {error}")
        self.errors.append(error)
        # Later slides may still append after a skipped position
        self._last_index = max(self._last_index, index)

    def finalize(self) -> Deck:
        self._ensure_open()
        self._finalized = True

        if self.count != self.expected_count:
            mismatch = SlideCountMismatch(self.expected_count, self.count)
            if self.policy is ErrorPolicy.FAIL_FAST:
                raise mismatch
            self.errors.append(mismatch)

        if self.errors:
            raise AssemblyFailed(self.errors)

        logger.info(f"📦 Assembled {self.count} slides")
        return Deck(
            slides=tuple(self._slides),
            canvas_width=self.config.canvas_width,
            canvas_height=self.config.canvas_height,
            theme=self.config.theme,
        )
