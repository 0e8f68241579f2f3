"""Geometric checks for one slide before it joins the deck."""

import logging
from typing import Iterator, List, Optional, Tuple

from .config import PipelineConfig
from .errors import LayoutViolation
from .models import Element, SlideUnit

logger = logging.getLogger(__name__)

# Float slack for measurements that went through rounding
TOLERANCE_PX = 1e-6


def _horizontally_overlapping(a: Element, b: Element) -> bool:
    return a.x < b.right and b.x < a.right


def _nearest_stacked_above(placed: List[Tuple[int, Element]], element: Element) -> Optional[Tuple[int, Element]]:
    """The earlier element sharing horizontal extent with ``element`` whose bottom is lowest."""
    nearest = None
    for position, earlier in placed:
        if not _horizontally_overlapping(earlier, element):
            continue
        if nearest is None or earlier.bottom >= nearest[1].bottom:
            nearest = (position, earlier)
    return nearest


class LayoutValidator:
    """
    Check element boxes against the canvas and the minimum vertical gap.

    Elements are checked in declared order. An element is "vertically
    stacked" under every earlier element whose horizontal extent it shares,
    and must clear the lowest of them: ``y >= above.y + above.h + min_gap``.
    Side-by-side elements are not gap-checked against each other.
    """

    def __init__(self, config: PipelineConfig):
        self.canvas_width = config.canvas_width
        self.canvas_height = config.canvas_height
        self.min_gap = config.min_gap

    def violations(self, slide: SlideUnit) -> Iterator[LayoutViolation]:
        """Yield every violation on the slide, in element order."""
        placed: List[Tuple[int, Element]] = []
        for position, element in enumerate(slide.elements, 1):
            if element.x < -TOLERANCE_PX:
                yield LayoutViolation(slide.index, position, element.tag, "starts left of the canvas", -element.x)
            if element.y < -TOLERANCE_PX:
                yield LayoutViolation(slide.index, position, element.tag, "starts above the canvas", -element.y)

            overflow_y = element.bottom - self.canvas_height
            if overflow_y > TOLERANCE_PX:
                yield LayoutViolation(
                    slide.index, position, element.tag, "overflows the canvas bottom", round(overflow_y, 2)
                )

            overflow_x = element.right - self.canvas_width
            if overflow_x > TOLERANCE_PX:
                yield LayoutViolation(
                    slide.index, position, element.tag, "overflows the canvas right edge", round(overflow_x, 2)
                )

            above = _nearest_stacked_above(placed, element)
            if above is not None:
                above_position, above_element = above
                gap = element.y - above_element.bottom
                if gap < self.min_gap - TOLERANCE_PX:
                    yield LayoutViolation(
                        slide.index,
                        position,
                        element.tag,
                        f"is {round(gap, 2):g}px below element {above_position}, "
                        f"under the {self.min_gap}px minimum gap,",
                        round(self.min_gap - gap, 2),
                    )
            placed.append((position, element))

    def validate(self, slide: SlideUnit) -> None:
        """Raise the first :class:`LayoutViolation` found, if any."""
        for violation in self.violations(slide):
            logger.debug(f"📐 {violation}")
            raise violation
