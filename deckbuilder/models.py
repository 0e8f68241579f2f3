"""
Data models for the deck builder.
"""
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import DeckAlreadyWritten, DeckError, SealedSlideError


@dataclass(frozen=True)
class Element:
    """
    A positioned leaf item on a slide (canvas pixels, 96 DPI).
    """
    tag: str
    x: float
    y: float
    w: float
    h: float
    content: str = ""
    role: Optional[str] = None
    style: Optional[Dict] = None
    src: Optional[str] = None  # For images

    @property
    def width(self):
        """Alias for w for compatibility."""
        return self.w

    @property
    def height(self):
        """Alias for h for compatibility."""
        return self.h

    @property
    def bottom(self):
        return self.y + self.h

    @property
    def right(self):
        return self.x + self.w

    def is_heading(self):
        """Check if this element is a heading."""
        return self.tag in ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']

    def is_paragraph(self):
        """Check if this element is a paragraph."""
        return self.tag == 'p'

    def is_list(self):
        """Check if this element is a list."""
        return self.tag in ['ul', 'ol']

    def is_code_block(self):
        """Check if this element is a code block."""
        return self.tag in ['pre', 'code']

    def is_table(self):
        """Check if this element is a table."""
        return self.tag == 'table'

    def is_image(self):
        """Check if this element is an image."""
        return self.tag == 'img'

    @classmethod
    def from_element(cls, element: Dict[str, Any]) -> "Element":
        """
        Create an Element from a measurement dictionary.
        """
        return cls(
            tag=element.get('tagName', element.get('tag', '')),
            x=float(element.get('x', 0)),
            y=float(element.get('y', 0)),
            w=float(element.get('width', element.get('w', 0))),
            h=float(element.get('height', element.get('h', 0))),
            content=element.get('textContent', element.get('content', '')),
            role=element.get('role'),
            style=element.get('style') or {},
            src=element.get('src'),
        )


@dataclass
class ContentUnit:
    """One slide's worth of input: markup plus optional speaker notes.

    ``elements`` holds pre-measured element dictionaries; when present the
    markdown is not measured again.
    """
    index: int
    markdown: str = ""
    notes: Optional[str] = None
    elements: Optional[List[Dict[str, Any]]] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class NotesBlock:
    """Speaker notes bound to exactly one slide."""
    slide_index: int
    text: str

    @property
    def char_count(self) -> int:
        return len(self.text)


@dataclass
class SlideUnit:
    """
    A rendered slide owned by the assembler until the deck is written.

    The slide stays mutable while it is validated and annotated. ``seal()``
    freezes it; afterwards every attribute assignment raises
    :class:`SealedSlideError`.
    """
    index: int
    elements: List[Element] = field(default_factory=list)
    notes: Optional[NotesBlock] = None
    source: Optional[ContentUnit] = field(default=None, repr=False, compare=False)
    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name, value):
        if getattr(self, '_sealed', False):
            raise SealedSlideError(f"cannot set '{name}' on a slide that belongs to a deck", self.index)
        super().__setattr__(name, value)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def notes_text(self) -> str:
        return self.notes.text if self.notes else ""

    def seal(self) -> None:
        object.__setattr__(self, 'elements', tuple(self.elements))
        object.__setattr__(self, '_sealed', True)


@dataclass(frozen=True)
class Deck:
    """
    Ordered, immutable sequence of sealed slides destined for one artifact.
    """
    slides: Tuple[SlideUnit, ...]
    canvas_width: int
    canvas_height: int
    theme: str = "default"
    _write_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _claimed: bool = field(default=False, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.slides)

    def __iter__(self) -> Iterator[SlideUnit]:
        return iter(self.slides)

    def slide(self, index: int) -> SlideUnit:
        """Return the slide at 1-based position ``index``."""
        for slide in self.slides:
            if slide.index == index:
                return slide
        raise KeyError(index)

    def claim_for_write(self) -> None:
        """Reserve the deck for its single terminal write."""
        with self._write_lock:
            if self._claimed:
                raise DeckAlreadyWritten("deck has already been handed to a writer; regenerate it instead")
            object.__setattr__(self, '_claimed', True)


@dataclass
class SlideError:
    """A report entry for one failure or warning."""
    index: Optional[int]
    kind: str
    message: str

    @classmethod
    def from_exception(cls, exc: DeckError) -> "SlideError":
        return cls(index=exc.slide_index, kind=type(exc).__name__, message=exc.reason)


@dataclass
class DeckSummary:
    slide_count: int
    artifact_size: int
    elapsed_seconds: float
    output_path: Optional[str]


@dataclass
class BuildReport:
    """Outcome of one pipeline run."""
    ok: bool
    errors: List[SlideError] = field(default_factory=list)
    warnings: List[SlideError] = field(default_factory=list)
    summary: Optional[DeckSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
