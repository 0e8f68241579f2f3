"""
deckbuilder - assemble PowerPoint decks with speaker notes from markdown content units.
"""

from .assembler import DeckAssembler
from .config import ErrorPolicy, PipelineConfig
from .layout_validator import LayoutValidator
from .markdown_parser import MarkdownParser
from .models import BuildReport, ContentUnit, Deck, Element, NotesBlock, SlideUnit
from .notes import NotesAttacher
from .pipeline import DeckPipeline
from .renderer import SlideRenderer
from .writer import DeckWriter

__version__ = "0.1.0"
__all__ = [
    "BuildReport",
    "ContentUnit",
    "Deck",
    "DeckAssembler",
    "DeckPipeline",
    "DeckWriter",
    "Element",
    "ErrorPolicy",
    "LayoutValidator",
    "MarkdownParser",
    "NotesAttacher",
    "NotesBlock",
    "PipelineConfig",
    "SlideRenderer",
    "SlideUnit",
]
