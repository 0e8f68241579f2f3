"""
Exception hierarchy for the deck assembly pipeline.

Every error carries the 1-based ``slide_index`` it belongs to (``None`` for
deck-level failures) so reports can always point at the offending slide.
"""
from typing import List, Optional


class DeckError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, slide_index: Optional[int] = None):
        self.slide_index = slide_index
        self.reason = message
        if slide_index is not None:
            message = f"slide {slide_index}: {message}"
        super().__init__(message)


class ConfigError(DeckError):
    """Invalid pipeline configuration."""


class RenderFailure(DeckError):
    """The slide renderer (or its measurer) could not produce a slide."""


class LayoutViolation(DeckError):
    """An element leaves the canvas or sits too close to its predecessor."""

    def __init__(self, slide_index: int, element_position: int, tag: str, reason: str, amount: float):
        self.element_position = element_position
        self.tag = tag
        self.amount = amount
        super().__init__(
            f"element {element_position} <{tag}> {reason} by {amount:g}px",
            slide_index,
        )


class MissingNotes(DeckError):
    """A slide has no speaker notes."""

    def __init__(self, slide_index: int):
        super().__init__("speaker notes are missing", slide_index)


class NotesTooLong(DeckError):
    """Speaker notes exceed the configured character ceiling."""

    def __init__(self, slide_index: int, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(
            f"speaker notes are {length} characters, limit is {limit}",
            slide_index,
        )


class NotesAfterAssembly(DeckError):
    """Notes were attached to a slide that already belongs to a deck."""

    def __init__(self, slide_index: int):
        super().__init__(
            "notes cannot be attached after the slide was added to the deck; regenerate the deck",
            slide_index,
        )


class SealedSlideError(DeckError):
    """A sealed slide was modified."""


class SlideOrderError(DeckError):
    """Slides were appended out of position order."""


class SlideCountMismatch(DeckError):
    """The finalized deck does not hold the declared number of slides."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected {expected} slides, assembled {actual}")


class DeckFinalized(DeckError):
    """The assembler was used after finalize()."""


class AssemblyFailed(DeckError):
    """Batch mode finished with one or more recorded errors."""

    def __init__(self, errors: List[DeckError]):
        self.errors = list(errors)
        super().__init__(f"deck assembly failed with {len(self.errors)} error(s)")


class DeckAlreadyWritten(DeckError):
    """A deck was handed to a writer a second time."""


class SuspiciouslySmallArtifact(DeckError):
    """The serialized deck is smaller than the sanity threshold."""

    def __init__(self, size: int, minimum: int):
        self.size = size
        self.minimum = minimum
        super().__init__(f"artifact is only {size} bytes, expected more than {minimum}")


class ArtifactVerificationError(DeckError):
    """The serialized deck does not read back as the deck that was written."""


class ArtifactWriteError(DeckError):
    """python-pptx or the filesystem failed while the deck was being serialized."""
