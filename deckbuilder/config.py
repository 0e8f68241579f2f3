"""
Pipeline configuration.

Geometry defaults come from the theme CSS (see :mod:`deckbuilder.css_utils`);
anything passed explicitly to :meth:`PipelineConfig.from_theme` wins.
"""
import io
from dataclasses import dataclass, fields
from enum import Enum
from functools import lru_cache
from typing import Optional, Union

from pptx import Presentation

from .css_utils import CSSParser
from .errors import ConfigError

DEFAULT_NOTES_CHAR_LIMIT = 8000
DEFAULT_MAX_CONCURRENCY = 8
# Lower bound on what one written slide adds to the zipped package
MIN_BYTES_PER_SLIDE = 256


@lru_cache(maxsize=None)
def empty_presentation_bytes() -> int:
    """Size of python-pptx's default template saved with no slides."""
    buffer = io.BytesIO()
    Presentation().save(buffer)
    return len(buffer.getvalue())


def default_min_artifact_bytes(expected_count: int) -> int:
    """Smallest plausible artifact size: the empty template plus every slide (at least one)."""
    return empty_presentation_bytes() + max(1, expected_count) * MIN_BYTES_PER_SLIDE


class ErrorPolicy(str, Enum):
    """What to do when one slide fails."""
    FAIL_FAST = "fail-fast"
    COLLECT = "collect"

    @classmethod
    def parse(cls, value: Union[str, "ErrorPolicy"]) -> "ErrorPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigError(f"unknown error policy '{value}' (choose from {choices})") from None


@dataclass
class PipelineConfig:
    expected_count: int
    canvas_width: int = 960
    canvas_height: int = 540
    padding: int = 19
    min_gap: int = 8
    notes_char_limit: int = DEFAULT_NOTES_CHAR_LIMIT
    strict_mode: ErrorPolicy = ErrorPolicy.FAIL_FAST
    require_notes: bool = False
    min_artifact_bytes: Optional[int] = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    theme: str = "default"

    def __post_init__(self):
        self.strict_mode = ErrorPolicy.parse(self.strict_mode)
        if self.min_artifact_bytes is None:
            self.min_artifact_bytes = default_min_artifact_bytes(self.expected_count)
        self.validate()

    @classmethod
    def from_theme(cls, theme: str = "default", **overrides) -> "PipelineConfig":
        """Build a config whose canvas geometry defaults to the theme's CSS variables."""
        unknown = set(overrides) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigError(f"unknown configuration keys: {sorted(unknown)}")

        dims = CSSParser(theme).get_slide_dimensions()
        values = {
            'canvas_width': dims['width_px'],
            'canvas_height': dims['height_px'],
            'padding': dims['padding_px'],
            'min_gap': dims['gap_px'],
            'theme': theme,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if 'expected_count' not in values:
            raise ConfigError("expected_count is required")
        return cls(**values)

    @property
    def fail_fast(self) -> bool:
        return self.strict_mode is ErrorPolicy.FAIL_FAST

    def validate(self) -> None:
        if self.expected_count < 0:
            raise ConfigError(f"expected_count must be >= 0, got {self.expected_count}")
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ConfigError(f"canvas must be positive, got {self.canvas_width}x{self.canvas_height}")
        if self.padding < 0 or 2 * self.padding >= min(self.canvas_width, self.canvas_height):
            raise ConfigError(f"padding {self.padding}px leaves no usable canvas")
        if self.min_gap < 0:
            raise ConfigError(f"min_gap must be >= 0, got {self.min_gap}")
        if self.notes_char_limit <= 0:
            raise ConfigError(f"notes_char_limit must be positive, got {self.notes_char_limit}")
        if self.min_artifact_bytes < 0:
            raise ConfigError(f"min_artifact_bytes must be >= 0, got {self.min_artifact_bytes}")
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
