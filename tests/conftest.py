import sys
from pathlib import Path

import pytest
from PIL import Image

# Ensure project root is on sys.path so `import deckbuilder` works
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from deckbuilder.config import PipelineConfig  # noqa: E402
from deckbuilder.models import Element, SlideUnit  # noqa: E402


@pytest.fixture
def make_config():
    """Config factory with the default theme's geometry and small overrides."""
    def _make(expected_count=1, **overrides):
        return PipelineConfig.from_theme("default", expected_count=expected_count, **overrides)
    return _make


@pytest.fixture
def make_slide():
    """Build a slide from (tag, x, y, w, h) tuples."""
    def _make(index, boxes):
        elements = [Element(tag=tag, x=x, y=y, w=w, h=h, content=f"{tag} text") for tag, x, y, w, h in boxes]
        return SlideUnit(index=index, elements=elements)
    return _make


@pytest.fixture
def sample_image(tmp_path):
    """A 400x200 PNG on disk."""
    path = tmp_path / "chart.png"
    Image.new("RGB", (400, 200), (30, 120, 200)).save(path)
    return path
