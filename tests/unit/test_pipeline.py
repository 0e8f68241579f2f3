#!/usr/bin/env python3
"""
End-to-end tests of the deck pipeline.
"""
import asyncio
import json

import pytest
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from deckbuilder.config import ErrorPolicy, PipelineConfig
from deckbuilder.models import ContentUnit
from deckbuilder.pipeline import DeckPipeline, main


COURSE_MARKDOWN = """# Lesson 1: Variables

Variables name values.

<!-- NOTE: Start with a real-world analogy. -->

---

# Lesson 2: Loops

- for
- while

??? Live-code a loop

---

# Lesson 3: Functions

```python
def greet(name):
    return f"hi {name}"
```

<!-- NOTE: Ask students to predict the output. -->
"""


def _units(count, notes=True):
    return [
        ContentUnit(index=i, markdown=f"# Slide {i}\n\nBody text for slide {i}.",
                    notes=f"Notes for slide {i}" if notes else None)
        for i in range(1, count + 1)
    ]


def _pipeline(tmp_path, **overrides):
    overrides.setdefault("expected_count", 3)
    config = PipelineConfig.from_theme("default", **overrides)
    return DeckPipeline(config, output_dir=tmp_path / "out", base_dir=tmp_path)


def test_three_units_build_successfully(tmp_path):
    pipeline = _pipeline(tmp_path)

    report = asyncio.run(pipeline.build(_units(3), "deck.pptx"))

    assert report.ok
    assert report.errors == []
    assert report.warnings == []
    assert report.summary.slide_count == 3
    assert report.summary.artifact_size > pipeline.config.min_artifact_bytes
    assert report.summary.elapsed_seconds >= 0
    assert report.summary.output_path == str(tmp_path / "out" / "deck.pptx")

    prs = Presentation(report.summary.output_path)
    assert len(prs.slides) == 3
    assert [s.notes_slide.notes_text_frame.text for s in prs.slides] == [
        "Notes for slide 1", "Notes for slide 2", "Notes for slide 3"
    ]


def test_output_extension_is_added(tmp_path):
    report = asyncio.run(_pipeline(tmp_path).build(_units(3), "course"))

    assert report.summary.output_path.endswith("course.pptx")


def test_units_are_assembled_in_position_order(tmp_path):
    units = list(reversed(_units(3)))

    report = asyncio.run(_pipeline(tmp_path).build(units, "deck.pptx"))

    prs = Presentation(report.summary.output_path)
    titles = [s.shapes[0].text_frame.text for s in prs.slides]
    assert titles == ["Slide 1", "Slide 2", "Slide 3"]


def test_slide_count_mismatch_writes_nothing(tmp_path):
    pipeline = _pipeline(tmp_path, expected_count=40)

    report = asyncio.run(pipeline.build(_units(7), "deck.pptx"))

    assert not report.ok
    assert [(e.index, e.kind) for e in report.errors] == [(None, "SlideCountMismatch")]
    assert "expected 40 slides, assembled 7" in report.errors[0].message
    assert report.summary.output_path is None
    assert report.summary.artifact_size == 0
    assert not (tmp_path / "out" / "deck.pptx").exists()


def _broken_units():
    units = _units(4)
    units[1].notes = "n" * 9000  # slide 2: too long
    units[2].elements = [  # slide 3: overflows the canvas
        {"tagName": "h1", "x": 19, "y": 19, "width": 900, "height": 40},
        {"tagName": "p", "x": 19, "y": 300, "width": 400, "height": 400},
    ]
    return units


def test_fail_fast_stops_at_first_failing_slide(tmp_path):
    pipeline = _pipeline(tmp_path, expected_count=4)

    report = asyncio.run(pipeline.build(_broken_units(), "deck.pptx"))

    assert not report.ok
    assert [(e.index, e.kind) for e in report.errors] == [(2, "NotesTooLong")]
    assert report.summary.slide_count == 1
    assert not (tmp_path / "out" / "deck.pptx").exists()


def test_collect_mode_reports_every_failing_slide(tmp_path):
    pipeline = _pipeline(tmp_path, expected_count=4, strict_mode=ErrorPolicy.COLLECT)

    report = asyncio.run(pipeline.build(_broken_units(), "deck.pptx"))

    assert not report.ok
    assert [(e.index, e.kind) for e in report.errors] == [
        (2, "NotesTooLong"),
        (3, "LayoutViolation"),
        (None, "SlideCountMismatch"),
    ]
    assert "element 2 <p> overflows the canvas bottom by 160px" in report.errors[1].message
    assert not (tmp_path / "out" / "deck.pptx").exists()


def test_render_failure_carries_slide_index(tmp_path):
    units = _units(3)
    units[2].markdown = "![diagram](nowhere.png)"

    report = asyncio.run(_pipeline(tmp_path, strict_mode="collect").build(units, "deck.pptx"))

    assert report.errors[0].index == 3
    assert report.errors[0].kind == "RenderFailure"


def test_missing_notes_are_warnings_unless_required(tmp_path):
    lenient = asyncio.run(_pipeline(tmp_path).build(_units(3, notes=False), "lenient.pptx"))
    assert lenient.ok
    assert [(w.index, w.kind) for w in lenient.warnings] == [
        (1, "MissingNotes"), (2, "MissingNotes"), (3, "MissingNotes")
    ]

    strict = asyncio.run(_pipeline(tmp_path, require_notes=True).build(_units(3, notes=False), "strict.pptx"))
    assert [(e.index, e.kind) for e in strict.errors] == [(1, "MissingNotes")]


def test_rebuilding_identical_input_is_stable(tmp_path):
    first = asyncio.run(_pipeline(tmp_path).build(_units(3), "a.pptx"))
    second = asyncio.run(_pipeline(tmp_path).build(_units(3), "b.pptx"))

    assert first.ok and second.ok
    assert abs(first.summary.artifact_size - second.summary.artifact_size) < 512


def test_generate_from_markdown_document(tmp_path):
    report = asyncio.run(_pipeline(tmp_path).generate(COURSE_MARKDOWN, "course.pptx"))

    assert report.ok, report.errors
    prs = Presentation(report.summary.output_path)
    assert [s.notes_slide.notes_text_frame.text for s in prs.slides] == [
        "Start with a real-world analogy.",
        "Live-code a loop",
        "Ask students to predict the output.",
    ]


def test_cli_writes_deck_and_json_report(tmp_path):
    md = tmp_path / "course.md"
    md.write_text(COURSE_MARKDOWN, encoding="utf-8")
    out = tmp_path / "build" / "course.pptx"
    report_path = tmp_path / "build" / "report.json"

    with pytest.raises(SystemExit) as exc_info:
        main([str(md), "-o", str(out), "--report", str(report_path)])

    assert exc_info.value.code == 0
    assert out.exists()
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["ok"] is True
    assert report["summary"]["slide_count"] == 3


def test_cli_exits_nonzero_on_count_mismatch(tmp_path):
    md = tmp_path / "course.md"
    md.write_text(COURSE_MARKDOWN, encoding="utf-8")
    out = tmp_path / "build" / "course.pptx"

    with pytest.raises(SystemExit) as exc_info:
        main([str(md), "-o", str(out), "--expected-count", "40", "--collect"])

    assert exc_info.value.code == 1
    assert not out.exists()


def test_pre_measured_image_that_does_not_exist_is_reported(tmp_path):
    units = _units(1)
    units[0].elements = [
        {"tagName": "h1", "x": 19, "y": 19, "width": 900, "height": 40, "textContent": "Chart"},
        {"tagName": "img", "x": 19, "y": 70, "width": 400, "height": 200, "src": "missing.png"},
    ]

    report = asyncio.run(_pipeline(tmp_path, expected_count=1).build(units, "deck.pptx"))

    assert not report.ok
    assert [(e.index, e.kind) for e in report.errors] == [(1, "RenderFailure")]
    assert "missing.png" in report.errors[0].message
    assert not (tmp_path / "out" / "deck.pptx").exists()


def test_pre_measured_image_is_resolved_against_base_dir(tmp_path, sample_image):
    units = _units(1)
    units[0].elements = [
        {"tagName": "img", "x": 19, "y": 19, "width": 400, "height": 200, "src": sample_image.name},
    ]

    report = asyncio.run(_pipeline(tmp_path, expected_count=1).build(units, "deck.pptx"))

    assert report.ok, report.errors
    slide = Presentation(report.summary.output_path).slides[0]
    assert [shape.shape_type for shape in slide.shapes] == [MSO_SHAPE_TYPE.PICTURE]


def test_empty_deck_is_flagged_by_default_size_check(tmp_path):
    report = asyncio.run(_pipeline(tmp_path, expected_count=0).build([], "empty.pptx"))

    assert not report.ok
    assert [(e.index, e.kind) for e in report.errors] == [(None, "SuspiciouslySmallArtifact")]
    assert not (tmp_path / "out" / "empty.pptx").exists()
