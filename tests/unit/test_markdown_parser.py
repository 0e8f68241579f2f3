"""Test markdown splitting and speaker notes extraction."""

import pytest

from deckbuilder.markdown_parser import MarkdownParser


@pytest.fixture
def parser():
    return MarkdownParser()


def test_basic_markdown_parsing(parser):
    """Test basic markdown to HTML conversion."""
    markdown_text = """# Hello World

This is a paragraph.

## Section 2

- Item 1
- Item 2"""

    html = parser.parse(markdown_text)

    assert "<h1>Hello World</h1>" in html
    assert "<h2>Section 2</h2>" in html
    assert "<p>This is a paragraph.</p>" in html
    assert "<li>Item 1</li>" in html


def test_table_and_highlight_syntax(parser):
    html = parser.parse("| A | B |\n|---|---|\n| 1 | 2 |\n\nSome ==key== idea")

    assert "<table>" in html
    assert "<mark>key</mark>" in html


def test_split_on_all_page_break_formats(parser):
    markdown_text = """# One

---

# Two

<!-- slide -->

# Three

<!--SLIDE-->

# Four

[slide]

# Five

***

# Six"""

    units = parser.split_units(markdown_text)

    assert [u.index for u in units] == [1, 2, 3, 4, 5, 6]
    assert [u.title for u in units] == ["One", "Two", "Three", "Four", "Five", "Six"]
    assert parser.count_page_breaks(markdown_text) == 5
    assert parser.estimate_slide_count(markdown_text) == 6


def test_page_breaks_inside_code_fences_are_ignored(parser):
    markdown_text = """# YAML example

```yaml
---
title: not a slide break
---
```

---

# Next"""

    units = parser.split_units(markdown_text)

    assert len(units) == 2
    assert "title: not a slide break" in units[0].markdown
    assert parser.count_page_breaks(markdown_text) == 1


def test_empty_slides_are_dropped(parser):
    units = parser.split_units("---\n\n---\n# Only\n\n---\n   \n")

    assert len(units) == 1
    assert units[0].index == 1


def test_empty_document(parser):
    assert parser.split_units("") == []
    assert parser.split_units("   \n\n  ") == []
    assert parser.count_page_breaks("") == 0


def test_comment_notes_are_extracted_per_slide(parser):
    markdown_text = """# Intro

Welcome text.

<!-- NOTE: Greet the class
and introduce **yourself**. -->

---

# Second

No notes here."""

    units = parser.split_units(markdown_text)

    assert units[0].notes == "Greet the class\nand introduce **yourself**."
    assert "NOTE" not in units[0].markdown
    assert "Welcome text." in units[0].markdown
    assert units[1].notes is None


def test_question_mark_notes_are_extracted(parser):
    markdown_text = """# Timing
Paragraph right above.
??? Spend two minutes here
- bullet

??? Then ask a question"""

    body, notes = parser.extract_notes(markdown_text)

    assert notes == "Spend two minutes here\n\nThen ask a question"
    assert "???" not in body
    assert "Paragraph right above." in body
    assert "- bullet" in body


def test_question_marks_inside_code_are_not_notes(parser):
    markdown_text = """# Code

```text
??? not a note
```"""

    body, notes = parser.extract_notes(markdown_text)

    assert notes is None
    assert "??? not a note" in body


def test_notes_keep_document_order(parser):
    markdown_text = """??? first
# Heading
<!-- NOTE: second -->
??? third"""

    _, notes = parser.extract_notes(markdown_text)

    assert notes.split("\n\n") == ["first", "second", "third"]


def test_note_links_are_flattened(parser):
    _, notes = parser.extract_notes("# T\n<!-- NOTE: See [docs](https://example.com) and `run()` -->")

    assert notes == "See docs (https://example.com) and `run()`"


def test_notes_only_slide_is_dropped(parser):
    units = parser.split_units("# Real\n\n---\n\n<!-- NOTE: orphan -->")

    assert len(units) == 1


def test_unterminated_fence_is_reported(parser):
    with pytest.raises(ValueError, match="line 3"):
        parser.split_units("# Broken\n\n```python\nprint('x')\n")


def test_note_comments_inside_code_are_not_notes(parser):
    markdown_text = """# Templates

```html
<!-- NOTE: part of the example markup -->
<p>Hello</p>
```

<!-- NOTE: Explain the comment syntax. -->"""

    body, notes = parser.extract_notes(markdown_text)

    assert notes == "Explain the comment syntax."
    assert "<!-- NOTE: part of the example markup -->" in body
    assert "Explain the comment syntax" not in body
