"""Test geometric validation of slides."""

import pytest

from deckbuilder.errors import LayoutViolation
from deckbuilder.layout_validator import LayoutValidator


def test_well_spaced_slide_passes(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=8))
    slide = make_slide(1, [
        ("h1", 19, 19, 922, 42),
        ("p", 19, 69, 922, 60),     # 19 + 42 + 8
        ("ul", 19, 140, 922, 100),  # more than the minimum
    ])

    validator.validate(slide)
    assert list(validator.violations(slide)) == []


def test_bottom_overflow_is_reported_with_amount(make_config, make_slide):
    validator = LayoutValidator(make_config())
    slide = make_slide(4, [("h1", 19, 19, 922, 42), ("img", 19, 300, 400, 300)])

    with pytest.raises(LayoutViolation) as exc_info:
        validator.validate(slide)

    err = exc_info.value
    assert err.slide_index == 4
    assert err.element_position == 2
    assert err.tag == "img"
    assert err.amount == pytest.approx(60)  # 300 + 300 - 540
    assert "slide 4" in str(err)
    assert "canvas bottom" in str(err)


def test_element_exactly_touching_bottom_is_allowed(make_config, make_slide):
    validator = LayoutValidator(make_config())
    slide = make_slide(1, [("p", 0, 440, 960, 100)])

    validator.validate(slide)


def test_gap_below_minimum_is_reported(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=8))
    slide = make_slide(2, [("h2", 19, 19, 922, 40), ("p", 19, 62, 922, 30)])  # gap of 3

    violations = list(validator.violations(slide))

    assert len(violations) == 1
    assert violations[0].element_position == 2
    assert violations[0].amount == pytest.approx(5)
    assert "minimum gap" in str(violations[0])


def test_overlapping_elements_fail_gap_check(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=0))
    slide = make_slide(1, [("p", 19, 19, 500, 100), ("p", 19, 80, 500, 40)])

    with pytest.raises(LayoutViolation):
        validator.validate(slide)


def test_side_by_side_columns_are_not_gap_checked(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=8))
    slide = make_slide(1, [
        ("p", 19, 19, 450, 200),
        ("img", 490, 19, 450, 200),  # right column, same top
    ])

    validator.validate(slide)


def test_right_edge_and_negative_origin(make_config, make_slide):
    validator = LayoutValidator(make_config())
    slide = make_slide(1, [("table", 100, 19, 900, 80), ("p", -5, 200, 100, 20)])

    reasons = [str(v) for v in validator.violations(slide)]

    assert any("right edge" in r and "by 40px" in r for r in reasons)
    assert any("left of the canvas" in r for r in reasons)


def test_zero_gap_configuration_allows_touching_blocks(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=0))
    slide = make_slide(1, [("p", 19, 19, 900, 50), ("p", 19, 69, 900, 50)])

    validator.validate(slide)


def test_gap_is_checked_against_non_adjacent_element_above(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=8))
    slide = make_slide(3, [
        ("h1", 19, 19, 922, 100),
        ("p", 19, 127, 400, 50),    # left column, clears the heading
        ("img", 500, 50, 400, 40),  # right column, inside the heading's box
    ])

    violations = list(validator.violations(slide))

    assert len(violations) == 1
    assert violations[0].element_position == 3
    assert violations[0].tag == "img"
    assert "below element 1" in str(violations[0])
    assert violations[0].amount == pytest.approx(77)  # 8 - (50 - 119)


def test_lowest_overlapping_element_sets_the_gap(make_config, make_slide):
    validator = LayoutValidator(make_config(min_gap=8))
    slide = make_slide(1, [
        ("p", 19, 19, 450, 300),    # tall left column
        ("img", 490, 19, 450, 100),  # short right column
        ("p", 19, 200, 922, 40),    # full-width block clears the right column only
    ])

    violations = list(validator.violations(slide))

    assert [v.element_position for v in violations] == [3]
    assert "below element 1" in str(violations[0])
