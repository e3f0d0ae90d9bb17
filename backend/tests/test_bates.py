import pytest
from PIL import Image

from services.bates import BatesCounter, bates_pattern, format_bates_number, sanitize_prefix, stamp_bates


def test_format_pads_sequence():
    assert format_bates_number("ABC", 1) == "ABC000001"
    assert format_bates_number("ABC", 123456) == "ABC123456"
    assert format_bates_number("ABC", 42, pad_length=8) == "ABC00000042"


def test_prefix_is_sanitized():
    assert sanitize_prefix("Smith & Co-2024") == "SmithCo2024"
    assert format_bates_number("--", 7) == "PROD000007"
    assert format_bates_number("", 7) == "PROD000007"


def test_formatted_numbers_match_pattern():
    pattern = bates_pattern()
    assert pattern.match(format_bates_number("X_Y", 9))
    assert not pattern.match("ABC-000001")


def test_counter_is_monotonic():
    counter = BatesCounter("ABC", 5)
    assert [counter.take() for _ in range(3)] == ["ABC000005", "ABC000006", "ABC000007"]
    assert counter.next_value == 8


def test_counter_rewind():
    counter = BatesCounter("ABC", 1)
    start = counter.next_value
    counter.take()
    counter.take()
    counter.rewind(start)
    assert counter.take() == "ABC000001"


def test_counter_cannot_rewind_forward():
    counter = BatesCounter("ABC", 1)
    with pytest.raises(ValueError):
        counter.rewind(10)


def test_stamp_marks_bottom_right_and_keeps_original():
    original = Image.new("RGB", (600, 800), "gray")
    stamped = stamp_bates(original, "ABC000001")

    assert stamped.size == original.size
    assert original.getpixel((590, 790)) == (128, 128, 128)
    # White backing box in the corner, top-left corner untouched
    corner = stamped.crop((400, 700, 600, 800))
    assert (255, 255, 255) in [c for _, c in corner.getcolors(maxcolors=100000)]
    assert stamped.getpixel((5, 5)) == (128, 128, 128)
