import pytest

from i2localizer.core.line_buffer import LineBuffer, normalize_content


def test_normalize_content():
    assert normalize_content("\ufeffa\r\nb\rc\n") == "a\nb\nc\n"
    assert normalize_content("") == ""


def test_from_text_keeps_trailing_empty_line():
    buffer = LineBuffer.from_text("a\nb\n")
    assert buffer.lines == ["a", "b", ""]
    assert buffer.to_text() == "a\nb\n"


def test_replace_reports_change():
    buffer = LineBuffer(["x", "y"])
    assert buffer.replace(1, "z") is True
    assert buffer.replace(1, "z") is False
    assert list(buffer) == ["x", "z"]


def test_lines_is_a_snapshot():
    buffer = LineBuffer(["x"])
    snapshot = buffer.lines
    snapshot[0] = "changed"
    assert buffer[0] == "x"

    clone = buffer.copy()
    clone[0] = "other"
    assert buffer[0] == "x"
    assert clone != buffer


def test_slice_assignment_is_rejected():
    buffer = LineBuffer(["a", "b"])
    with pytest.raises(TypeError):
        buffer[0:1] = ["c"]
    assert len(buffer) == 2
