import pytest

from i2localizer.core.exceptions import ParseError
from i2localizer.core.i2_parser import (
    ExtractedItem,
    I2Parser,
    count_translated,
    escape_value,
    extract_items,
    filter_items,
    unescape_value,
)
from i2localizer.core.line_buffer import LineBuffer

GREETING = '#Term: Greeting\n[0]\n  0 string data = "Hello"\n'

SAMPLE = "\n".join([
    "#Term: Menu/Start",
    "[0]",
    '  0 string data = "Start"',
    "[1]",
    '  0 string data = "Shoroo"',
    "#Term: Menu/Quit",
    "[0]",
    '  0 string data = "Quit \\"now\\""',
    "[1]",
    '  0 string data = "Khorooj"',
])


def test_extract_greeting():
    items = extract_items(GREETING, 0)
    assert items == [
        ExtractedItem(
            term="Greeting",
            original_text="Hello",
            data_line_index=2,
            line_prefix='  0 string data = "',
        )
    ]


def test_extract_selects_target_slot():
    items = I2Parser().extract(SAMPLE, 1)
    assert [(i.term, i.original_text, i.data_line_index) for i in items] == [
        ("Menu/Start", "Shoroo", 4),
        ("Menu/Quit", "Khorooj", 9),
    ]


def test_first_match_wins():
    content = "\n".join([
        "#Term: Dup",
        "[0]",
        '  0 string data = "first"',
        "[0]",
        '  0 string data = "second"',
    ])
    items = extract_items(content, 0)
    assert len(items) == 1
    assert items[0].original_text == "first"
    assert items[0].data_line_index == 2


def test_new_term_resets_first_match():
    content = "\n".join([
        "#Term: A",
        "[0]",
        '  0 string data = "a"',
        "#Term: A",
        "[0]",
        '  0 string data = "again"',
    ])
    # Duplicate terms are tolerated; each declaration gets its own item
    assert [i.original_text for i in extract_items(content, 0)] == ["a", "again"]


def test_slot_embedded_in_value_line():
    content = "\n".join([
        "#Term: Inline",
        '   1 string data = "one"',
        '   0 string data = "zero"',
    ])
    items = extract_items(content, 0)
    assert len(items) == 1
    assert items[0].original_text == "zero"
    assert items[0].data_line_index == 2
    assert items[0].line_prefix == '   0 string data = "'


def test_term_field_declaration():
    content = "\n".join([
        '   1 string Term = "Dialog/Intro"',
        "[0]",
        '    0 string data = "Welcome"',
    ])
    items = extract_items(content, 0)
    assert [(i.term, i.original_text) for i in items] == [("Dialog/Intro", "Welcome")]


def test_term_without_matching_slot_is_dropped():
    content = "#Term: Lonely\n[3]\n  0 string data = \"x\"\n#Term: Other\n[0]\n  0 string data = \"y\""
    items = extract_items(content, 0)
    assert [i.term for i in items] == ["Other"]


def test_slot_line_without_value_is_ignored():
    content = "\n".join([
        "#Term: Broken",
        "[0]",
        "  garbage line",
        "#Term: Fine",
        "[0]",
        '  0 string data = "ok"',
    ])
    assert [i.term for i in extract_items(content, 0)] == ["Fine"]


def test_value_before_any_term_is_ignored():
    content = '[0]\n  0 string data = "orphan"\n'
    assert extract_items(content, 0) == []


def test_escapes_are_decoded():
    content = '#Term: Esc\n[0]\n  0 string data = "Line\\nTwo\\t\\"q\\" \\\\ end"'
    item = extract_items(content, 0)[0]
    assert item.original_text == 'Line\nTwo\t"q" \\ end'


def test_prefix_and_value_rebuild_original_line():
    buffer = LineBuffer.from_text(SAMPLE)
    for item in I2Parser().extract(buffer, 0):
        rebuilt = f'{item.line_prefix}{escape_value(item.original_text)}"'
        assert rebuilt == buffer[item.data_line_index]


def test_bom_and_crlf_are_normalized():
    content = "\ufeff#Term: Greeting\r\n[0]\r\n  0 string data = \"Hello\"\r\n"
    items = extract_items(content, 0)
    assert items[0].term == "Greeting"
    assert items[0].data_line_index == 2


def test_progress_is_reported():
    calls = []
    I2Parser(progress_interval=2).extract("a\nb\nc\nd\ne", 0, calls.append)
    assert calls == [40, 80, 100]


def test_empty_content():
    calls = []
    assert extract_items("", 0, calls.append) == []
    assert calls[-1] == 100


@pytest.mark.parametrize("text", [
    "plain",
    'quote " inside',
    "back\\slash",
    "new\nline",
    "tab\there",
    "cr\rhere",
    '\\n is not a newline',
    'mixed \\"\n\t\r end',
])
def test_escape_unescape_inverse(text):
    assert unescape_value(escape_value(text)) == text


def test_unknown_escape_is_kept():
    assert unescape_value("a\\xb") == "a\\xb"


def test_item_dict_round_trip():
    item = ExtractedItem("T", "text", 4, '  0 string data = "')
    data = item.to_dict()
    assert data["originalText"] == "text"
    assert data["dataLineIndex"] == 4
    assert ExtractedItem.from_dict(data) == item


def test_parse_file(tmp_path):
    path = tmp_path / "table.txt"
    path.write_text(SAMPLE, encoding="utf-8")

    document = I2Parser().parse_file(str(path), 0)
    assert document.target_slot == 0
    assert len(document.buffer) == 10
    assert [i.term for i in document.items] == ["Menu/Start", "Menu/Quit"]
    assert document.get_translated_count({"Menu/Start": "Shoroo"}) == 1
    assert [i.term for i in document.get_untranslated({"Menu/Start": "Shoroo", "Menu/Quit": "  "})] == ["Menu/Quit"]


def test_parse_file_missing(tmp_path):
    with pytest.raises(ParseError):
        I2Parser().parse_file(str(tmp_path / "missing.txt"), 0)


def test_filter_and_count():
    items = extract_items(SAMPLE, 0)
    assert [i.term for i in filter_items(items, "quit")] == ["Menu/Quit"]
    assert [i.term for i in filter_items(items, "START")] == ["Menu/Start"]
    assert filter_items(items, "  ") == items
    assert count_translated(items, {"Menu/Start": "x", "Menu/Quit": ""}) == 1
