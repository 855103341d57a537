"""Tests for the in-memory text buffer."""

from __future__ import annotations

from inkline.editor.document_model import DocumentBuffer, TextBuffer


def test_from_text_places_cursor_at_end() -> None:
    buffer = TextBuffer.from_text("one\ntwo")

    assert buffer.get_lines() == ["one", "two"]
    assert buffer.get_cursor() == (1, 3)
    assert isinstance(buffer, DocumentBuffer)


def test_empty_buffer_has_one_line() -> None:
    buffer = TextBuffer(lines=[])

    assert buffer.get_lines() == [""]
    assert buffer.get_cursor() == (0, 0)


def test_get_lines_returns_a_copy() -> None:
    buffer = TextBuffer.from_text("abc")
    buffer.get_lines().append("mutated")

    assert buffer.get_lines() == ["abc"]


def test_insert_single_line_text_mid_line() -> None:
    buffer = TextBuffer.from_text("foo()", row=0, column=4)

    assert buffer.insert_text("bar") == (0, 7)
    assert buffer.text == "foo(bar)"
    assert buffer.dirty


def test_apply_multiline_text_splits_line() -> None:
    buffer = TextBuffer.from_text("if (x) tail", row=0, column=7)

    cursor = buffer.apply_text("{\r\n  run();\n}")

    assert buffer.get_lines() == ["if (x) {", "  run();", "}tail"]
    assert cursor == (2, 1)


def test_apply_empty_text_is_a_no_op() -> None:
    buffer = TextBuffer.from_text("abc")
    version = buffer.version_id

    buffer.apply_text("")

    assert buffer.version_id == version
    assert not buffer.dirty


def test_delete_before_cursor_joins_lines() -> None:
    buffer = TextBuffer.from_text("ab\ncd", row=1, column=0)

    assert buffer.delete_before_cursor() == (0, 2)
    assert buffer.text == "abcd"
    assert buffer.delete_before_cursor(5) == (0, 0)
    assert buffer.text == "cd"


def test_move_cursor_clamps_to_document() -> None:
    buffer = TextBuffer.from_text("short\nlonger line")

    assert buffer.move_cursor(9, 99) == (1, 11)
    assert buffer.move_cursor(-1, -1) == (0, 0)


def test_snapshot_tracks_version_and_hash() -> None:
    buffer = TextBuffer.from_text("abc")
    before = buffer.snapshot()

    buffer.insert_text("d")
    after = buffer.snapshot()

    assert before.lines == ("abc",)
    assert after.cursor == (0, 4)
    assert after.version_id == before.version_id + 1
    assert after.content_hash != before.content_hash
