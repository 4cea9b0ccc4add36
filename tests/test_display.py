"""Tests for the transcript document and the console sink."""

from __future__ import annotations

from typing import Any

import pytest

from mxfront.display.console import ConsoleSink, flatten_markup
from mxfront.display.document import DisplaySink, Transcript


def _kinds(doc: Transcript) -> list[str]:
    return [item.kind for _, item in doc.items()]


# ===================================================================
# Transcript
# ===================================================================


class TestAppend:
    def test_appends_in_order(self) -> None:
        doc = Transcript()
        first = doc.append("main_prompt", "(%i1) ")
        second = doc.append("input", "x+1;")

        assert doc.handles() == [first, second]
        assert doc.get(second).text == "x+1;"
        assert len(doc) == 2

    def test_handles_are_never_reused(self) -> None:
        doc = Transcript()
        a = doc.append("text", "a")
        doc.clear()
        b = doc.append("text", "b")
        assert b != a
        assert len(doc) == 1

    def test_replace_keeps_position(self) -> None:
        doc = Transcript()
        doc.append("text", "a")
        handle = doc.append("text", "b")
        doc.append("text", "c")

        doc.replace(handle, "B")

        assert [item.text for _, item in doc.items()] == ["a", "B", "c"]


class TestInsertPoint:
    def test_run_of_appends_stays_in_order(self) -> None:
        doc = Transcript()
        anchor = doc.append("input", "a;")
        tail = doc.append("main_prompt", "(%i2) ")

        doc.set_insert_point(anchor)
        doc.append("text", "one")
        doc.append("text", "two")

        assert [item.text for _, item in doc.items()] == ["a;", "one", "two", "(%i2) "]
        assert doc.handles()[-1] == tail

    def test_insert_point_moves_along(self) -> None:
        doc = Transcript()
        anchor = doc.append("input", "a;")
        doc.set_insert_point(anchor)
        new = doc.append("math", "<mn>1</mn>")
        assert doc.insert_point == new

    def test_reset_to_end(self) -> None:
        doc = Transcript()
        anchor = doc.append("input", "a;")
        doc.append("text", "end")
        doc.set_insert_point(anchor)
        doc.set_insert_point(None)

        doc.append("text", "last")

        assert doc.get(doc.handles()[-1]).text == "last"

    def test_unknown_handle_rejected(self) -> None:
        doc = Transcript()
        with pytest.raises(KeyError, match="Unknown display handle 7"):
            doc.set_insert_point(7)

    def test_cannot_remove_insert_point(self) -> None:
        doc = Transcript()
        anchor = doc.append("input", "a;")
        doc.set_insert_point(anchor)
        with pytest.raises(ValueError, match="insert point"):
            doc.remove(anchor)

    def test_clear_drops_insert_point(self) -> None:
        doc = Transcript()
        doc.set_insert_point(doc.append("input", "a;"))
        doc.clear()
        assert doc.insert_point is None
        assert doc.handles() == []


class TestQueries:
    def test_last_handle(self) -> None:
        doc = Transcript()
        doc.append("main_prompt", "(%i1) ")
        doc.append("input", "a;")
        second = doc.append("main_prompt", "(%i2) ")

        assert doc.last_handle("main_prompt") == second
        assert doc.last_handle("math") is None

    def test_remove(self) -> None:
        doc = Transcript()
        doc.append("text", "a")
        gone = doc.append("error", "b")
        doc.remove(gone)

        assert _kinds(doc) == ["text"]
        with pytest.raises(KeyError):
            doc.get(gone)

    def test_status_is_remembered(self) -> None:
        doc = Transcript()
        doc.status("Ready for user input")
        assert doc.last_status == "Ready for user input"


class TestDisplaySinkProtocol:
    def test_transcript_is_a_sink(self) -> None:
        assert isinstance(Transcript(), DisplaySink)

    def test_console_is_a_sink(self) -> None:
        assert isinstance(ConsoleSink(), DisplaySink)


# ===================================================================
# Console
# ===================================================================


class TestFlattenMarkup:
    def test_concatenates_text_nodes(self) -> None:
        markup = "<mth><mi>x</mi><mo>+</mo><mn>1</mn></mth>"
        assert flatten_markup(markup) == "x+1"

    def test_unparseable_markup_returned_unchanged(self) -> None:
        assert flatten_markup("<mth><mi>x</mth>") == "<mth><mi>x</mth>"


class TestConsoleSink:
    def test_append_echoes(self, capsys: Any) -> None:
        sink = ConsoleSink()
        sink.append("text", "hello")
        assert capsys.readouterr().out == "hello\n"

    def test_math_is_flattened(self, capsys: Any) -> None:
        sink = ConsoleSink()
        sink.append("math", "<mth><mn>42</mn></mth>")
        assert "42" in capsys.readouterr().out

    def test_errors_go_to_stderr(self, capsys: Any) -> None:
        sink = ConsoleSink()
        sink.append("error", "boom")
        captured = capsys.readouterr()
        assert "boom" in captured.err
        assert "boom" not in captured.out

    def test_replace_echoes_new_text(self, capsys: Any) -> None:
        sink = ConsoleSink()
        handle = sink.append("text", "old")
        sink.replace(handle, "new")
        assert "new" in capsys.readouterr().out
        assert sink.get(handle).text == "new"

    def test_status_hidden_by_default(self, capsys: Any) -> None:
        sink = ConsoleSink()
        sink.status("Engine is calculating")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == ""
        assert sink.last_status == "Engine is calculating"

    def test_status_shown_when_enabled(self, capsys: Any) -> None:
        sink = ConsoleSink(show_status=True)
        sink.status("Engine is calculating")
        assert "[Engine is calculating]" in capsys.readouterr().err
