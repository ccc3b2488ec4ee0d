"""Tests for nostail.display module."""

import json

from nostail.display import Display
from nostail.formatters import JsonFormatter

from conftest import output_lines


class TestRenderEvent:
    """Test Display.render_event()."""

    def test_kind_only(self, display, out):
        display.render_event(1)
        assert out.getvalue() == "Kind 1\n"

    def test_content_is_sanitized(self, display, out):
        """Control characters in remote content never reach the stream."""
        display.render_event(1, "ding\x07\x1b[2Jdong")
        written = out.getvalue()
        assert "\x07" not in written
        assert "\x1b" not in written
        assert written == "Kind 1 => ding\ufffd\ufffd[2Jdong\n"

    def test_returns_line(self, display):
        assert display.render_event(7, "+") == "Kind 7 => +"

    def test_raw_mode_newlines(self, out, err):
        """Multi-line content uses the raw-mode line ending throughout."""
        display = Display(out=out, err=err, line_ending="\r\n")
        display.render_event(1, "line one\nline two")
        assert out.getvalue() == "Kind 1 => line one\r\nline two\r\n"

    def test_json_format(self, out, err):
        display = Display(JsonFormatter(), out=out, err=err)
        display.render_event(1, "bell\x07")
        data = json.loads(out.getvalue())
        assert data["content"] == "bell\ufffd"


class TestRenderSummary:
    """Test Display.render_summary()."""

    def test_lines_in_order(self, display, out):
        count = display.render_summary(((1, 2), (3, 1), (5, 7)))
        assert count == 3
        assert output_lines(out) == [
            "Kind 1 => seen: 2",
            "Kind 3 => seen: 1",
            "Kind 5 => seen: 7",
        ]

    def test_empty_snapshot_writes_nothing(self, display, out):
        assert display.render_summary(()) == 0
        assert out.getvalue() == ""


class TestNotices:
    """Test notice() and warn()."""

    def test_notice_goes_to_out(self, display, out, err):
        display.notice("PAUSED")
        assert out.getvalue() == "PAUSED\n"
        assert err.getvalue() == ""

    def test_warn_goes_to_err(self, display, out, err):
        display.warn("error! boom")
        assert err.getvalue() == "error! boom\n"
        assert out.getvalue() == ""

    def test_raw_line_ending(self, out, err):
        display = Display(out=out, err=err, line_ending="\r\n")
        display.notice("UNPAUSED")
        assert out.getvalue() == "UNPAUSED\r\n"

    def test_defaults_to_std_streams(self, capsys):
        display = Display()
        display.notice("hello")
        display.warn("oops")
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == "oops\n"
