"""Tests for reply marker parsing."""

import pytest

from chatconcise.directives import Completed, Directive, NoDirective, parse_reply


def test_directive_extraction():
    assert parse_reply("preamble\nCOMMAND: ls -la\nexplanation") == Directive("ls -la")


def test_first_directive_line_wins():
    text = "COMMAND: echo one\nCOMMAND: echo two"
    assert parse_reply(text) == Directive("echo one")


def test_marker_mid_line():
    assert parse_reply("Run this -> COMMAND:   git status  ") == Directive("git status")


def test_directive_at_end_without_newline():
    assert parse_reply("COMMAND: pwd") == Directive("pwd")


def test_crlf_line_endings():
    assert parse_reply("x\r\nCOMMAND: uname -a\r\nwhy") == Directive("uname -a")


def test_completion_marker():
    assert parse_reply("All good. DONE") == Completed()


def test_completion_beats_directive():
    assert parse_reply("COMMAND: rm -rf build\nDONE") == Completed()


@pytest.mark.parametrize("text", ["", "just chatting", "COMMAND:", "COMMAND:   \nmore"])
def test_no_directive(text):
    assert parse_reply(text) == NoDirective()


def test_completion_marker_is_case_sensitive():
    assert parse_reply("we are done here") == NoDirective()


def test_custom_markers():
    reply = parse_reply("RUN> make", directive_marker="RUN>", completion_marker="FIN")
    assert reply == Directive("make")
    assert parse_reply("FIN", completion_marker="FIN") == Completed()


@pytest.mark.parametrize("sep", ["\x0b", "\x0c", "\x1c", "\x85", "\u2028"])
def test_only_newline_ends_the_directive_line(sep):
    assert parse_reply(f"COMMAND: echo a{sep}b\nwhy") == Directive(f"echo a{sep}b")
