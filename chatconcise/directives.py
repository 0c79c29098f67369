"""Recognise the loop markers in free-form model replies.

A reply is one of three things:

- ``Completed``: the completion marker appears anywhere in the text. This
  wins over a directive in the same reply.
- ``Directive(command)``: the first line carrying the directive marker; the
  command is the rest of that line with the marker and surrounding
  whitespace stripped.
- ``NoDirective``: neither of the above, or a directive line with nothing
  after the marker.
"""

from dataclasses import dataclass

COMPLETION_MARKER = "DONE"
DIRECTIVE_MARKER = "COMMAND:"


@dataclass(frozen=True)
class Completed:
    pass


@dataclass(frozen=True)
class Directive:
    command: str


@dataclass(frozen=True)
class NoDirective:
    pass


Reply = Completed | Directive | NoDirective


def parse_reply(
    text: str,
    *,
    completion_marker: str = COMPLETION_MARKER,
    directive_marker: str = DIRECTIVE_MARKER,
) -> Reply:
    if completion_marker in text:
        return Completed()
    start = text.find(directive_marker)
    if start < 0:
        return NoDirective()
    line = text[start:].split("\n")[0].rstrip("\r")
    command = line[len(directive_marker) :].strip()
    if not command:
        return NoDirective()
    return Directive(command)
